"""
document_extraction.py — Best-effort field extraction from uploaded PDFs

Reads the text layer with pdfplumber and pulls out the fields the
settlement flow cares about. Every field is optional; an unreadable
document raises ExtractionError.

Business Rules:
- Extracted amounts are advisory; they are never written to ledger fields
  without reconciliation against the calculated totals
- Unresolved fields are None, never guessed
- Scanned (image-only) PDFs produce no text and raise ExtractionError
- Any failure while parsing fields is reported as ExtractionError

Called by: services/po_chain.py, services/po_number.py, routers/purchase_orders.py
Depends on: pdfplumber
"""

import io
import logging
import re
from dataclasses import asdict, dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from ..exceptions import ExtractionError

log = logging.getLogger("printflow.extraction")

AMOUNT_PATTERNS = [
    re.compile(r"(?i)\b(?:grand\s+)?total(?:\s+amount)?\s*(?:due)?\s*:?\s*\$?\s*(\d[\d,]*\.\d{2})"),
    re.compile(r"(?i)\bamount(?:\s+due)?\s*:?\s*\$?\s*(\d[\d,]*\.\d{2})"),
    re.compile(r"(?i)\bbalance\s+due\s*:?\s*\$?\s*(\d[\d,]*\.\d{2})"),
]
QUANTITY_PATTERNS = [
    re.compile(r"(?i)\b(?:qty|quantity)\s*:?\s*(\d[\d,]*)"),
    re.compile(r"(?i)\b(\d[\d,]{2,})\s*(?:pcs|pieces|units)\b"),
]
DATE_PATTERNS = [
    re.compile(r"(?i)\b(?:delivery|due|in[- ]home|ship)\s*date\s*:?\s*(\d{1,2}/\d{1,2}/\d{2,4})"),
    re.compile(r"(?i)\b(?:delivery|due|in[- ]home|ship)\s*date\s*:?\s*(\d{4}-\d{2}-\d{2})"),
]
DESCRIPTION_PATTERN = re.compile(r"(?i)\b(?:description|project|job\s+name)\s*:?\s*(.+)")
CUSTOMER_PO_PATTERN = re.compile(r"(?i)\bcustomer\s+p\.?o\.?\s*#?\s*:?\s*([A-Z0-9][A-Z0-9_-]+)")


@dataclass
class ExtractedFields:
    amount: Decimal | None = None
    po_number: str | None = None
    customer_po_number: str | None = None
    delivery_date: date | None = None
    quantity: int | None = None
    description: str | None = None
    raw_text: str = ""

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop("raw_text")
        if self.amount is not None:
            data["amount"] = str(self.amount)
        if self.delivery_date is not None:
            data["delivery_date"] = self.delivery_date.isoformat()
        return data


def extract_text(data: bytes) -> str:
    """Concatenated text of every page. Raises ExtractionError if unreadable."""
    import pdfplumber

    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
    except Exception as e:
        raise ExtractionError(f"Could not read PDF: {e}") from e

    text = "\n".join(pages).strip()
    if not text:
        raise ExtractionError("PDF has no text layer")
    return text


def _first(patterns, text):
    for pattern in patterns:
        m = pattern.search(text)
        if m:
            return m.group(1)
    return None


def _parse_amount(raw: str | None) -> Decimal | None:
    if not raw:
        return None
    try:
        return Decimal(raw.replace(",", ""))
    except InvalidOperation:
        return None


def _parse_int(raw: str | None) -> int | None:
    digits = (raw or "").replace(",", "")
    return int(digits) if digits.isdigit() else None


def _parse_date(raw: str | None) -> date | None:
    if not raw:
        return None
    for fmt in ("%m/%d/%Y", "%m/%d/%y", "%Y-%m-%d"):
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    return None


def parse_fields(text: str) -> ExtractedFields:
    """Pull known fields out of document text."""
    from .po_number import find_po_number

    desc = DESCRIPTION_PATTERN.search(text)
    cust_po = CUSTOMER_PO_PATTERN.search(text)
    return ExtractedFields(
        amount=_parse_amount(_first(AMOUNT_PATTERNS, text)),
        po_number=find_po_number(text),
        customer_po_number=cust_po.group(1).upper() if cust_po else None,
        delivery_date=_parse_date(_first(DATE_PATTERNS, text)),
        quantity=_parse_int(_first(QUANTITY_PATTERNS, text)),
        description=desc.group(1).strip()[:500] if desc else None,
        raw_text=text,
    )


def extract(data: bytes) -> ExtractedFields:
    """Best-effort fields from a PDF; raises ExtractionError when unreadable."""
    text = extract_text(data)
    try:
        fields = parse_fields(text)
    except Exception as e:
        raise ExtractionError(f"Could not parse document fields: {e}") from e
    log.info(
        "Extracted document fields: po=%s amount=%s qty=%s",
        fields.po_number, fields.amount, fields.quantity,
    )
    return fields
