"""
po_number.py — PO number validation, normalization, and PDF extraction

Business Rules:
- Valid: starts with a letter or digit, then 2-49 letters, digits, hyphens
  or underscores (case-insensitive, surrounding whitespace ignored)
- Stored form is trimmed and uppercased
- Extraction tries labelled patterns first ("PO #", "Purchase Order",
  "P.O.", "Order Number"), then bare BRA-nnnn and XX-nnnn tokens
- Extraction returns None rather than raising; callers fall back to a
  generated number
- Generated fallback: <prefix>-<job number>; the customer PO is kept as the
  PO's reference number, not used in the fallback

Called by: services/po_chain.py
Depends on: services/document_extraction.py (pdfplumber text layer)
"""

import logging
import re

from ..exceptions import ExtractionError

log = logging.getLogger("printflow.po_number")

PO_NUMBER_RE = re.compile(r"^[A-Z0-9][A-Z0-9_-]{2,49}$", re.IGNORECASE)

_EXTRACTION_PATTERNS = [
    re.compile(r"\bPO\s*(?:Number|No\b\.?)?\s*#?\s*:?\s*([A-Z0-9][A-Z0-9_-]+)", re.IGNORECASE),
    re.compile(r"Purchase\s+Order\s*#?\s*:?\s*([A-Z0-9][A-Z0-9_-]+)", re.IGNORECASE),
    re.compile(r"P\.O\.\s*#?\s*:?\s*([A-Z0-9][A-Z0-9_-]+)", re.IGNORECASE),
    re.compile(r"Order\s+(?:Number|No\b\.?)\s*#?\s*:?\s*([A-Z0-9][A-Z0-9_-]+)", re.IGNORECASE),
    re.compile(r"\b(BRA-\d{4,})\b", re.IGNORECASE),
    re.compile(r"\b([A-Z]{2,4}-\d{4,})\b"),
]

# Words the labelled patterns can capture that are never PO numbers
_STOPWORDS = {"NUMBER", "DATE", "NO", "TOTAL", "AMOUNT", "BOX", "NOTES"}


def validate_po_number(value: str | None) -> bool:
    if not value:
        return False
    return bool(PO_NUMBER_RE.match(value.strip()))


def normalize_po_number(value: str) -> str:
    return value.strip().upper()


def find_po_number(text: str) -> str | None:
    """First valid PO number found in document text."""
    for pattern in _EXTRACTION_PATTERNS:
        for m in pattern.finditer(text):
            candidate = normalize_po_number(m.group(1))
            if candidate in _STOPWORDS:
                continue
            if validate_po_number(candidate):
                return candidate
    return None


def extract_po_number(data: bytes) -> str | None:
    """PO number from a PDF, or None when absent or unreadable."""
    from .document_extraction import extract_text

    try:
        text = extract_text(data)
    except ExtractionError as e:
        log.warning("PO number extraction failed: %s", e)
        return None
    po_number = find_po_number(text)
    if po_number is None:
        log.info("No PO number pattern matched in %d chars of text", len(text))
    return po_number


def fallback_po_number(prefix: str, reference: str) -> str:
    """Generated PO number; always passes validate_po_number for a job number."""
    candidate = normalize_po_number(f"{prefix}-{reference}")
    candidate = re.sub(r"[^A-Z0-9_-]", "-", candidate)[:50]
    return candidate
