"""
tests/test_document_extraction.py -- Tests for services/document_extraction.py

Field parsing runs on plain text; PDF reading is patched out.

Called by: pytest
Depends on: services/document_extraction.py
"""

from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest

from printflow.exceptions import ExtractionError
from printflow.services.document_extraction import extract, parse_fields

PO_TEXT = """PURCHASE ORDER BRA-12345
Customer PO #: acme-7781
Project: Spring self-mailer
Quantity: 10,000
Delivery Date: 04/15/2026
Total: $347.40
"""


class TestParseFields:
    def test_labelled_fields(self):
        fields = parse_fields(PO_TEXT)
        assert fields.customer_po_number == "ACME-7781"
        assert fields.description == "Spring self-mailer"
        assert fields.quantity == 10000
        assert fields.delivery_date == date(2026, 4, 15)
        assert fields.amount == Decimal("347.40")

    def test_quantity_header_without_number(self):
        fields = parse_fields("PURCHASE ORDER BRA-12345\nItem Quantity, Price\nTotal: $1,234.00")
        assert fields.quantity is None
        assert fields.amount == Decimal("1234.00")

    @pytest.mark.parametrize("text", ["Qty: ,,,", "Quantity ,5", ",,, pcs", "Total: $,.00"])
    def test_punctuation_only_numbers_ignored(self, text):
        fields = parse_fields(text)
        assert fields.quantity is None
        assert fields.amount is None

    def test_pieces_suffix(self):
        assert parse_fields("Run of 25,000 pieces").quantity == 25000

    def test_unknown_fields_are_none(self):
        fields = parse_fields("nothing useful here")
        assert fields.to_dict() == {
            "amount": None, "po_number": None, "customer_po_number": None,
            "delivery_date": None, "quantity": None, "description": None,
        }


class TestExtract:
    def test_reads_text_layer(self):
        with patch("printflow.services.document_extraction.extract_text", return_value=PO_TEXT):
            assert extract(b"%PDF").amount == Decimal("347.40")

    def test_parse_failure_reported_as_extraction_error(self):
        with patch("printflow.services.document_extraction.extract_text", return_value="text"), \
                patch("printflow.services.document_extraction.parse_fields", side_effect=ValueError("bad")):
            with pytest.raises(ExtractionError, match="bad"):
                extract(b"%PDF")

    def test_unreadable_pdf(self):
        with pytest.raises(ExtractionError):
            extract(b"not a pdf")
