"""
tests/test_numbering.py -- Tests for services/numbering.py

Called by: pytest
Depends on: services/numbering.py, models.DocumentSequence
"""

from printflow.models import DocumentSequence
from printflow.services.numbering import (
    INVOICE,
    JOB,
    format_number,
    next_invoice_number,
    next_job_number,
    next_value,
)


class TestNumbering:
    def test_first_value_is_one(self, db_session):
        assert next_value(db_session, JOB, 2026) == 1

    def test_values_increase_without_gaps(self, db_session):
        values = [next_value(db_session, INVOICE, 2026) for _ in range(5)]
        assert values == [1, 2, 3, 4, 5]

    def test_kinds_and_years_are_independent(self, db_session):
        next_value(db_session, JOB, 2026)
        next_value(db_session, JOB, 2026)
        assert next_value(db_session, INVOICE, 2026) == 1
        assert next_value(db_session, JOB, 2027) == 1
        assert db_session.query(DocumentSequence).count() == 3

    def test_rollback_releases_value(self, db_session):
        next_value(db_session, JOB, 2026)
        db_session.commit()
        next_value(db_session, JOB, 2026)
        db_session.rollback()
        assert next_value(db_session, JOB, 2026) == 2

    def test_formats(self, db_session):
        assert format_number("J", 2026, 42) == "J-2026-000042"
        assert next_job_number(db_session, 2026) == "J-2026-000001"
        assert next_invoice_number(db_session, 2026) == "INV-2026-000001"
