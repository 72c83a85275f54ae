"""
numbering.py — Year-scoped document numbers (J-YYYY-NNNNNN, INV-YYYY-NNNNNN)

Business Rules:
- Numbers are gapless and monotonic within (kind, year)
- Allocation is an atomic UPDATE ... SET last_value = last_value + 1 inside
  the caller's transaction; a rolled-back caller releases its number
- The first allocation of a year creates the sequence row; a concurrent
  creator losing the insert race simply retries the increment

Called by: services/job_service.py, services/invoice_generator.py
Depends on: models.DocumentSequence
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..constants import INVOICE_NUMBER_PREFIX, JOB_NUMBER_PREFIX, NUMBER_WIDTH
from ..models import DocumentSequence

log = logging.getLogger("printflow.numbering")

JOB = "JOB"
INVOICE = "INVOICE"


def _increment(db: Session, kind: str, year: int) -> int:
    return db.execute(
        update(DocumentSequence)
        .where(DocumentSequence.kind == kind, DocumentSequence.year == year)
        .values(last_value=DocumentSequence.last_value + 1)
        .execution_options(synchronize_session=False)
    ).rowcount


def next_value(db: Session, kind: str, year: int | None = None) -> int:
    """Allocate the next value for (kind, year) within the current transaction."""
    year = year or datetime.now(timezone.utc).year
    if not _increment(db, kind, year):
        try:
            with db.begin_nested():
                db.add(DocumentSequence(kind=kind, year=year, last_value=0))
        except IntegrityError:
            log.debug("Sequence %s/%d created concurrently", kind, year)
        _increment(db, kind, year)
    return db.execute(
        select(DocumentSequence.last_value).where(
            DocumentSequence.kind == kind, DocumentSequence.year == year
        )
    ).scalar_one()


def format_number(prefix: str, year: int, value: int) -> str:
    return f"{prefix}-{year}-{value:0{NUMBER_WIDTH}d}"


def next_job_number(db: Session, year: int | None = None) -> str:
    year = year or datetime.now(timezone.utc).year
    return format_number(JOB_NUMBER_PREFIX, year, next_value(db, JOB, year))


def next_invoice_number(db: Session, year: int | None = None) -> str:
    year = year or datetime.now(timezone.utc).year
    return format_number(INVOICE_NUMBER_PREFIX, year, next_value(db, INVOICE, year))
