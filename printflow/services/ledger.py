"""Unique inserts for ledger rows (purchase orders, invoices).

insert_unique() runs the insert inside a SAVEPOINT so a uniqueness
violation only discards that insert, leaving the caller's transaction
usable for re-reading the row that won.
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..exceptions import ConflictError

log = logging.getLogger("printflow.ledger")


def insert_unique(db: Session, obj, prepare=None):
    """Flush obj in a savepoint. Raises ConflictError on a unique violation.

    prepare(db, obj), if given, runs inside the same savepoint so work it
    does (e.g. allocating a sequence number) is undone with the insert.
    """
    try:
        with db.begin_nested():
            if prepare is not None:
                prepare(db, obj)
            db.add(obj)
    except IntegrityError as e:
        log.info("Insert of %s rejected by unique constraint", obj.__class__.__name__)
        raise ConflictError(f"{obj.__class__.__name__} already exists") from e
    return obj
