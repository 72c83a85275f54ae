"""initial schema - parties, jobs, purchase orders, invoices, proofs, outbox

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

Creates every table from the SQLAlchemy models, including the unique
constraints the settlement ledger relies on for idempotent creation.
"""
from typing import Sequence, Union

from alembic import op

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables from the models on the migration's connection.

    checkfirst=True makes it safe against a database where some tables
    already exist.
    """
    from printflow.models import Base

    Base.metadata.create_all(bind=op.get_bind(), checkfirst=True)


def downgrade() -> None:
    """Drop all tables. Destroys all ledger data."""
    from printflow.models import Base

    Base.metadata.drop_all(bind=op.get_bind())
