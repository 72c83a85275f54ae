"""Invoice models and the year-scoped document number sequence."""

from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from ..database import UTCDateTime
from .base import Base


class Invoice(Base):
    """Bill from one party to the next for a job."""

    __tablename__ = "invoices"
    id = Column(Integer, primary_key=True)
    invoice_no = Column(String(30), nullable=False, unique=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False)
    from_company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    to_company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    issued_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    due_at = Column(UTCDateTime, nullable=False)
    paid_at = Column(UTCDateTime)
    pdf_file_id = Column(Integer, ForeignKey("job_files.id"))
    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))

    job = relationship("Job", back_populates="invoices")
    from_company = relationship("Company", foreign_keys=[from_company_id])
    to_company = relationship("Company", foreign_keys=[to_company_id])

    __table_args__ = (
        UniqueConstraint("job_id", "from_company_id", "to_company_id", name="uq_invoice_job_from_to"),
        Index("ix_invoices_job", "job_id"),
    )

    @property
    def is_paid(self) -> bool:
        return self.paid_at is not None


class DocumentSequence(Base):
    """Last number issued per document kind (JOB, INVOICE) and calendar year."""

    __tablename__ = "document_sequences"
    kind = Column(String(20), primary_key=True)
    year = Column(Integer, primary_key=True, autoincrement=False)
    last_value = Column(Integer, nullable=False, default=0)
