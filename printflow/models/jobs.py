"""Job models — jobs, their uploaded files, and the manual-edit activity log."""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    event,
)
from sqlalchemy.orm import Session, relationship

from ..database import UTCDateTime
from ..exceptions import InvariantViolationError
from .base import Base


class Job(Base):
    """One customer order and its settlement amounts."""

    __tablename__ = "jobs"
    id = Column(Integer, primary_key=True)
    job_no = Column(String(30), nullable=False, unique=True)
    customer_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    customer_po_number = Column(String(100))
    description = Column(Text)

    size_id = Column(String(50))
    quantity = Column(Integer, nullable=False)
    job_type = Column(String(30))  # FLAT, FOLDED, BOOKLET_SELF_COVER, BOOKLET_PLUS_COVER
    specs = Column(JSON, default=dict)

    routing_type = Column(String(30), nullable=False, default="STANDARD")
    vendor_id = Column(Integer, ForeignKey("vendors.id"))
    vendor_amount = Column(Numeric(12, 2))
    intermediary_cut = Column(Numeric(12, 2))

    custom_price = Column(Numeric(12, 2))
    customer_cpm = Column(Numeric(12, 4))
    customer_total = Column(Numeric(12, 2))
    intermediary_cpm = Column(Numeric(12, 4))
    intermediary_total = Column(Numeric(12, 2))
    intermediary_margin = Column(Numeric(12, 2))
    producer_cpm = Column(Numeric(12, 4))
    producer_total = Column(Numeric(12, 2))
    broker_margin = Column(Numeric(12, 2))
    paper_cost_cpm = Column(Numeric(12, 4))
    paper_cost_total = Column(Numeric(12, 2))
    paper_charged_cpm = Column(Numeric(12, 4))
    paper_charged_total = Column(Numeric(12, 2))
    is_loss = Column(Boolean, default=False)
    loss_amount = Column(Numeric(12, 2), default=0)
    requires_approval = Column(Boolean, default=False)
    approval_reason = Column(Text)

    status = Column(String(30), nullable=False, default="PENDING")

    required_artwork_count = Column(Integer, default=1)
    required_data_file_count = Column(Integer, default=0)
    ready_for_production = Column(Boolean, default=False)
    ready_at = Column(UTCDateTime)

    completed_at = Column(UTCDateTime)
    deleted_at = Column(UTCDateTime)
    deleted_by = Column(String(255))
    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        UTCDateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    customer = relationship("Company", foreign_keys=[customer_id])
    vendor = relationship("Vendor", foreign_keys=[vendor_id])
    files = relationship("JobFile", back_populates="job", order_by="JobFile.id")
    activities = relationship("JobActivity", back_populates="job", order_by="JobActivity.id")
    purchase_orders = relationship("PurchaseOrder", back_populates="job", order_by="PurchaseOrder.id")
    invoices = relationship("Invoice", back_populates="job", order_by="Invoice.id")
    proofs = relationship("Proof", back_populates="job", order_by="Proof.version")

    __table_args__ = (
        Index("ix_jobs_customer", "customer_id"),
        Index("ix_jobs_status", "status"),
        Index("ix_jobs_vendor", "vendor_id"),
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_priced(self) -> bool:
        return all(
            v is not None
            for v in (
                self.customer_total,
                self.broker_margin,
                self.intermediary_total,
                self.intermediary_margin,
                self.producer_total,
            )
        )

    def chain_invariant_errors(self) -> list[str]:
        """Return a message per broken chain identity; empty when consistent."""
        errors = []
        if self.customer_total is not None and self.broker_margin is not None and self.intermediary_total is not None:
            if _dec(self.customer_total) != _dec(self.broker_margin) + _dec(self.intermediary_total):
                errors.append(
                    f"customer_total {self.customer_total} != broker_margin {self.broker_margin}"
                    f" + intermediary_total {self.intermediary_total}"
                )
        if (
            self.intermediary_total is not None
            and self.intermediary_margin is not None
            and self.producer_total is not None
        ):
            if _dec(self.intermediary_total) != _dec(self.intermediary_margin) + _dec(self.producer_total):
                errors.append(
                    f"intermediary_total {self.intermediary_total} != intermediary_margin"
                    f" {self.intermediary_margin} + producer_total {self.producer_total}"
                )
        return errors


def _dec(value) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))


@event.listens_for(Session, "before_flush")
def _enforce_chain_invariants(session, flush_context, instances):
    """Abort the flush if any new or dirty job breaks the amount chain."""
    for obj in list(session.new) + list(session.dirty):
        if isinstance(obj, Job):
            errors = obj.chain_invariant_errors()
            if errors:
                raise InvariantViolationError(
                    f"Job {obj.job_no}: " + "; ".join(errors), job_no=obj.job_no
                )


class JobFile(Base):
    """Metadata for a file uploaded against a job (storage is external)."""

    __tablename__ = "job_files"
    id = Column(Integer, primary_key=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False)
    kind = Column(String(20), nullable=False)  # ARTWORK, DATA_FILE, PROOF, INVOICE, PO_PDF
    file_name = Column(String(500), nullable=False)
    mime_type = Column(String(100))
    size_bytes = Column(Integer)
    checksum = Column(String(128))
    storage_ref = Column(String(1000))
    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))

    job = relationship("Job", back_populates="files")

    __table_args__ = (Index("ix_job_files_job_kind", "job_id", "kind"),)


class JobActivity(Base):
    """One changed field from a manual job edit."""

    __tablename__ = "job_activities"
    id = Column(Integer, primary_key=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False)
    action = Column(String(50), nullable=False, default="JOB_UPDATED")
    field = Column(String(100))
    old_value = Column(Text)
    new_value = Column(Text)
    changed_by = Column(String(255))
    changed_by_role = Column(String(50))
    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))

    job = relationship("Job", back_populates="activities")

    __table_args__ = (Index("ix_job_activities_job", "job_id"),)
