"""Purchase order and intermediary webhook models."""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..database import UTCDateTime
from .base import Base


def target_key_for(target_company_id: int | None = None, target_vendor_id: int | None = None) -> str:
    """Uniqueness key for a PO target; companies and vendors live in separate tables."""
    if target_company_id is not None:
        return f"company:{target_company_id}"
    return f"vendor:{target_vendor_id}"


class PurchaseOrder(Base):
    """One hop of the purchase-order chain for a job."""

    __tablename__ = "purchase_orders"
    id = Column(Integer, primary_key=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False)
    origin_company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    target_company_id = Column(Integer, ForeignKey("companies.id"))
    target_vendor_id = Column(Integer, ForeignKey("vendors.id"))
    target_key = Column(String(50), nullable=False)

    original_amount = Column(Numeric(12, 2), nullable=False)
    vendor_amount = Column(Numeric(12, 2), nullable=False)
    margin_amount = Column(Numeric(12, 2), nullable=False)
    vendor_cpm = Column(Numeric(12, 4))

    po_number = Column(String(50))
    po_number_source = Column(String(20))  # manual, extracted, generated
    reference_po_number = Column(String(100))
    external_ref = Column(String(200), unique=True)
    pdf_file_id = Column(Integer, ForeignKey("job_files.id"))

    status = Column(String(20), nullable=False, default="PENDING")
    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        UTCDateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    job = relationship("Job", back_populates="purchase_orders")
    origin_company = relationship("Company", foreign_keys=[origin_company_id])
    target_company = relationship("Company", foreign_keys=[target_company_id])
    target_vendor = relationship("Vendor", foreign_keys=[target_vendor_id])
    pdf_file = relationship("JobFile", foreign_keys=[pdf_file_id])

    __table_args__ = (
        UniqueConstraint("job_id", "origin_company_id", "target_key", name="uq_po_job_origin_target"),
        CheckConstraint(
            "(target_company_id IS NULL) <> (target_vendor_id IS NULL)",
            name="ck_po_single_target",
        ),
        Index("ix_po_job", "job_id"),
        Index("ix_po_status", "status"),
    )

    @property
    def target_name(self) -> str:
        target = self.target_company or self.target_vendor
        return target.name if target else ""


class WebhookEvent(Base):
    """Raw inbound webhook payload, kept for audit and replay."""

    __tablename__ = "webhook_events"
    id = Column(Integer, primary_key=True)
    source = Column(String(30), nullable=False)
    payload = Column(JSON, nullable=False)
    processed = Column(Boolean, default=False)
    error = Column(String(1000))
    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))
