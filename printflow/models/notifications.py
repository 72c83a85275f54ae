"""Notification outbox — audit log and delivery queue in one table."""

from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from ..database import UTCDateTime
from .base import Base


class Notification(Base):
    __tablename__ = "notifications"
    id = Column(Integer, primary_key=True)
    type = Column(String(50), nullable=False)
    job_id = Column(Integer, ForeignKey("jobs.id"))
    recipient = Column(String(255), nullable=False)
    subject = Column(String(500), nullable=False)
    body = Column(Text, nullable=False)
    attachment_kind = Column(String(30))  # INVOICE, PURCHASE_ORDER
    attachment_id = Column(Integer)
    status = Column(String(20), nullable=False, default="PENDING")
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text)
    delivery_id = Column(String(255))
    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))
    sent_at = Column(UTCDateTime)

    job = relationship("Job", foreign_keys=[job_id])

    __table_args__ = (
        Index("ix_notifications_status", "status"),
        Index("ix_notifications_job", "job_id"),
    )
