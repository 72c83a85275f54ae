"""Party models — brokerage companies and third-party vendors."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, Index, Integer, String, Text

from ..database import UTCDateTime
from .base import Base


class Company(Base):
    """A named party in the chain: broker, intermediary, producer, or customer."""

    __tablename__ = "companies"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False)  # BROKER, INTERMEDIARY, PRODUCER, CUSTOMER
    email = Column(String(255))
    phone = Column(String(50))
    address = Column(Text)
    notification_emails = Column(JSON, default=list)
    payment_terms_days = Column(Integer)  # overrides the default terms when set
    is_active = Column(Boolean, default=True)
    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (Index("ix_companies_role", "role"),)

    @property
    def recipients(self) -> list[str]:
        emails = list(self.notification_emails or [])
        if not emails and self.email:
            emails = [self.email]
        return emails


class Vendor(Base):
    """Third-party vendor that replaces the producer on a direct route."""

    __tablename__ = "vendors"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255))
    phone = Column(String(50))
    notification_emails = Column(JSON, default=list)
    payment_terms_days = Column(Integer)
    is_active = Column(Boolean, default=True)
    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))

    @property
    def recipients(self) -> list[str]:
        emails = list(self.notification_emails or [])
        if not emails and self.email:
            emails = [self.email]
        return emails
