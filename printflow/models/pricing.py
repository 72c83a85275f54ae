"""Pricing rules per product size (overrides the built-in rate table)."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Integer, Numeric, String

from ..database import UTCDateTime
from .base import Base


class PricingRule(Base):
    __tablename__ = "pricing_rules"
    id = Column(Integer, primary_key=True)
    size_id = Column(String(50), nullable=False, unique=True)
    name = Column(String(100))
    paper_type = Column(String(255))
    print_cpm = Column(Numeric(12, 4), nullable=False)
    paper_charged_cpm = Column(Numeric(12, 4), nullable=False)
    paper_cost_cpm = Column(Numeric(12, 4), nullable=False)
    customer_cpm = Column(Numeric(12, 4), nullable=False)
    paper_weight_per_1000 = Column(Numeric(12, 4))
    paper_cost_per_lb = Column(Numeric(12, 4))
    is_active = Column(Boolean, default=True)
    updated_at = Column(
        UTCDateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
