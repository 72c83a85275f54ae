"""
schemas/pricing.py — Pydantic models for the pricing calculator endpoint

Called by: routers/pricing.py
Depends on: pydantic
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field


class PricingRequest(BaseModel):
    size_id: str
    quantity: int = Field(gt=0)
    custom_price: Decimal | None = Field(default=None, gt=0)


class VendorPricingRequest(BaseModel):
    quantity: int = Field(gt=0)
    customer_total: Decimal = Field(gt=0)
    vendor_amount: Decimal = Field(ge=0)
    intermediary_cut: Decimal = Field(default=Decimal("0"), ge=0)


class PricingRuleUpsert(BaseModel):
    size_id: str
    name: str | None = None
    paper_type: str | None = None
    print_cpm: Decimal = Field(ge=0)
    paper_charged_cpm: Decimal = Field(ge=0)
    paper_cost_cpm: Decimal = Field(ge=0)
    customer_cpm: Decimal = Field(gt=0)
    paper_weight_per_1000: Decimal | None = None
    paper_cost_per_lb: Decimal | None = None
