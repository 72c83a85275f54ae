"""
schemas/purchase_orders.py — Pydantic models for PO endpoints and webhooks

Business Rules:
- Edited amounts are non-negative; margin is always recomputed server-side
- Webhook amount must be positive
- PO number format is checked by services/po_number.py, not here, so a bad
  number yields the domain error message

Called by: routers/purchase_orders.py
Depends on: pydantic
"""

from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field


class PurchaseOrderUpdate(BaseModel):
    original_amount: Decimal | None = Field(default=None, ge=0)
    vendor_amount: Decimal | None = Field(default=None, ge=0)
    po_number: str | None = None
    reference_po_number: str | None = None


class PurchaseOrderStatusUpdate(BaseModel):
    status: Literal["PENDING", "CONFIRMED", "RECEIVED", "CANCELLED"]


class IntermediaryPOWebhook(BaseModel):
    component_id: str = Field(min_length=1)
    estimate_number: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    job_no: str | None = None
    po_number: str | None = None
    pdf_url: str | None = None
