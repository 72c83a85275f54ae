"""
schemas/invoices.py — Pydantic models for invoice endpoints

Called by: routers/invoices.py
Depends on: pydantic
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class InvoiceEnsure(BaseModel):
    from_company_id: int
    to_company_id: int


class InvoiceUpdate(BaseModel):
    amount: Decimal | None = Field(default=None, gt=0)
    due_at: datetime | None = None


class InvoicePaid(BaseModel):
    paid_at: datetime | None = None
