"""
schemas/jobs.py — Pydantic models for job endpoints

Business Rules:
- Quantity must be positive
- STANDARD jobs need a size; THIRD_PARTY_VENDOR jobs need a vendor and a
  non-negative vendor amount (checked by the routing resolver)
- Custom price, when given, is the customer's total and must be positive
- Files are recorded by metadata only; storage lives elsewhere

Called by: routers/jobs.py
Depends on: pydantic, schemas/job_specs.py
"""

from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from .job_specs import JobSpecs


class JobCreate(BaseModel):
    customer_id: int
    quantity: int = Field(gt=0)
    size_id: str | None = None
    customer_po_number: str | None = None
    description: str | None = None
    routing_type: Literal["STANDARD", "THIRD_PARTY_VENDOR"] = "STANDARD"
    vendor_id: int | None = None
    vendor_amount: Decimal | None = None
    intermediary_cut: Decimal | None = None
    custom_price: Decimal | None = Field(default=None, gt=0)
    specs: JobSpecs | None = None
    required_artwork_count: int = Field(default=1, ge=0)
    required_data_file_count: int = Field(default=0, ge=0)

    @field_validator("customer_po_number", "description")
    @classmethod
    def strip_blank(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


class JobUpdate(BaseModel):
    quantity: int | None = Field(default=None, gt=0)
    size_id: str | None = None
    customer_po_number: str | None = None
    description: str | None = None
    custom_price: Decimal | None = Field(default=None, gt=0)
    vendor_amount: Decimal | None = Field(default=None, ge=0)
    intermediary_cut: Decimal | None = Field(default=None, ge=0)
    specs: JobSpecs | None = None
    required_artwork_count: int | None = Field(default=None, ge=0)
    required_data_file_count: int | None = Field(default=None, ge=0)
    changed_by: str | None = None
    changed_by_role: str | None = None


class JobFileCreate(BaseModel):
    kind: Literal["ARTWORK", "DATA_FILE", "PROOF", "INVOICE", "PO_PDF"]
    file_name: str
    mime_type: str | None = None
    size_bytes: int | None = Field(default=None, gt=0)
    checksum: str | None = None
    storage_ref: str | None = None

    @field_validator("file_name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("file_name must not be blank")
        return v


class JobDelete(BaseModel):
    deleted_by: str | None = None


class JobComplete(BaseModel):
    completed_by: str | None = None
