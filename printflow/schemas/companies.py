"""
schemas/companies.py — Pydantic models for party and vendor endpoints

Called by: routers/companies.py
Depends on: pydantic
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator


class CompanyCreate(BaseModel):
    name: str
    role: Literal["BROKER", "INTERMEDIARY", "PRODUCER", "CUSTOMER"]
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    notification_emails: list[str] = Field(default_factory=list)
    payment_terms_days: int | None = Field(default=None, gt=0)

    @field_validator("name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Company name must not be blank")
        return v


class VendorCreate(BaseModel):
    name: str
    email: str | None = None
    phone: str | None = None
    notification_emails: list[str] = Field(default_factory=list)
    payment_terms_days: int | None = Field(default=None, gt=0)

    @field_validator("name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Vendor name must not be blank")
        return v
