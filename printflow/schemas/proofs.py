"""
schemas/proofs.py — Pydantic models for proof endpoints

Business Rules:
- A change request must carry non-blank comments

Called by: routers/proofs.py
Depends on: pydantic
"""

from __future__ import annotations

from pydantic import BaseModel, field_validator


class ProofUpload(BaseModel):
    file_name: str
    mime_type: str | None = "application/pdf"
    size_bytes: int | None = None
    storage_ref: str | None = None
    admin_notes: str | None = None


class ProofApprove(BaseModel):
    approved_by: str | None = None
    comments: str | None = None


class ProofChangesRequest(BaseModel):
    comments: str
    requested_by: str | None = None

    @field_validator("comments")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Comments are required when requesting changes")
        return v
