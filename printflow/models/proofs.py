"""Proof models — versioned proofs and their approval decisions."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from ..database import UTCDateTime
from .base import Base


class Proof(Base):
    __tablename__ = "proofs"
    id = Column(Integer, primary_key=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False)
    file_id = Column(Integer, ForeignKey("job_files.id"), nullable=False)
    version = Column(Integer, nullable=False)
    status = Column(String(30), nullable=False, default="PENDING")
    share_token = Column(String(64), unique=True)
    share_expires_at = Column(UTCDateTime)
    admin_notes = Column(Text)
    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))

    job = relationship("Job", back_populates="proofs")
    file = relationship("JobFile", foreign_keys=[file_id])
    approvals = relationship("ProofApproval", back_populates="proof", order_by="ProofApproval.id")

    __table_args__ = (
        UniqueConstraint("job_id", "version", name="uq_proof_job_version"),
        Index("ix_proofs_job", "job_id"),
    )


class ProofApproval(Base):
    """A customer decision on a proof: approval or change request."""

    __tablename__ = "proof_approvals"
    id = Column(Integer, primary_key=True)
    proof_id = Column(Integer, ForeignKey("proofs.id", ondelete="CASCADE"), nullable=False)
    approved = Column(Boolean, nullable=False)
    comments = Column(Text)
    approved_by = Column(String(255))
    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))

    proof = relationship("Proof", back_populates="approvals")
