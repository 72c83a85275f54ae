"""
routers/proofs.py — Proof Routes

Upload proof versions, approve or request changes, and resolve customer
share links.

Business Rules:
- Each upload is a new version (1, 2, ...) and moves the job to
  READY_FOR_PROOF
- Approval always succeeds once recorded; a customer invoice failure is
  reported in invoice_error, not as an HTTP error
- Change requests require comments
- Expired share links answer 404

Called by: main.py (router mount)
Depends on: services/settlement_orchestrator.py
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.proofs import ProofApprove, ProofChangesRequest, ProofUpload
from ..services import settlement_orchestrator

router = APIRouter(tags=["proofs"])


def proof_to_dict(proof) -> dict:
    return {
        "id": proof.id,
        "job_id": proof.job_id,
        "job_no": proof.job.job_no if proof.job else None,
        "version": proof.version,
        "status": proof.status,
        "file_name": proof.file.file_name if proof.file else None,
        "share_token": proof.share_token,
        "share_expires_at": proof.share_expires_at.isoformat() if proof.share_expires_at else None,
        "admin_notes": proof.admin_notes,
        "approvals": [
            {
                "approved": a.approved,
                "comments": a.comments,
                "approved_by": a.approved_by,
                "created_at": a.created_at.isoformat() if a.created_at else None,
            }
            for a in proof.approvals
        ],
        "created_at": proof.created_at.isoformat() if proof.created_at else None,
    }


@router.post("/api/jobs/{job_id}/proofs", status_code=201)
async def upload_proof(job_id: int, body: ProofUpload, db: Session = Depends(get_db)):
    proof = settlement_orchestrator.on_proof_uploaded(db, job_id, **body.model_dump())
    return proof_to_dict(proof)


@router.get("/api/jobs/{job_id}/proofs")
async def list_proofs(job_id: int, db: Session = Depends(get_db)):
    return [proof_to_dict(p) for p in settlement_orchestrator.list_proofs(db, job_id)]


@router.post("/api/proofs/{proof_id}/approve")
async def approve_proof(proof_id: int, body: ProofApprove | None = None, db: Session = Depends(get_db)):
    body = body or ProofApprove()
    result = settlement_orchestrator.on_proof_approved(
        db, proof_id, approved_by=body.approved_by, comments=body.comments
    )
    invoice = result["invoice"]
    return {
        "proof": proof_to_dict(result["proof"]),
        "job_status": result["job"].status,
        "invoice": {
            "id": invoice.id,
            "invoice_no": invoice.invoice_no,
            "amount": float(invoice.amount),
        } if invoice else None,
        "invoice_error": result["invoice_error"],
    }


@router.post("/api/proofs/{proof_id}/request-changes")
async def request_changes(proof_id: int, body: ProofChangesRequest, db: Session = Depends(get_db)):
    proof = settlement_orchestrator.on_changes_requested(
        db, proof_id, body.comments, requested_by=body.requested_by
    )
    return proof_to_dict(proof)


@router.get("/api/proofs/share/{token}")
async def shared_proof(token: str, db: Session = Depends(get_db)):
    proof = settlement_orchestrator.get_proof_by_share_token(db, token)
    return {
        "job_no": proof.job.job_no,
        "version": proof.version,
        "status": proof.status,
        "file_name": proof.file.file_name if proof.file else None,
        "description": proof.job.description,
        "quantity": proof.job.quantity,
    }
