"""
settlement_orchestrator.py — Lifecycle events → purchase orders, invoices, notifications

Top-level state machine. Each handler is one unit of work: it changes
ledger state, queues its notifications in the same transaction, commits,
and leaves delivery to the outbox dispatcher.

Business Rules:
- Job creation prices the job and materializes every hop's PO
- Files uploaded: when the job first becomes ready, POs are re-ensured and
  ready-for-production notices are queued
- Proof upload: version = latest + 1 (first is 1), share link valid for
  proof_share_days, job → READY_FOR_PROOF
- Proof approval: record approval, job → PROOF_APPROVED, queue the customer
  notice and commit; only then try the customer invoice. An invoicing
  failure is logged and left for remediation; the approval stands
- Only the latest proof version moves the job
- Re-approving an approved proof records nothing new but retries the invoice
- Changes requested: comments required, job → IN_PRODUCTION
- Completion: generates the full invoice chain, job → COMPLETED
- Cancel: job → CANCELLED, open POs cancelled
- remediate_job re-runs the idempotent ensures a job's status calls for

Called by: routers/*, scripts/remediate_missing_documents.py
Depends on: services/job_service.py, services/po_chain.py,
            services/invoice_generator.py, services/notification_service.py
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import settings
from ..constants import FileKind, JobStatus, ProofStatus
from ..exceptions import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from ..models import JobActivity, Proof, ProofApproval
from . import invoice_generator, job_service, notification_service, po_chain
from .ledger import insert_unique

log = logging.getLogger("printflow.settlement")

PROOF_VERSION_RETRIES = 3


# ── Jobs ────────────────────────────────────────────────────────────


def create_job(db: Session, **fields):
    """Create, price and route a job, then materialize its POs. Commits."""
    job, breakdown = job_service.create_job(db, **fields)
    on_job_created(db, job, breakdown)
    db.commit()
    return job


def on_job_created(db: Session, job, breakdown=None) -> list:
    results = po_chain.ensure_chain(db, job, breakdown)
    notification_service.notify_job_submitted(db, job)
    return [po for po, _ in results]


def on_files_uploaded(db: Session, job_id: int, files: list[dict]) -> dict:
    """Record uploaded files and react to the job becoming ready. Commits."""
    job = job_service.get_job(db, job_id)
    if job.status in JobStatus.TERMINAL:
        raise InvalidTransitionError(f"Job {job.job_no} is {job.status.lower()}")
    added = [job_service.add_job_file(db, job, **f) for f in files]
    became_ready = job_service.update_job_readiness(db, job)
    if became_ready:
        po_chain.ensure_chain(db, job)
        notification_service.notify_job_ready(db, job)
    db.commit()
    readiness = job_service.check_job_readiness(db, job)
    return {"files": added, "became_ready": became_ready, "readiness": readiness}


def complete_job(db: Session, job_id: int, completed_by: str | None = None):
    """External completion signal: invoice chain + COMPLETED. Commits."""
    job = job_service.get_job(db, job_id)
    if not job_service.can_transition(job.status, JobStatus.COMPLETED):
        raise InvalidTransitionError(f"Job {job.job_no} cannot be completed from {job.status}")
    try:
        po_chain.ensure_chain(db, job)
        invoices = invoice_generator.generate_invoice_chain(db, job)
        job_service.transition_job(job, JobStatus.COMPLETED)
        db.add(JobActivity(job_id=job.id, action="JOB_COMPLETED", changed_by=completed_by))
        for invoice, created in invoices:
            if created:
                notification_service.notify_invoice(db, invoice)
        notification_service.notify_job_completed(db, job)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return job, [inv for inv, _ in invoices]


def cancel_job(db: Session, job_id: int, cancelled_by: str | None = None):
    job = job_service.get_job(db, job_id)
    job_service.transition_job(job, JobStatus.CANCELLED)
    cancelled = po_chain.cancel_open_pos(db, job)
    db.add(JobActivity(job_id=job.id, action="JOB_CANCELLED", changed_by=cancelled_by))
    notification_service.notify_job_cancelled(db, job, cancelled)
    db.commit()
    log.info("Job %s cancelled; %d open PO(s) cancelled", job.job_no, cancelled)
    return job


def remediate_job(db: Session, job) -> dict:
    """Create any POs and invoices the job's status says should exist. Commits."""
    summary = {"job_no": job.job_no, "pos_created": 0, "invoices_created": 0}
    if job.is_deleted or job.status == JobStatus.CANCELLED:
        return summary
    for _, created in po_chain.ensure_chain(db, job):
        summary["pos_created"] += int(created)

    invoices = []
    if job.status == JobStatus.COMPLETED:
        invoices = invoice_generator.generate_invoice_chain(db, job)
    elif job.status == JobStatus.PROOF_APPROVED or has_approved_latest_proof(db, job):
        invoices = [invoice_generator.ensure_customer_invoice(db, job)]
    for invoice, created in invoices:
        if created:
            summary["invoices_created"] += 1
            notification_service.notify_invoice(db, invoice)
    db.commit()
    if summary["pos_created"] or summary["invoices_created"]:
        log.info("Remediated job %s: %s", job.job_no, summary)
    return summary


# ── Proofs ──────────────────────────────────────────────────────────


def latest_proof_version(db: Session, job_id: int) -> int:
    return db.query(func.max(Proof.version)).filter(Proof.job_id == job_id).scalar() or 0


def has_approved_latest_proof(db: Session, job) -> bool:
    latest = latest_proof_version(db, job.id)
    if not latest:
        return False
    proof = db.query(Proof).filter_by(job_id=job.id, version=latest).first()
    return proof.status == ProofStatus.APPROVED


def get_proof(db: Session, proof_id: int) -> Proof:
    proof = db.get(Proof, proof_id)
    if proof is None:
        raise NotFoundError(f"Proof {proof_id} not found", proof_id=proof_id)
    return proof


def list_proofs(db: Session, job_id: int) -> list[Proof]:
    return db.query(Proof).filter_by(job_id=job_id).order_by(Proof.version).all()


def get_proof_by_share_token(db: Session, token: str) -> Proof:
    proof = db.query(Proof).filter_by(share_token=token).first()
    if proof is None:
        raise NotFoundError("Share link not found")
    if proof.share_expires_at and proof.share_expires_at < datetime.now(timezone.utc):
        raise NotFoundError("Share link has expired")
    return proof


def _assign_version(db: Session, proof: Proof) -> None:
    proof.version = latest_proof_version(db, proof.job_id) + 1


def on_proof_uploaded(
    db: Session,
    job_id: int,
    file_name: str,
    mime_type: str | None = "application/pdf",
    size_bytes: int | None = None,
    storage_ref: str | None = None,
    admin_notes: str | None = None,
) -> Proof:
    """New proof version for a job; job → READY_FOR_PROOF. Commits."""
    job = job_service.get_job(db, job_id)
    if not job_service.can_transition(job.status, JobStatus.READY_FOR_PROOF):
        raise InvalidTransitionError(f"Job {job.job_no} cannot take a proof in status {job.status}")

    file = job_service.add_job_file(
        db, job, FileKind.PROOF, file_name,
        mime_type=mime_type, size_bytes=size_bytes, storage_ref=storage_ref,
    )
    for attempt in range(PROOF_VERSION_RETRIES):
        proof = Proof(
            job_id=job.id,
            file_id=file.id,
            status=ProofStatus.PENDING,
            share_token=uuid.uuid4().hex,
            share_expires_at=datetime.now(timezone.utc) + timedelta(days=settings.proof_share_days),
            admin_notes=admin_notes,
        )
        try:
            insert_unique(db, proof, prepare=_assign_version)
            break
        except ConflictError:
            log.info("Job %s: proof version race, retrying (attempt %d)", job.job_no, attempt + 1)
    else:
        raise ConflictError(f"Could not allocate a proof version for job {job.job_no}")

    job_service.transition_job(job, JobStatus.READY_FOR_PROOF)
    notification_service.notify_proof_ready(db, job, proof)
    db.commit()
    log.info("Proof v%d uploaded for job %s", proof.version, job.job_no)
    return proof


def on_proof_approved(
    db: Session,
    proof_id: int,
    approved_by: str | None = None,
    comments: str | None = None,
) -> dict:
    """Approve a proof, then attempt the customer invoice.

    Steps 1-3 (approval record, job status, customer notice) commit
    before invoicing is attempted; an invoicing error is logged and
    returned, never raised.
    """
    proof = get_proof(db, proof_id)
    job = job_service.get_job(db, proof.job_id)
    is_latest = proof.version == latest_proof_version(db, job.id)

    if proof.status == ProofStatus.CHANGES_REQUESTED:
        raise InvalidTransitionError(f"Proof v{proof.version} already has changes requested")

    if proof.status == ProofStatus.PENDING:
        if is_latest and job.status != JobStatus.PROOF_APPROVED:
            if not job_service.can_transition(job.status, JobStatus.PROOF_APPROVED):
                raise InvalidTransitionError(
                    f"Job {job.job_no} cannot be approved from status {job.status}"
                )
        db.add(ProofApproval(proof_id=proof.id, approved=True, comments=comments, approved_by=approved_by))
        proof.status = ProofStatus.APPROVED
        if is_latest and job.status != JobStatus.PROOF_APPROVED:
            job_service.transition_job(job, JobStatus.PROOF_APPROVED)
        notification_service.notify_proof_approved(db, job, proof, latest=is_latest)
        db.commit()
        log.info("Proof v%d approved for job %s by %s", proof.version, job.job_no, approved_by or "customer")

    result = {"proof": proof, "job": job, "invoice": None, "invoice_error": None}
    if not is_latest:
        return result

    try:
        invoice, created = invoice_generator.ensure_customer_invoice(db, job)
        if created:
            notification_service.notify_invoice(db, invoice)
        db.commit()
        result["invoice"] = invoice
    except Exception as e:
        db.rollback()
        result["invoice_error"] = str(e)
        log.error("Job %s: customer invoice not created after proof approval: %s", job.job_no, e)
    return result


def on_changes_requested(
    db: Session,
    proof_id: int,
    comments: str,
    requested_by: str | None = None,
) -> Proof:
    """Record a change request; job → IN_PRODUCTION when it is the latest proof. Commits."""
    if not comments or not comments.strip():
        raise ValidationError("Comments are required when requesting changes")
    proof = get_proof(db, proof_id)
    job = job_service.get_job(db, proof.job_id)
    if proof.status != ProofStatus.PENDING:
        raise InvalidTransitionError(f"Proof v{proof.version} is already {proof.status.lower()}")

    is_latest = proof.version == latest_proof_version(db, job.id)
    if is_latest:
        job_service.transition_job(job, JobStatus.IN_PRODUCTION)
    db.add(ProofApproval(proof_id=proof.id, approved=False, comments=comments.strip(), approved_by=requested_by))
    proof.status = ProofStatus.CHANGES_REQUESTED
    notification_service.notify_changes_requested(db, job, proof, comments.strip())
    db.commit()
    log.info("Changes requested on proof v%d for job %s", proof.version, job.job_no)
    return proof


# ── Purchase order documents ────────────────────────────────────────


def on_po_document_parsed(
    db: Session,
    job_id: int,
    data: bytes,
    file_name: str,
    manual_po_number: str | None = None,
) -> dict:
    job = job_service.get_job(db, job_id)
    return po_chain.attach_po_document(db, job, data, file_name, manual_po_number=manual_po_number)


def on_webhook_po(db: Session, payload: dict):
    return po_chain.create_po_from_webhook(db, payload)
