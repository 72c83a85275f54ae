"""
routers/jobs.py — Job Routes

Create, list, edit and soft-delete jobs; record uploaded files; drive the
completion and cancellation signals.

Business Rules:
- Creating a job prices it and materializes its POs in one commit
- Edits log one activity row per changed field; pricing edits re-price
- Deleted jobs disappear from every lookup
- Completion generates the full invoice chain; a missing amount fails the
  request and leaves the job in its previous status

Called by: main.py (router mount)
Depends on: services/job_service.py, services/settlement_orchestrator.py
"""

from fastapi import APIRouter, Depends, Query
from loguru import logger
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.jobs import JobComplete, JobCreate, JobDelete, JobFileCreate, JobUpdate
from ..services import job_service, settlement_orchestrator

router = APIRouter(tags=["jobs"])


def _f(value):
    return float(value) if value is not None else None


def _iso(value):
    return value.isoformat() if value else None


def job_to_dict(job, detail: bool = False) -> dict:
    d = {
        "id": job.id,
        "job_no": job.job_no,
        "customer_id": job.customer_id,
        "customer_name": job.customer.name if job.customer else None,
        "customer_po_number": job.customer_po_number,
        "description": job.description,
        "size_id": job.size_id,
        "quantity": job.quantity,
        "job_type": job.job_type,
        "routing_type": job.routing_type,
        "vendor_id": job.vendor_id,
        "status": job.status,
        "customer_total": _f(job.customer_total),
        "requires_approval": bool(job.requires_approval),
        "ready_for_production": bool(job.ready_for_production),
        "created_at": _iso(job.created_at),
    }
    if detail:
        d.update({
            "specs": job.specs or {},
            "pricing": {
                "customer_cpm": _f(job.customer_cpm),
                "customer_total": _f(job.customer_total),
                "intermediary_cpm": _f(job.intermediary_cpm),
                "intermediary_total": _f(job.intermediary_total),
                "intermediary_margin": _f(job.intermediary_margin),
                "producer_cpm": _f(job.producer_cpm),
                "producer_total": _f(job.producer_total),
                "broker_margin": _f(job.broker_margin),
                "paper_cost_total": _f(job.paper_cost_total),
                "paper_charged_total": _f(job.paper_charged_total),
                "vendor_amount": _f(job.vendor_amount),
                "intermediary_cut": _f(job.intermediary_cut),
                "custom_price": _f(job.custom_price),
                "is_loss": bool(job.is_loss),
                "loss_amount": _f(job.loss_amount),
            },
            "approval_reason": job.approval_reason,
            "ready_at": _iso(job.ready_at),
            "completed_at": _iso(job.completed_at),
            "purchase_orders": [
                {"id": po.id, "po_number": po.po_number, "target": po.target_name,
                 "vendor_amount": _f(po.vendor_amount), "status": po.status}
                for po in job.purchase_orders
            ],
            "invoices": [
                {"id": inv.id, "invoice_no": inv.invoice_no, "amount": _f(inv.amount),
                 "paid": inv.is_paid}
                for inv in job.invoices
            ],
            "proofs": [{"id": p.id, "version": p.version, "status": p.status} for p in job.proofs],
        })
    return d


def file_to_dict(f) -> dict:
    return {
        "id": f.id,
        "job_id": f.job_id,
        "kind": f.kind,
        "file_name": f.file_name,
        "mime_type": f.mime_type,
        "size_bytes": f.size_bytes,
        "created_at": _iso(f.created_at),
    }


def activity_to_dict(a) -> dict:
    return {
        "id": a.id,
        "action": a.action,
        "field": a.field,
        "old_value": a.old_value,
        "new_value": a.new_value,
        "changed_by": a.changed_by,
        "changed_by_role": a.changed_by_role,
        "created_at": _iso(a.created_at),
    }


# ── Jobs ────────────────────────────────────────────────────────────


@router.post("/api/jobs", status_code=201)
async def create_job(body: JobCreate, db: Session = Depends(get_db)):
    fields = body.model_dump(exclude={"specs"})
    fields["specs"] = body.specs.model_dump(exclude_none=True) if body.specs else None
    job = settlement_orchestrator.create_job(db, **fields)
    return job_to_dict(job, detail=True)


@router.get("/api/jobs")
async def list_jobs(
    status: str | None = Query(None),
    customer_id: int | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    jobs, total = job_service.list_jobs(db, status=status, customer_id=customer_id, limit=limit, offset=offset)
    return {"items": [job_to_dict(j) for j in jobs], "total": total, "limit": limit, "offset": offset}


@router.get("/api/jobs/{job_id}")
async def get_job(job_id: int, db: Session = Depends(get_db)):
    return job_to_dict(job_service.get_job(db, job_id), detail=True)


@router.patch("/api/jobs/{job_id}")
async def update_job(job_id: int, body: JobUpdate, db: Session = Depends(get_db)):
    changes = body.model_dump(exclude_unset=True, exclude={"changed_by", "changed_by_role", "specs"})
    if "specs" in body.model_fields_set:
        changes["specs"] = body.specs.model_dump(exclude_none=True) if body.specs else {}
    job = job_service.update_job(
        db, job_id, changes, changed_by=body.changed_by, changed_by_role=body.changed_by_role
    )
    return job_to_dict(job, detail=True)


@router.delete("/api/jobs/{job_id}")
async def delete_job(job_id: int, body: JobDelete | None = None, db: Session = Depends(get_db)):
    job = job_service.soft_delete_job(db, job_id, deleted_by=body.deleted_by if body else None)
    return {"ok": True, "job_no": job.job_no}


# ── Files & readiness ───────────────────────────────────────────────


@router.post("/api/jobs/{job_id}/files", status_code=201)
async def upload_files(job_id: int, body: list[JobFileCreate], db: Session = Depends(get_db)):
    result = settlement_orchestrator.on_files_uploaded(db, job_id, [f.model_dump() for f in body])
    return {
        "files": [file_to_dict(f) for f in result["files"]],
        "became_ready": result["became_ready"],
        "readiness": result["readiness"],
    }


@router.get("/api/jobs/{job_id}/readiness")
async def job_readiness(job_id: int, db: Session = Depends(get_db)):
    job = job_service.get_job(db, job_id)
    return job_service.check_job_readiness(db, job)


@router.get("/api/jobs/{job_id}/activity")
async def job_activity(job_id: int, db: Session = Depends(get_db)):
    job = job_service.get_job(db, job_id, include_deleted=True)
    return [activity_to_dict(a) for a in job.activities]


# ── Lifecycle signals ───────────────────────────────────────────────


@router.post("/api/jobs/{job_id}/complete")
async def complete_job(job_id: int, body: JobComplete | None = None, db: Session = Depends(get_db)):
    job, invoices = settlement_orchestrator.complete_job(
        db, job_id, completed_by=body.completed_by if body else None
    )
    logger.info("Job {} completed with {} invoice(s)", job.job_no, len(invoices))
    return {
        "job": job_to_dict(job),
        "invoices": [{"id": i.id, "invoice_no": i.invoice_no, "amount": _f(i.amount)} for i in invoices],
    }


@router.post("/api/jobs/{job_id}/cancel")
async def cancel_job(job_id: int, body: JobDelete | None = None, db: Session = Depends(get_db)):
    job = settlement_orchestrator.cancel_job(db, job_id, cancelled_by=body.deleted_by if body else None)
    return job_to_dict(job)


@router.post("/api/jobs/{job_id}/remediate")
async def remediate_job(job_id: int, db: Session = Depends(get_db)):
    job = job_service.get_job(db, job_id)
    return settlement_orchestrator.remediate_job(db, job)
