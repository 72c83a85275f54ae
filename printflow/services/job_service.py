"""
job_service.py — Job records: creation, pricing, edits, files, readiness, status

Business Rules:
- Job numbers are J-YYYY-NNNNNN from the year-scoped sequence
- STANDARD jobs are priced from the size table (or a DB pricing rule);
  THIRD_PARTY_VENDOR jobs from the vendor amount and intermediary cut,
  with the customer total from the custom price or the size table
- Every manual edit writes one JobActivity row per changed field
- Edits to quantity, size or prices re-price the job; existing POs are
  left alone (PO amounts change only through update_po)
- Jobs are soft-deleted and hidden from lookups afterwards
- A job is ready for production once it has the required number of
  ARTWORK and DATA_FILE uploads; readiness is reported once, on the edge
- Status moves follow JOB_TRANSITIONS; CANCELLED is reachable from any
  non-terminal status; COMPLETED and CANCELLED are terminal

Transactions: create_job, price_job, add_job_file, update_job_readiness and
transition_job only flush; update_job and soft_delete_job commit.

Called by: services/settlement_orchestrator.py, routers/jobs.py
Depends on: models, services/pricing_calculator.py, services/routing_resolver.py,
            services/numbering.py
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from ..constants import JOB_TRANSITIONS, CompanyRole, FileKind, JobStatus, RoutingType
from ..exceptions import InvalidTransitionError, NotFoundError, ValidationError
from ..models import Company, Job, JobActivity, JobFile
from . import notification_service
from .numbering import next_job_number
from .pricing_calculator import (
    PricingBreakdown,
    calculate_pricing,
    calculate_vendor_pricing,
    get_pricing_rule,
    to_money,
)
from .routing_resolver import resolve_route

log = logging.getLogger("printflow.jobs")

EDITABLE_FIELDS = (
    "quantity",
    "size_id",
    "customer_po_number",
    "description",
    "custom_price",
    "vendor_amount",
    "intermediary_cut",
    "specs",
    "job_type",
    "required_artwork_count",
    "required_data_file_count",
)
PRICING_FIELDS = {"quantity", "size_id", "custom_price", "vendor_amount", "intermediary_cut"}


# ── Lookups ─────────────────────────────────────────────────────────


def get_job(db: Session, job_id: int, include_deleted: bool = False) -> Job:
    job = db.get(Job, job_id)
    if job is None or (job.is_deleted and not include_deleted):
        raise NotFoundError(f"Job {job_id} not found", job_id=job_id)
    return job


def get_job_by_number(db: Session, job_no: str) -> Job:
    job = db.query(Job).filter_by(job_no=job_no).first()
    if job is None or job.is_deleted:
        raise NotFoundError(f"Job {job_no} not found", job_no=job_no)
    return job


def list_jobs(
    db: Session,
    status: str | None = None,
    customer_id: int | None = None,
    include_deleted: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Job], int]:
    q = db.query(Job)
    if not include_deleted:
        q = q.filter(Job.deleted_at.is_(None))
    if status:
        q = q.filter(Job.status == status)
    if customer_id:
        q = q.filter(Job.customer_id == customer_id)
    total = q.count()
    jobs = q.order_by(Job.id.desc()).offset(offset).limit(limit).all()
    return jobs, total


# ── Pricing ─────────────────────────────────────────────────────────


def compute_pricing(db: Session, job: Job) -> PricingBreakdown:
    """Breakdown for the job's current inputs."""
    if job.routing_type == RoutingType.THIRD_PARTY_VENDOR:
        if job.custom_price is not None:
            customer_total = job.custom_price
        elif job.size_id:
            customer_total = calculate_pricing(
                job.size_id, job.quantity, rule=get_pricing_rule(job.size_id, db)
            ).customer_total
        else:
            raise ValidationError("Vendor jobs need a custom price or a size to set the customer total")
        return calculate_vendor_pricing(
            customer_total, job.vendor_amount, job.intermediary_cut, job.quantity
        )

    if not job.size_id:
        raise ValidationError("Standard jobs need a size")
    return calculate_pricing(
        job.size_id, job.quantity, job.custom_price, rule=get_pricing_rule(job.size_id, db)
    )


def price_job(db: Session, job: Job) -> PricingBreakdown:
    """Recompute and store the job's amounts."""
    breakdown = compute_pricing(db, job)
    for field, value in breakdown.job_fields().items():
        setattr(job, field, value)
    if breakdown.is_loss:
        job.approval_reason = f"Price is {breakdown.loss_amount} below cost"
    elif breakdown.requires_approval:
        job.approval_reason = f"Price is {breakdown.undercharge_amount} below standard"
    return breakdown


# ── Create ──────────────────────────────────────────────────────────


def create_job(
    db: Session,
    customer_id: int,
    quantity: int,
    size_id: str | None = None,
    routing_type: str = RoutingType.STANDARD,
    customer_po_number: str | None = None,
    description: str | None = None,
    vendor_id: int | None = None,
    vendor_amount=None,
    intermediary_cut=None,
    custom_price=None,
    specs: dict | None = None,
    required_artwork_count: int = 1,
    required_data_file_count: int = 0,
) -> tuple[Job, PricingBreakdown]:
    """Create and price a job. Flushes; the caller commits."""
    customer = db.get(Company, customer_id)
    if customer is None or customer.role != CompanyRole.CUSTOMER:
        raise NotFoundError(f"Customer {customer_id} not found", customer_id=customer_id)

    # Validates vendor routing before anything is written
    resolve_route(db, routing_type, vendor_id, vendor_amount)

    job = Job(
        customer_id=customer.id,
        quantity=quantity,
        size_id=size_id,
        routing_type=routing_type,
        customer_po_number=customer_po_number,
        description=description,
        vendor_id=vendor_id if routing_type == RoutingType.THIRD_PARTY_VENDOR else None,
        vendor_amount=to_money(vendor_amount) if vendor_amount is not None else None,
        intermediary_cut=to_money(intermediary_cut) if intermediary_cut is not None else None,
        custom_price=to_money(custom_price) if custom_price is not None else None,
        specs=specs or {},
        job_type=(specs or {}).get("job_type"),
        required_artwork_count=required_artwork_count,
        required_data_file_count=required_data_file_count,
        status=JobStatus.PENDING,
    )
    breakdown = price_job(db, job)
    job.job_no = next_job_number(db)
    db.add(job)
    db.flush()
    log.info(
        "Job %s created: customer=%s qty=%d routing=%s total=%s",
        job.job_no, customer.name, quantity, routing_type, job.customer_total,
    )
    return job, breakdown


# ── Edit ────────────────────────────────────────────────────────────


def _as_text(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return str(to_money(value))
    return str(value)


def update_job(
    db: Session,
    job_id: int,
    changes: dict,
    changed_by: str | None = None,
    changed_by_role: str | None = None,
) -> Job:
    """Apply a manual edit, logging each changed field. Commits."""
    job = get_job(db, job_id)
    if job.status in JobStatus.TERMINAL:
        raise InvalidTransitionError(f"Job {job.job_no} is {job.status.lower()} and cannot be edited")

    if "specs" in changes:
        changes["job_type"] = (changes["specs"] or {}).get("job_type")

    changed = []
    for field, new in changes.items():
        if field not in EDITABLE_FIELDS:
            raise ValidationError(f"Field '{field}' cannot be edited")
        if isinstance(new, (int, float)) and field in ("custom_price", "vendor_amount", "intermediary_cut"):
            new = to_money(new)
        old = getattr(job, field)
        if _as_text(old) == _as_text(new) and field != "specs":
            continue
        if field == "specs" and (old or {}) == (new or {}):
            continue
        setattr(job, field, new)
        changed.append(field)
        db.add(JobActivity(
            job_id=job.id,
            action="JOB_UPDATED",
            field=field,
            old_value=_as_text(old),
            new_value=_as_text(new),
            changed_by=changed_by,
            changed_by_role=changed_by_role,
        ))

    if PRICING_FIELDS.intersection(changed):
        price_job(db, job)
        if job.purchase_orders:
            log.warning("Job %s re-priced with %d existing PO(s); PO amounts unchanged",
                        job.job_no, len(job.purchase_orders))

    if changed:
        notification_service.notify_job_updated(db, job, changed, changed_by)
    db.commit()
    if changed:
        log.info("Job %s updated by %s: %s", job.job_no, changed_by or "unknown", ", ".join(changed))
    return job


def soft_delete_job(db: Session, job_id: int, deleted_by: str | None = None) -> Job:
    job = get_job(db, job_id)
    job.deleted_at = datetime.now(timezone.utc)
    job.deleted_by = deleted_by
    db.add(JobActivity(
        job_id=job.id, action="JOB_DELETED", changed_by=deleted_by,
    ))
    notification_service.notify_job_deleted(db, job)
    db.commit()
    log.info("Job %s soft-deleted by %s", job.job_no, deleted_by or "unknown")
    return job


# ── Files & readiness ───────────────────────────────────────────────


def add_job_file(
    db: Session,
    job: Job,
    kind: str,
    file_name: str,
    mime_type: str | None = None,
    size_bytes: int | None = None,
    checksum: str | None = None,
    storage_ref: str | None = None,
) -> JobFile:
    if kind not in FileKind.ALL:
        raise ValidationError(f"Unknown file kind '{kind}'")
    f = JobFile(
        job_id=job.id, kind=kind, file_name=file_name, mime_type=mime_type,
        size_bytes=size_bytes, checksum=checksum, storage_ref=storage_ref,
    )
    db.add(f)
    db.flush()
    return f


def check_job_readiness(db: Session, job: Job) -> dict:
    artwork = db.query(JobFile).filter_by(job_id=job.id, kind=FileKind.ARTWORK).count()
    data_files = db.query(JobFile).filter_by(job_id=job.id, kind=FileKind.DATA_FILE).count()
    required_artwork = job.required_artwork_count if job.required_artwork_count is not None else 1
    required_data = job.required_data_file_count or 0
    return {
        "artwork_count": artwork,
        "data_file_count": data_files,
        "required_artwork_count": required_artwork,
        "required_data_file_count": required_data,
        "is_ready": artwork >= required_artwork and data_files >= required_data,
    }


def update_job_readiness(db: Session, job: Job) -> bool:
    """Store readiness; True only when the job has just become ready."""
    status = check_job_readiness(db, job)
    if status["is_ready"] and not job.ready_for_production:
        job.ready_for_production = True
        job.ready_at = datetime.now(timezone.utc)
        log.info("Job %s is ready for production", job.job_no)
        return True
    if not status["is_ready"] and job.ready_for_production:
        job.ready_for_production = False
        job.ready_at = None
    return False


# ── Status ──────────────────────────────────────────────────────────


def can_transition(current: str, new: str) -> bool:
    if current in JobStatus.TERMINAL:
        return False
    if new == JobStatus.CANCELLED:
        return True
    return new in JOB_TRANSITIONS.get(current, set())


def transition_job(job: Job, new_status: str) -> None:
    if new_status not in JobStatus.ALL:
        raise ValidationError(f"Unknown job status '{new_status}'")
    if not can_transition(job.status, new_status):
        raise InvalidTransitionError(
            f"Job {job.job_no}: {job.status} → {new_status} not allowed",
            job_no=job.job_no,
        )
    old = job.status
    job.status = new_status
    if new_status == JobStatus.COMPLETED:
        job.completed_at = datetime.now(timezone.utc)
    log.info("Job %s status %s → %s", job.job_no, old, new_status)
