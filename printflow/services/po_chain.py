"""
po_chain.py — Purchase order chain manager

Materializes one PurchaseOrder per hop of a job's route and keeps it
unique per (job, origin, target).

Business Rules:
- ensure_po is idempotent: an existing PO for the hop is returned untouched
- A concurrent duplicate insert is rejected by uq_po_job_origin_target; the
  loser re-reads and returns the winning row
- PO number precedence: valid manual number, then valid number extracted
  from the uploaded PO document, then generated <prefix>-<job number>
  (IMP for broker-issued, BRA for intermediary-issued POs)
- margin_amount is always original_amount - vendor_amount
- Creating the intermediary → producer PO queues a PO_CREATED email with
  the PO PDF to the producer's recipients (outbox, same transaction)
- update_po is a deliberate edit and is not idempotent
- Amounts read from documents or webhooks never overwrite an existing PO;
  a mismatch flags the job for approval

Transactions: ensure_po / ensure_chain only flush; the orchestrator and the
top-level edit functions (update_po, update_po_status, attach_po_document,
create_po_from_webhook) commit.

Called by: services/settlement_orchestrator.py, routers/purchase_orders.py
Depends on: models, services/routing_resolver.py, services/po_number.py,
            services/document_extraction.py, services/notification_service.py
"""

import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from ..constants import (
    BROKER_PO_PREFIX,
    INTERMEDIARY_PO_PREFIX,
    CompanyRole,
    FileKind,
    HopKey,
    POStatus,
    WebhookSource,
)
from ..exceptions import (
    ConflictError,
    ExtractionError,
    InvalidPONumberError,
    InvalidTransitionError,
    MissingAmountError,
    NotFoundError,
    ValidationError,
)
from ..models import Job, JobFile, PurchaseOrder, WebhookEvent
from . import notification_service
from .ledger import insert_unique
from .po_number import extract_po_number, fallback_po_number, normalize_po_number, validate_po_number
from .pricing_calculator import PricingBreakdown, to_money
from .routing_resolver import Hop, route_for_job

log = logging.getLogger("printflow.po_chain")

PO_NUMBER_MANUAL = "manual"
PO_NUMBER_EXTRACTED = "extracted"
PO_NUMBER_GENERATED = "generated"


# ── Lookups ─────────────────────────────────────────────────────────


def get_po(db: Session, po_id: int) -> PurchaseOrder:
    po = db.get(PurchaseOrder, po_id)
    if po is None:
        raise NotFoundError(f"Purchase order {po_id} not found", po_id=po_id)
    return po


def list_pos(db: Session, job_id: int | None = None, status: str | None = None) -> list[PurchaseOrder]:
    q = db.query(PurchaseOrder)
    if job_id is not None:
        q = q.filter(PurchaseOrder.job_id == job_id)
    if status:
        q = q.filter(PurchaseOrder.status == status)
    return q.order_by(PurchaseOrder.id).all()


def find_po(db: Session, job_id: int, origin_company_id: int, target_key: str) -> PurchaseOrder | None:
    return (
        db.query(PurchaseOrder)
        .filter_by(job_id=job_id, origin_company_id=origin_company_id, target_key=target_key)
        .first()
    )


# ── Amounts and numbers ─────────────────────────────────────────────


def hop_amounts(job: Job, hop_key: str, breakdown: PricingBreakdown | None = None):
    """(original_amount, vendor_amount, vendor_cpm) for a hop.

    Raises MissingAmountError when the job is not priced for that hop.
    """
    src = breakdown or job
    if hop_key == HopKey.BROKER_TO_INTERMEDIARY:
        values = (src.customer_total, src.intermediary_total, src.intermediary_cpm)
    elif hop_key == HopKey.INTERMEDIARY_TO_PRODUCER:
        values = (src.intermediary_total, src.producer_total, src.producer_cpm)
    elif hop_key == HopKey.BROKER_TO_VENDOR:
        values = (src.customer_total, src.producer_total, src.producer_cpm)
    else:
        raise ValidationError(f"Unknown hop '{hop_key}'")

    original, vendor, cpm = values
    if original is None or vendor is None:
        raise MissingAmountError(
            f"Job {job.job_no} has no amounts for {hop_key}", job_no=job.job_no, hop=hop_key
        )
    original, vendor = to_money(original), to_money(vendor)
    if original <= 0 or vendor < 0:
        raise MissingAmountError(
            f"Job {job.job_no} has non-positive amounts for {hop_key}", job_no=job.job_no, hop=hop_key
        )
    return original, vendor, cpm


def resolve_po_number(
    job: Job,
    hop: Hop,
    manual_po_number: str | None = None,
    extracted_po_number: str | None = None,
) -> tuple[str, str]:
    """(po_number, source) by manual → extracted → generated precedence."""
    if manual_po_number:
        if validate_po_number(manual_po_number):
            return normalize_po_number(manual_po_number), PO_NUMBER_MANUAL
        log.warning("Job %s: manual PO number %r is invalid, ignoring", job.job_no, manual_po_number)
    if extracted_po_number:
        if validate_po_number(extracted_po_number):
            return normalize_po_number(extracted_po_number), PO_NUMBER_EXTRACTED
        log.warning("Job %s: extracted PO number %r is invalid, ignoring", job.job_no, extracted_po_number)

    prefix = INTERMEDIARY_PO_PREFIX if hop.origin.role == CompanyRole.INTERMEDIARY else BROKER_PO_PREFIX
    return fallback_po_number(prefix, job.job_no), PO_NUMBER_GENERATED


def _reference_po_number(db: Session, job: Job, hop: Hop) -> str | None:
    if hop.key == HopKey.INTERMEDIARY_TO_PRODUCER:
        upstream = (
            db.query(PurchaseOrder)
            .filter_by(job_id=job.id, target_company_id=hop.origin.id)
            .first()
        )
        if upstream is not None:
            return upstream.po_number
    return job.customer_po_number


# ── ensure_po ───────────────────────────────────────────────────────


def ensure_po(
    db: Session,
    job: Job,
    hop: Hop,
    amounts: PricingBreakdown | None = None,
    manual_po_number: str | None = None,
    extracted_po_number: str | None = None,
    vendor_amount=None,
    external_ref: str | None = None,
    pdf_file_id: int | None = None,
) -> tuple[PurchaseOrder, bool]:
    """Return the hop's PO, creating it if absent. Returns (po, created)."""
    existing = find_po(db, job.id, hop.origin.id, hop.target_key)
    if existing is not None:
        return existing, False

    original, derived_vendor, cpm = hop_amounts(job, hop.key, amounts)
    vendor = to_money(vendor_amount) if vendor_amount is not None else derived_vendor
    po_number, source = resolve_po_number(job, hop, manual_po_number, extracted_po_number)

    po = PurchaseOrder(
        job_id=job.id,
        origin_company_id=hop.origin.id,
        target_company_id=hop.target_company.id if hop.target_company else None,
        target_vendor_id=hop.target_vendor.id if hop.target_vendor else None,
        target_key=hop.target_key,
        original_amount=original,
        vendor_amount=vendor,
        margin_amount=original - vendor,
        vendor_cpm=cpm,
        po_number=po_number,
        po_number_source=source,
        reference_po_number=_reference_po_number(db, job, hop),
        external_ref=external_ref,
        pdf_file_id=pdf_file_id,
        status=POStatus.PENDING,
    )
    try:
        insert_unique(db, po)
    except ConflictError:
        winner = find_po(db, job.id, hop.origin.id, hop.target_key)
        if winner is None:
            raise
        log.info("Job %s: %s PO created concurrently, using #%d", job.job_no, hop.key, winner.id)
        return winner, False

    log.info(
        "PO created: job=%s hop=%s po=%s (%s) original=%s vendor=%s margin=%s",
        job.job_no, hop.key, po.po_number, source, po.original_amount, po.vendor_amount, po.margin_amount,
    )
    if hop.key == HopKey.INTERMEDIARY_TO_PRODUCER:
        notification_service.notify_po_created(db, po, hop.recipients)
    return po, True


def ensure_chain(db: Session, job: Job, amounts: PricingBreakdown | None = None) -> list[tuple[PurchaseOrder, bool]]:
    """ensure_po for every hop of the job's route, in route order."""
    route = route_for_job(db, job)
    return [ensure_po(db, job, hop, amounts) for hop in route.hops]


# ── Edits ───────────────────────────────────────────────────────────


def update_po(
    db: Session,
    po_id: int,
    original_amount=None,
    vendor_amount=None,
    po_number: str | None = None,
    reference_po_number: str | None = None,
) -> PurchaseOrder:
    """Apply an explicit edit; margin is recomputed. Commits."""
    po = get_po(db, po_id)
    if po.status == POStatus.CANCELLED:
        raise InvalidTransitionError(f"PO {po.po_number} is cancelled")

    if original_amount is not None:
        po.original_amount = to_money(original_amount)
    if vendor_amount is not None:
        po.vendor_amount = to_money(vendor_amount)
    if po.original_amount < 0 or po.vendor_amount < 0:
        raise ValidationError("PO amounts must be non-negative")
    po.margin_amount = to_money(po.original_amount) - to_money(po.vendor_amount)

    if po_number is not None:
        if not validate_po_number(po_number):
            raise InvalidPONumberError(f"Invalid PO number '{po_number}'")
        po.po_number = normalize_po_number(po_number)
        po.po_number_source = PO_NUMBER_MANUAL
    if reference_po_number is not None:
        po.reference_po_number = reference_po_number.strip() or None

    notification_service.notify_po_updated(db, po, "edited")
    db.commit()
    log.info("PO %s updated: original=%s vendor=%s margin=%s", po.po_number, po.original_amount, po.vendor_amount, po.margin_amount)
    return po


_PO_TRANSITIONS = {
    POStatus.PENDING: {POStatus.CONFIRMED, POStatus.RECEIVED, POStatus.CANCELLED},
    POStatus.CONFIRMED: {POStatus.RECEIVED, POStatus.CANCELLED},
    POStatus.RECEIVED: set(),
    POStatus.CANCELLED: set(),
}


def update_po_status(db: Session, po_id: int, status: str) -> PurchaseOrder:
    po = get_po(db, po_id)
    if status not in POStatus.ALL:
        raise ValidationError(f"Unknown PO status '{status}'")
    if status == po.status:
        return po
    if status not in _PO_TRANSITIONS[po.status]:
        raise InvalidTransitionError(f"PO {po.po_number}: {po.status} → {status} not allowed")
    previous, po.status = po.status, status
    notification_service.notify_po_updated(db, po, f"status {previous} → {status}")
    db.commit()
    log.info("PO %s status → %s", po.po_number, status)
    return po


def cancel_open_pos(db: Session, job: Job) -> int:
    """Cancel PENDING POs of a job. Does not commit."""
    count = 0
    for po in job.purchase_orders:
        if po.status == POStatus.PENDING:
            po.status = POStatus.CANCELLED
            count += 1
    return count


# ── Document and webhook intake ─────────────────────────────────────


def reconcile_extracted_amount(job: Job, po: PurchaseOrder, amount) -> bool:
    """Compare an amount read from a document to the ledger; flag mismatches.

    Returns True when the amounts agree to the cent.
    """
    if amount is None:
        return True
    amount = to_money(amount)
    if abs(amount - to_money(po.vendor_amount)) <= Decimal("0.01"):
        return True
    job.requires_approval = True
    job.approval_reason = (
        f"Document amount {amount} differs from PO {po.po_number} vendor amount {po.vendor_amount}"
    )
    log.warning("Job %s: %s", job.job_no, job.approval_reason)
    return False


def attach_po_document(
    db: Session,
    job: Job,
    data: bytes,
    file_name: str,
    manual_po_number: str | None = None,
    mime_type: str = "application/pdf",
) -> dict:
    """Record an uploaded intermediary PO PDF and ensure the producer-hop PO.

    Extraction failures fall back to a generated number. Commits.
    """
    from .document_extraction import extract

    route = route_for_job(db, job)
    hop = route.hop(HopKey.INTERMEDIARY_TO_PRODUCER)
    if hop is None:
        raise ValidationError(f"Job {job.job_no} has no intermediary → producer hop")

    pdf = JobFile(
        job_id=job.id, kind=FileKind.PO_PDF, file_name=file_name,
        mime_type=mime_type, size_bytes=len(data),
    )
    db.add(pdf)
    db.flush()

    extracted_po = extract_po_number(data)
    fields = None
    try:
        fields = extract(data)
    except ExtractionError as e:
        log.info("Job %s: PO document fields unavailable: %s", job.job_no, e)

    po, created = ensure_po(
        db, job, hop,
        manual_po_number=manual_po_number,
        extracted_po_number=extracted_po,
        pdf_file_id=pdf.id,
    )
    if not created:
        if po.pdf_file_id is None:
            po.pdf_file_id = pdf.id
        if po.po_number_source == PO_NUMBER_GENERATED:
            number, source = resolve_po_number(job, hop, manual_po_number, extracted_po)
            if source != PO_NUMBER_GENERATED:
                log.info("PO %s renumbered to %s from uploaded document", po.po_number, number)
                po.po_number, po.po_number_source = number, source

    amount_matches = reconcile_extracted_amount(job, po, fields.amount if fields else None)
    db.commit()
    return {
        "purchase_order": po,
        "created": created,
        "file_id": pdf.id,
        "extracted_po_number": extracted_po,
        "fields": fields.to_dict() if fields else None,
        "amount_matches": amount_matches,
    }


def create_po_from_webhook(db: Session, payload: dict) -> tuple[PurchaseOrder, bool]:
    """Intermediary webhook: ensure the producer-hop PO for a job. Commits.

    payload keys: component_id, estimate_number, amount, job_no, po_number (optional).
    """
    event = WebhookEvent(source=WebhookSource.INTERMEDIARY, payload=payload, processed=False)
    db.add(event)
    db.commit()

    external_ref = f"{payload['component_id']}-{payload['estimate_number']}"
    try:
        existing = db.query(PurchaseOrder).filter_by(external_ref=external_ref).first()
        if existing is not None:
            log.info("Webhook %s already processed as PO %s", external_ref, existing.po_number)
            event.processed = True
            db.commit()
            return existing, False

        job = db.query(Job).filter_by(job_no=payload.get("job_no")).first() if payload.get("job_no") else None
        if job is None or job.is_deleted:
            raise NotFoundError(f"Job {payload.get('job_no')} not found for webhook {external_ref}")

        hop = route_for_job(db, job).hop(HopKey.INTERMEDIARY_TO_PRODUCER)
        if hop is None:
            raise ValidationError(f"Job {job.job_no} has no intermediary → producer hop")

        po, created = ensure_po(
            db, job, hop,
            manual_po_number=payload.get("po_number") or payload["component_id"],
            vendor_amount=payload["amount"],
            external_ref=external_ref,
        )
        if not created and po.external_ref is None:
            po.external_ref = external_ref
        if to_money(payload["amount"]) != to_money(job.producer_total or 0):
            job.requires_approval = True
            job.approval_reason = (
                f"Webhook amount {to_money(payload['amount'])} differs from producer total {job.producer_total}"
            )
            log.warning("Job %s: %s", job.job_no, job.approval_reason)
        event.processed = True
        db.commit()
        return po, created
    except Exception as e:
        db.rollback()
        event.error = str(e)[:1000]
        db.commit()
        raise
