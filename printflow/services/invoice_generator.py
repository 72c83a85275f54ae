"""
invoice_generator.py — Invoices between chain parties

Business Rules:
- ensure_invoice is idempotent per (job, from company, to company); a
  concurrent duplicate is rejected by uq_invoice_job_from_to and the loser
  returns the winning row
- Amount by pair: broker → customer bills customer_total; intermediary →
  broker bills the broker's PO vendor amount; producer → intermediary bills
  the intermediary's PO vendor amount (job totals when no PO exists)
- Null or non-positive amount raises MissingAmountError
- invoice_no comes from the year-scoped sequence, allocated in the same
  savepoint as the insert, so a rejected insert releases its number
- Payment terms: company override, else Net 10 for producer-issued
  invoices, Net 30 otherwise
- paid_at only moves forward; paid invoices cannot be edited
- Editing an intermediary- or producer-issued invoice syncs the matching
  PO's vendor amount and margin

Transactions: ensure_invoice / generate_invoice_chain only flush;
mark_invoice_paid and update_invoice commit.

Called by: services/settlement_orchestrator.py, routers/invoices.py
Depends on: models, services/numbering.py, services/ledger.py,
            services/notification_service.py
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from ..config import settings
from ..constants import CompanyRole, RoutingType
from ..exceptions import ConflictError, InvalidTransitionError, MissingAmountError, NotFoundError, ValidationError
from ..models import Company, Invoice, Job, PurchaseOrder
from . import notification_service
from .ledger import insert_unique
from .numbering import next_invoice_number
from .pricing_calculator import to_money
from .routing_resolver import get_party

log = logging.getLogger("printflow.invoices")


def payment_terms_days(from_company: Company, to_company: Company) -> int:
    if from_company.payment_terms_days:
        return from_company.payment_terms_days
    if from_company.role == CompanyRole.PRODUCER:
        return settings.producer_terms_days
    return settings.default_terms_days


def get_invoice(db: Session, invoice_id: int) -> Invoice:
    invoice = db.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_id} not found", invoice_id=invoice_id)
    return invoice


def list_invoices(db: Session, job_id: int | None = None, unpaid_only: bool = False) -> list[Invoice]:
    q = db.query(Invoice)
    if job_id is not None:
        q = q.filter(Invoice.job_id == job_id)
    if unpaid_only:
        q = q.filter(Invoice.paid_at.is_(None))
    return q.order_by(Invoice.id).all()


def find_invoice(db: Session, job_id: int, from_company_id: int, to_company_id: int) -> Invoice | None:
    return (
        db.query(Invoice)
        .filter_by(job_id=job_id, from_company_id=from_company_id, to_company_id=to_company_id)
        .first()
    )


def _matching_po(db: Session, job: Job, invoice_from: Company, invoice_to: Company) -> PurchaseOrder | None:
    """The PO this invoice answers: issued by the invoice's recipient to its sender."""
    return (
        db.query(PurchaseOrder)
        .filter_by(job_id=job.id, origin_company_id=invoice_to.id, target_company_id=invoice_from.id)
        .first()
    )


def invoice_amount(db: Session, job: Job, from_company: Company, to_company: Company):
    """Amount to bill for a pair. Raises MissingAmountError if absent or non-positive."""
    if from_company.role == CompanyRole.BROKER:
        amount = job.customer_total
    else:
        po = _matching_po(db, job, from_company, to_company)
        if po is not None:
            amount = po.vendor_amount
        elif from_company.role == CompanyRole.INTERMEDIARY:
            amount = job.intermediary_total
        elif from_company.role == CompanyRole.PRODUCER:
            amount = job.producer_total
        else:
            raise ValidationError(f"No invoice amount rule for {from_company.role} → {to_company.role}")

    if amount is None or to_money(amount) <= 0:
        raise MissingAmountError(
            f"Job {job.job_no} has no billable amount for {from_company.name} → {to_company.name}",
            job_no=job.job_no,
        )
    return to_money(amount)


def _assign_number(db: Session, invoice: Invoice) -> None:
    invoice.invoice_no = next_invoice_number(db, invoice.issued_at.year)


def ensure_invoice(
    db: Session,
    job: Job,
    from_company: Company,
    to_company: Company,
    issued_at: datetime | None = None,
) -> tuple[Invoice, bool]:
    """Return the pair's invoice, creating it if absent. Returns (invoice, created)."""
    existing = find_invoice(db, job.id, from_company.id, to_company.id)
    if existing is not None:
        return existing, False

    amount = invoice_amount(db, job, from_company, to_company)
    issued_at = issued_at or datetime.now(timezone.utc)
    invoice = Invoice(
        job_id=job.id,
        from_company_id=from_company.id,
        to_company_id=to_company.id,
        amount=amount,
        issued_at=issued_at,
        due_at=issued_at + timedelta(days=payment_terms_days(from_company, to_company)),
    )
    try:
        insert_unique(db, invoice, prepare=_assign_number)
    except ConflictError:
        winner = find_invoice(db, job.id, from_company.id, to_company.id)
        if winner is None:
            raise
        log.info("Job %s: invoice %s → %s created concurrently, using %s",
                 job.job_no, from_company.name, to_company.name, winner.invoice_no)
        return winner, False

    log.info("Invoice %s created: job=%s %s → %s amount=%s due=%s",
             invoice.invoice_no, job.job_no, from_company.name, to_company.name,
             invoice.amount, invoice.due_at.date())
    return invoice, True


def ensure_customer_invoice(db: Session, job: Job) -> tuple[Invoice, bool]:
    return ensure_invoice(db, job, get_party(db, CompanyRole.BROKER), job.customer)


def generate_invoice_chain(db: Session, job: Job) -> list[tuple[Invoice, bool]]:
    """All invoices for a completed job, upstream first."""
    broker = get_party(db, CompanyRole.BROKER)
    pairs = []
    if job.routing_type == RoutingType.STANDARD:
        intermediary = get_party(db, CompanyRole.INTERMEDIARY)
        producer = get_party(db, CompanyRole.PRODUCER)
        pairs = [(producer, intermediary), (intermediary, broker)]
    pairs.append((broker, job.customer))
    return [ensure_invoice(db, job, src, dst) for src, dst in pairs]


def mark_invoice_paid(db: Session, invoice_id: int, paid_at: datetime | None = None) -> Invoice:
    """Record payment. Re-marking a paid invoice keeps the original date. Commits."""
    invoice = get_invoice(db, invoice_id)
    if invoice.paid_at is not None:
        return invoice
    invoice.paid_at = paid_at or datetime.now(timezone.utc)
    notification_service.notify_invoice_paid(db, invoice)
    db.commit()
    log.info("Invoice %s marked paid at %s", invoice.invoice_no, invoice.paid_at)
    return invoice


def update_invoice(db: Session, invoice_id: int, amount=None, due_at: datetime | None = None) -> Invoice:
    """Edit an unpaid invoice; keeps the answering PO in step. Commits."""
    invoice = get_invoice(db, invoice_id)
    if invoice.paid_at is not None:
        raise InvalidTransitionError(f"Invoice {invoice.invoice_no} is paid and cannot be edited")

    if amount is not None:
        amount = to_money(amount)
        if amount <= 0:
            raise MissingAmountError("Invoice amount must be positive")
        invoice.amount = amount
        po = _matching_po(db, invoice.job, invoice.from_company, invoice.to_company)
        if po is not None:
            po.vendor_amount = amount
            po.margin_amount = to_money(po.original_amount) - amount
            log.info("PO %s vendor amount synced to invoice %s: %s", po.po_number, invoice.invoice_no, amount)
            notification_service.notify_po_updated(db, po, f"vendor amount synced to invoice {invoice.invoice_no}")
    if due_at is not None:
        invoice.due_at = due_at

    if amount is not None or due_at is not None:
        notification_service.notify_invoice_updated(db, invoice)
    db.commit()
    return invoice
