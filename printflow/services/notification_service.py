"""
notification_service.py — Notification outbox: enqueue with the ledger, deliver after commit

Every state-changing settlement operation records its notifications as
Notification rows in the same transaction as the ledger write. The
dispatcher drains PENDING (and retryable FAILED) rows afterwards, renders
attachments, and hands messages to the email client.

Business Rules:
- Enqueueing never commits; the caller's transaction owns the rows
- One row per recipient, so delivery state is tracked per address
- Any send error marks the row FAILED with the error and attempt count;
  it never touches jobs, POs or invoices
- FAILED rows are retried until outbox_max_attempts is reached
- A party with no registered recipients still gets an audit row addressed
  to the internal mailbox

Called by: services/po_chain.py, services/invoice_generator.py,
           services/settlement_orchestrator.py, routers/notifications.py,
           scripts/drain_outbox.py
Depends on: models.Notification, services/email_client.py,
            services/document_service.py
"""

import html
import logging
from datetime import datetime, timezone

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..config import settings
from ..constants import AttachmentKind, NotificationStatus, NotificationType
from ..exceptions import DeliveryError
from ..models import Invoice, Job, Notification, PurchaseOrder

log = logging.getLogger("printflow.notifications")


# ── Outbox ──────────────────────────────────────────────────────────


def internal_recipients() -> list[str]:
    return list(settings.internal_notification_emails) or [settings.email_from]


def enqueue(
    db: Session,
    type: str,
    recipients: list[str],
    subject: str,
    body: str,
    job: Job | None = None,
    attachment_kind: str | None = None,
    attachment_id: int | None = None,
) -> list[Notification]:
    """Add one PENDING notification per recipient to the session."""
    rows = []
    for recipient in dict.fromkeys(recipients or internal_recipients()):
        row = Notification(
            type=type,
            job=job,
            recipient=recipient,
            subject=subject,
            body=body,
            attachment_kind=attachment_kind,
            attachment_id=attachment_id,
            status=NotificationStatus.PENDING,
            attempts=0,
        )
        db.add(row)
        rows.append(row)
    log.info("Queued %s notification for %d recipient(s)", type, len(rows))
    return rows


def pending_notifications(db: Session, limit: int = 50) -> list[Notification]:
    return (
        db.query(Notification)
        .filter(
            or_(
                Notification.status == NotificationStatus.PENDING,
                Notification.status == NotificationStatus.FAILED,
            ),
            Notification.attempts < settings.outbox_max_attempts,
        )
        .order_by(Notification.id)
        .limit(limit)
        .all()
    )


def _attachment_for(db: Session, row: Notification):
    from . import document_service
    from .email_client import Attachment

    if row.attachment_kind == AttachmentKind.INVOICE:
        invoice = db.get(Invoice, row.attachment_id)
        if invoice is None:
            return None
        return Attachment(f"{invoice.invoice_no}.pdf", document_service.render_invoice_pdf(invoice))
    if row.attachment_kind == AttachmentKind.PURCHASE_ORDER:
        po = db.get(PurchaseOrder, row.attachment_id)
        if po is None:
            return None
        return Attachment(f"{po.po_number or f'PO-{po.id}'}.pdf", document_service.render_purchase_order_pdf(po))
    return None


def deliver(db: Session, row: Notification, client=None) -> bool:
    """Attempt one notification; records the outcome on the row. Does not commit."""
    from .email_client import EmailClient

    client = client or EmailClient()
    row.attempts = (row.attempts or 0) + 1
    try:
        attachment = _attachment_for(db, row) if row.attachment_kind else None
    except Exception as e:
        row.status = NotificationStatus.FAILED
        row.last_error = f"Attachment render failed: {e}"[:2000]
        log.error("Notification %d: attachment render failed: %s", row.id, e)
        return False

    try:
        delivery_id = client.send(
            [row.recipient], row.subject, row.body,
            [attachment] if attachment else None,
        )
    except DeliveryError as e:
        row.status = NotificationStatus.FAILED
        row.last_error = str(e)[:2000]
        log.warning("Notification %d to %s failed (attempt %d): %s", row.id, row.recipient, row.attempts, e)
        return False
    except Exception as e:
        row.status = NotificationStatus.FAILED
        row.last_error = f"Unexpected send error: {e.__class__.__name__}: {e}"[:2000]
        log.exception("Notification %d to %s: unexpected send error (attempt %d)", row.id, row.recipient, row.attempts)
        return False

    row.status = NotificationStatus.SENT
    row.delivery_id = delivery_id
    row.last_error = None
    row.sent_at = datetime.now(timezone.utc)
    return True


def dispatch_pending(db: Session, limit: int = 50, client=None) -> dict:
    """Drain the outbox once. Commits after every row."""
    sent = failed = 0
    for row in pending_notifications(db, limit=limit):
        if deliver(db, row, client=client):
            sent += 1
        else:
            failed += 1
        db.commit()
    if sent or failed:
        log.info("Outbox drained: %d sent, %d failed", sent, failed)
    return {"sent": sent, "failed": failed}


# ── Message builders ────────────────────────────────────────────────


def _money(value) -> str:
    return f"${value:,.2f}" if value is not None else "n/a"


def _job_link(job: Job) -> str:
    return f"{settings.app_url}/jobs/{job.id}"


def notify_job_submitted(db: Session, job: Job) -> list[Notification]:
    subject = f"Job {job.job_no} received"
    body = (
        f"<p>Thank you, we received your order <strong>{job.job_no}</strong>"
        f" for {job.quantity:,} pieces.</p>"
        f"<p>Total: {_money(job.customer_total)}</p>"
        f'<p><a href="{_job_link(job)}">View job</a></p>'
    )
    return enqueue(db, NotificationType.JOB_SUBMITTED_CONFIRMATION, job.customer.recipients, subject, body, job=job)


def notify_po_created(db: Session, po: PurchaseOrder, recipients: list[str]) -> list[Notification]:
    job = po.job
    subject = f"Purchase Order {po.po_number} for Job {job.job_no}"
    body = (
        f"<p>Please find attached purchase order <strong>{html.escape(po.po_number or '')}</strong>"
        f" for job {job.job_no}.</p>"
        f"<p>Quantity: {job.quantity:,}<br>Amount: {_money(po.vendor_amount)}</p>"
    )
    return enqueue(
        db, NotificationType.PO_CREATED, recipients, subject, body, job=job,
        attachment_kind=AttachmentKind.PURCHASE_ORDER, attachment_id=po.id,
    )


def notify_job_ready(db: Session, job: Job) -> list[Notification]:
    subject = f"Job {job.job_no} is ready for production"
    body = (
        f"<p>All required files for job <strong>{job.job_no}</strong> have been received.</p>"
        f'<p><a href="{_job_link(job)}">View job</a></p>'
    )
    rows = enqueue(db, NotificationType.JOB_READY_FOR_PRODUCTION, internal_recipients(), subject, body, job=job)
    rows += enqueue(db, NotificationType.JOB_READY_FOR_PRODUCTION, job.customer.recipients, subject, body, job=job)
    if job.vendor is not None:
        vendor_body = (
            f"<p>Job <strong>{job.job_no}</strong> is ready for production.</p>"
            f"<p>Quantity: {job.quantity:,}<br>Amount: {_money(job.vendor_amount)}</p>"
        )
        rows += enqueue(db, NotificationType.VENDOR_JOB_READY, job.vendor.recipients, subject, vendor_body, job=job)
    return rows


def notify_proof_ready(db: Session, job: Job, proof) -> list[Notification]:
    subject = f"Proof v{proof.version} ready for Job {job.job_no}"
    link = f"{settings.app_url}/proofs/share/{proof.share_token}"
    body = (
        f"<p>Version {proof.version} of the proof for job <strong>{job.job_no}</strong>"
        f" is ready for your review.</p>"
        f'<p><a href="{link}">Review proof</a></p>'
    )
    return enqueue(db, NotificationType.PROOF_READY, job.customer.recipients, subject, body, job=job)


def notify_proof_approved(db: Session, job: Job, proof, latest: bool = True) -> list[Notification]:
    """Customer and internal notice; a superseded version only gets the internal audit row."""
    subject = f"Proof approved for Job {job.job_no}"
    if not latest:
        body = (
            f"<p>Proof v{proof.version} for job <strong>{job.job_no}</strong> was approved,"
            f" but a newer version exists. The job status is unchanged.</p>"
        )
        return enqueue(db, NotificationType.PROOF_APPROVED, internal_recipients(), subject, body, job=job)
    body = (
        f"<p>Thank you for approving proof v{proof.version} for job"
        f" <strong>{job.job_no}</strong>. Your job is moving to production.</p>"
    )
    rows = enqueue(db, NotificationType.PROOF_APPROVED, job.customer.recipients, subject, body, job=job)
    rows += enqueue(db, NotificationType.PROOF_APPROVED, internal_recipients(), subject, body, job=job)
    return rows


def notify_changes_requested(db: Session, job: Job, proof, comments: str) -> list[Notification]:
    subject = f"Changes requested on proof v{proof.version} for Job {job.job_no}"
    body = f"<p>The customer requested changes:</p><blockquote>{html.escape(comments)}</blockquote>"
    return enqueue(db, NotificationType.CHANGES_REQUESTED, internal_recipients(), subject, body, job=job)


def notify_invoice(db: Session, invoice: Invoice) -> list[Notification]:
    job = invoice.job
    subject = f"Invoice {invoice.invoice_no} for Job {job.job_no}"
    body = (
        f"<p>Please find attached invoice <strong>{invoice.invoice_no}</strong>"
        f" for job {job.job_no}.</p>"
        f"<p>Amount due: {_money(invoice.amount)}<br>"
        f"Due date: {invoice.due_at:%Y-%m-%d}</p>"
    )
    return enqueue(
        db, NotificationType.INVOICE_SENT, invoice.to_company.recipients, subject, body, job=job,
        attachment_kind=AttachmentKind.INVOICE, attachment_id=invoice.id,
    )


def notify_job_completed(db: Session, job: Job) -> list[Notification]:
    subject = f"Job {job.job_no} completed"
    body = f"<p>Job <strong>{job.job_no}</strong> has been completed.</p>"
    return enqueue(db, NotificationType.JOB_COMPLETED, internal_recipients(), subject, body, job=job)


# ── Internal audit notices ──────────────────────────────────────────


def _audit(db: Session, type: str, job: Job, subject: str, body: str) -> list[Notification]:
    return enqueue(db, type, internal_recipients(), subject, body, job=job)


def notify_job_updated(db: Session, job: Job, fields: list[str], changed_by: str | None = None) -> list[Notification]:
    subject = f"Job {job.job_no} edited"
    body = (
        f"<p>Job <strong>{job.job_no}</strong> was edited by {html.escape(changed_by or 'unknown')}.</p>"
        f"<p>Fields: {html.escape(', '.join(fields))}</p>"
    )
    return _audit(db, NotificationType.JOB_UPDATED, job, subject, body)


def notify_job_deleted(db: Session, job: Job) -> list[Notification]:
    subject = f"Job {job.job_no} deleted"
    body = f"<p>Job <strong>{job.job_no}</strong> was deleted by {html.escape(job.deleted_by or 'unknown')}.</p>"
    return _audit(db, NotificationType.JOB_DELETED, job, subject, body)


def notify_job_cancelled(db: Session, job: Job, cancelled_pos: int) -> list[Notification]:
    subject = f"Job {job.job_no} cancelled"
    body = (
        f"<p>Job <strong>{job.job_no}</strong> was cancelled.</p>"
        f"<p>Open purchase orders cancelled: {cancelled_pos}</p>"
    )
    return _audit(db, NotificationType.JOB_CANCELLED, job, subject, body)


def notify_po_updated(db: Session, po: PurchaseOrder, change: str) -> list[Notification]:
    subject = f"Purchase Order {po.po_number} updated"
    body = (
        f"<p>Purchase order <strong>{html.escape(po.po_number or '')}</strong> for job"
        f" {po.job.job_no}: {html.escape(change)}.</p>"
        f"<p>Original: {_money(po.original_amount)}<br>Vendor: {_money(po.vendor_amount)}"
        f"<br>Margin: {_money(po.margin_amount)}</p>"
    )
    return _audit(db, NotificationType.PO_UPDATED, po.job, subject, body)


def notify_invoice_updated(db: Session, invoice: Invoice) -> list[Notification]:
    subject = f"Invoice {invoice.invoice_no} updated"
    body = (
        f"<p>Invoice <strong>{invoice.invoice_no}</strong> was edited.</p>"
        f"<p>Amount: {_money(invoice.amount)}<br>Due date: {invoice.due_at:%Y-%m-%d}</p>"
    )
    return _audit(db, NotificationType.INVOICE_UPDATED, invoice.job, subject, body)


def notify_invoice_paid(db: Session, invoice: Invoice) -> list[Notification]:
    subject = f"Invoice {invoice.invoice_no} paid"
    body = (
        f"<p>Invoice <strong>{invoice.invoice_no}</strong> ({_money(invoice.amount)})"
        f" was marked paid on {invoice.paid_at:%Y-%m-%d}.</p>"
    )
    return _audit(db, NotificationType.INVOICE_PAID, invoice.job, subject, body)
