"""
tests/test_settlement_orchestrator.py -- Tests for services/settlement_orchestrator.py

Covers the lifecycle handlers: file uploads and readiness, proof versions,
approval with invoicing, changes requested, completion, cancellation,
remediation, and delivery failures that must not touch the ledger.

Called by: pytest
Depends on: services/settlement_orchestrator.py, conftest fixtures
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from printflow.constants import (
    JobStatus,
    NotificationStatus,
    NotificationType,
    POStatus,
    ProofStatus,
)
from printflow.exceptions import (
    DeliveryError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from printflow.models import Invoice, Notification, ProofApproval, PurchaseOrder
from printflow.services import job_service, notification_service
from printflow.services import settlement_orchestrator as so


def _notifications(db, type_):
    return db.query(Notification).filter_by(type=type_).all()


class FailingClient:
    def __init__(self):
        self.calls = 0

    def send(self, to, subject, html, attachments=None):
        self.calls += 1
        raise DeliveryError("Email API rejected message: HTTP 400")


# ── Job creation & files ────────────────────────────────────────────


class TestJobCreated:
    def test_confirmation_queued_for_customer(self, db_session, standard_job):
        rows = _notifications(db_session, NotificationType.JOB_SUBMITTED_CONFIRMATION)
        assert sorted(r.recipient for r in rows) == ["ap@acme.test", "jane@acme.test"]
        assert all(r.status == NotificationStatus.PENDING for r in rows)

    def test_pos_materialized(self, db_session, standard_job):
        assert db_session.query(PurchaseOrder).filter_by(job_id=standard_job.id).count() == 2


class TestFilesUploaded:
    def test_ready_edge_queues_notices(self, db_session, standard_job):
        result = so.on_files_uploaded(
            db_session, standard_job.id, [{"kind": "ARTWORK", "file_name": "front.pdf"}]
        )
        assert result["became_ready"] is True
        assert result["readiness"]["is_ready"] is True
        rows = _notifications(db_session, NotificationType.JOB_READY_FOR_PRODUCTION)
        # internal mailbox + two customer addresses
        assert len(rows) == 3

    def test_second_upload_does_not_renotify(self, db_session, standard_job):
        so.on_files_uploaded(db_session, standard_job.id, [{"kind": "ARTWORK", "file_name": "front.pdf"}])
        result = so.on_files_uploaded(db_session, standard_job.id, [{"kind": "ARTWORK", "file_name": "back.pdf"}])
        assert result["became_ready"] is False
        assert len(_notifications(db_session, NotificationType.JOB_READY_FOR_PRODUCTION)) == 3

    def test_vendor_notified_on_vendor_job(self, db_session, vendor_job):
        so.on_files_uploaded(db_session, vendor_job.id, [{"kind": "ARTWORK", "file_name": "art.pdf"}])
        rows = _notifications(db_session, NotificationType.VENDOR_JOB_READY)
        assert [r.recipient for r in rows] == ["jobs@northside.test"]

    def test_terminal_job_rejects_files(self, db_session, standard_job):
        so.cancel_job(db_session, standard_job.id)
        with pytest.raises(InvalidTransitionError):
            so.on_files_uploaded(db_session, standard_job.id, [{"kind": "ARTWORK", "file_name": "x.pdf"}])


# ── Proofs ──────────────────────────────────────────────────────────


class TestProofUpload:
    def test_versions_increment(self, db_session, standard_job):
        v1 = so.on_proof_uploaded(db_session, standard_job.id, "proof-1.pdf")
        v2 = so.on_proof_uploaded(db_session, standard_job.id, "proof-2.pdf")
        assert (v1.version, v2.version) == (1, 2)
        assert standard_job.status == JobStatus.READY_FOR_PROOF
        assert [p.version for p in so.list_proofs(db_session, standard_job.id)] == [1, 2]

    def test_share_link_expires(self, db_session, standard_job):
        proof = so.on_proof_uploaded(db_session, standard_job.id, "proof.pdf")
        assert so.get_proof_by_share_token(db_session, proof.share_token).id == proof.id

        proof.share_expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        db_session.commit()
        with pytest.raises(NotFoundError):
            so.get_proof_by_share_token(db_session, proof.share_token)

    def test_unknown_share_token(self, db_session):
        with pytest.raises(NotFoundError):
            so.get_proof_by_share_token(db_session, "nope")

    def test_customer_notified(self, db_session, standard_job):
        proof = so.on_proof_uploaded(db_session, standard_job.id, "proof.pdf")
        rows = _notifications(db_session, NotificationType.PROOF_READY)
        assert len(rows) == 2
        assert proof.share_token in rows[0].body

    def test_completed_job_rejects_proof(self, db_session, standard_job):
        so.complete_job(db_session, standard_job.id)
        with pytest.raises(InvalidTransitionError):
            so.on_proof_uploaded(db_session, standard_job.id, "late.pdf")


class TestProofApproval:
    def test_approval_creates_one_customer_invoice(self, db_session, standard_job, parties):
        proof = so.on_proof_uploaded(db_session, standard_job.id, "proof.pdf")
        result = so.on_proof_approved(db_session, proof.id, approved_by="jane@acme.test")

        assert result["invoice_error"] is None
        invoice = result["invoice"]
        assert invoice.from_company_id == parties["broker"].id
        assert invoice.to_company_id == parties["customer"].id
        assert invoice.amount == standard_job.customer_total
        assert proof.status == ProofStatus.APPROVED
        assert standard_job.status == JobStatus.PROOF_APPROVED
        assert db_session.query(Invoice).count() == 1
        assert len(_notifications(db_session, NotificationType.INVOICE_SENT)) == 2

    def test_reapproval_is_idempotent(self, db_session, standard_job):
        proof = so.on_proof_approved(
            db_session, so.on_proof_uploaded(db_session, standard_job.id, "p.pdf").id
        )["proof"]
        so.on_proof_approved(db_session, proof.id)
        assert db_session.query(Invoice).count() == 1
        assert db_session.query(ProofApproval).filter_by(proof_id=proof.id).count() == 1

    def test_older_version_does_not_move_job(self, db_session, standard_job):
        v1 = so.on_proof_uploaded(db_session, standard_job.id, "v1.pdf")
        so.on_proof_uploaded(db_session, standard_job.id, "v2.pdf")
        result = so.on_proof_approved(db_session, v1.id)
        assert v1.status == ProofStatus.APPROVED
        assert standard_job.status == JobStatus.READY_FOR_PROOF
        assert result["invoice"] is None
        assert db_session.query(Invoice).count() == 0

    def test_older_version_approval_not_announced_to_customer(self, db_session, standard_job, parties):
        v1 = so.on_proof_uploaded(db_session, standard_job.id, "v1.pdf")
        so.on_proof_uploaded(db_session, standard_job.id, "v2.pdf")
        so.on_proof_approved(db_session, v1.id)

        rows = _notifications(db_session, NotificationType.PROOF_APPROVED)
        assert rows
        assert {r.recipient for r in rows} == set(notification_service.internal_recipients())
        assert not {r.recipient for r in rows} & set(parties["customer"].recipients)
        assert all("moving to production" not in r.body for r in rows)

    def test_invoice_failure_keeps_approval(self, db_session, standard_job):
        proof = so.on_proof_uploaded(db_session, standard_job.id, "proof.pdf")
        with patch(
            "printflow.services.invoice_generator.ensure_customer_invoice",
            side_effect=RuntimeError("numbering unavailable"),
        ):
            result = so.on_proof_approved(db_session, proof.id)

        assert result["invoice"] is None
        assert "numbering unavailable" in result["invoice_error"]
        db_session.expire_all()
        assert proof.status == ProofStatus.APPROVED
        assert standard_job.status == JobStatus.PROOF_APPROVED
        assert db_session.query(Invoice).count() == 0

        # remediation: approving again retries the invoice
        result = so.on_proof_approved(db_session, proof.id)
        assert result["invoice"] is not None
        assert db_session.query(Invoice).count() == 1

    def test_delivery_failure_leaves_ledger_intact(self, db_session, standard_job):
        proof = so.on_proof_uploaded(db_session, standard_job.id, "proof.pdf")
        so.on_proof_approved(db_session, proof.id)
        client = FailingClient()

        with patch("printflow.services.document_service.render_invoice_pdf", return_value=b"%PDF-1.4"), \
             patch("printflow.services.document_service.render_purchase_order_pdf", return_value=b"%PDF-1.4"):
            summary = notification_service.dispatch_pending(db_session, limit=100, client=client)

        assert summary["sent"] == 0
        assert summary["failed"] == client.calls
        statuses = {r.status for r in db_session.query(Notification).all()}
        assert statuses == {NotificationStatus.FAILED}
        assert db_session.query(Invoice).count() == 1
        assert standard_job.status == JobStatus.PROOF_APPROVED


class TestChangesRequested:
    def test_changes_move_job_to_production(self, db_session, standard_job):
        proof = so.on_proof_uploaded(db_session, standard_job.id, "proof.pdf")
        so.on_changes_requested(db_session, proof.id, "  Logo is too small  ", requested_by="jane@acme.test")

        assert proof.status == ProofStatus.CHANGES_REQUESTED
        assert standard_job.status == JobStatus.IN_PRODUCTION
        approval = db_session.query(ProofApproval).filter_by(proof_id=proof.id).one()
        assert approval.approved is False
        assert approval.comments == "Logo is too small"
        assert len(_notifications(db_session, NotificationType.CHANGES_REQUESTED)) == 1

    def test_comments_required(self, db_session, standard_job):
        proof = so.on_proof_uploaded(db_session, standard_job.id, "proof.pdf")
        with pytest.raises(ValidationError):
            so.on_changes_requested(db_session, proof.id, "   ")

    def test_rejected_proof_cannot_be_approved(self, db_session, standard_job):
        proof = so.on_proof_uploaded(db_session, standard_job.id, "proof.pdf")
        so.on_changes_requested(db_session, proof.id, "Wrong address block")
        with pytest.raises(InvalidTransitionError):
            so.on_proof_approved(db_session, proof.id)

    def test_new_version_after_changes(self, db_session, standard_job):
        proof = so.on_proof_uploaded(db_session, standard_job.id, "proof.pdf")
        so.on_changes_requested(db_session, proof.id, "Fix the date")
        v2 = so.on_proof_uploaded(db_session, standard_job.id, "proof-2.pdf")
        assert v2.version == 2
        assert standard_job.status == JobStatus.READY_FOR_PROOF


# ── Completion, cancel, remediation ─────────────────────────────────


class TestCompleteJob:
    def test_generates_full_chain(self, db_session, standard_job):
        job, invoices = so.complete_job(db_session, standard_job.id, completed_by="ops")
        assert job.status == JobStatus.COMPLETED
        assert len(invoices) == 3
        assert len(_notifications(db_session, NotificationType.JOB_COMPLETED)) == 1

    def test_reuses_approval_invoice(self, db_session, standard_job):
        proof = so.on_proof_uploaded(db_session, standard_job.id, "proof.pdf")
        customer_invoice = so.on_proof_approved(db_session, proof.id)["invoice"]
        _, invoices = so.complete_job(db_session, standard_job.id)
        assert customer_invoice.id in {i.id for i in invoices}
        assert db_session.query(Invoice).count() == 3

    def test_cannot_complete_twice(self, db_session, standard_job):
        so.complete_job(db_session, standard_job.id)
        with pytest.raises(InvalidTransitionError):
            so.complete_job(db_session, standard_job.id)


class TestCancelJob:
    def test_open_pos_cancelled(self, db_session, standard_job):
        so.cancel_job(db_session, standard_job.id, cancelled_by="ops")
        statuses = {po.status for po in standard_job.purchase_orders}
        assert statuses == {POStatus.CANCELLED}
        assert standard_job.status == JobStatus.CANCELLED

        notices = _notifications(db_session, NotificationType.JOB_CANCELLED)
        assert notices
        assert "Open purchase orders cancelled: 2" in notices[0].body

    def test_cancelled_job_cannot_complete(self, db_session, standard_job):
        so.cancel_job(db_session, standard_job.id)
        with pytest.raises(InvalidTransitionError):
            so.complete_job(db_session, standard_job.id)


class TestRemediate:
    def test_fills_missing_documents(self, db_session, parties):
        job, _ = job_service.create_job(
            db_session, customer_id=parties["customer"].id, quantity=10000, size_id="SM_7_25_16_375"
        )
        job_service.transition_job(job, JobStatus.COMPLETED)
        db_session.commit()

        summary = so.remediate_job(db_session, job)
        assert summary["pos_created"] == 2
        assert summary["invoices_created"] == 3

        again = so.remediate_job(db_session, job)
        assert again["pos_created"] == 0
        assert again["invoices_created"] == 0

    def test_approved_job_gets_customer_invoice(self, db_session, standard_job):
        proof = so.on_proof_uploaded(db_session, standard_job.id, "proof.pdf")
        with patch(
            "printflow.services.invoice_generator.ensure_customer_invoice",
            side_effect=RuntimeError("boom"),
        ):
            so.on_proof_approved(db_session, proof.id)

        summary = so.remediate_job(db_session, standard_job)
        assert summary["invoices_created"] == 1

    def test_cancelled_job_skipped(self, db_session, standard_job):
        so.cancel_job(db_session, standard_job.id)
        assert so.remediate_job(db_session, standard_job)["pos_created"] == 0
