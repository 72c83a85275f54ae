"""
tests/test_invoice_generator.py -- Tests for services/invoice_generator.py

Called by: pytest
Depends on: services/invoice_generator.py, conftest fixtures
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from printflow.database import _engine_kwargs, configure_sqlite
from printflow.exceptions import InvalidTransitionError, MissingAmountError, NotFoundError
from printflow.constants import NotificationType
from printflow.models import Base, Company, Invoice, Job, Notification, PurchaseOrder
from printflow.services import invoice_generator, job_service, po_chain
from printflow.services.notification_service import internal_recipients

D = Decimal


def _invoices(db, job):
    return db.query(Invoice).filter_by(job_id=job.id).order_by(Invoice.id).all()


class TestEnsureInvoice:
    def test_customer_invoice_bills_customer_total(self, db_session, standard_job, parties):
        invoice, created = invoice_generator.ensure_customer_invoice(db_session, standard_job)
        db_session.commit()
        assert created
        assert invoice.amount == D("675.60")
        assert invoice.from_company_id == parties["broker"].id
        assert invoice.to_company_id == parties["customer"].id
        year = invoice.issued_at.year
        assert invoice.invoice_no == f"INV-{year}-000001"

    def test_second_call_returns_existing(self, db_session, standard_job):
        first, _ = invoice_generator.ensure_customer_invoice(db_session, standard_job)
        again, created = invoice_generator.ensure_customer_invoice(db_session, standard_job)
        db_session.commit()
        assert created is False
        assert again.id == first.id
        assert len(_invoices(db_session, standard_job)) == 1

    def test_lost_race_returns_winner_and_releases_number(self, db_session, standard_job):
        first, _ = invoice_generator.ensure_customer_invoice(db_session, standard_job)
        db_session.commit()
        real_find = invoice_generator.find_invoice
        calls = []

        def stale_then_real(*args, **kwargs):
            calls.append(args)
            return None if len(calls) == 1 else real_find(*args, **kwargs)

        with patch("printflow.services.invoice_generator.find_invoice", side_effect=stale_then_real):
            again, created = invoice_generator.ensure_customer_invoice(db_session, standard_job)
        db_session.commit()
        assert created is False
        assert again.id == first.id

        # the rejected insert's number went back to the sequence
        other, _ = invoice_generator.generate_invoice_chain(db_session, standard_job)[0]
        assert other.invoice_no.endswith("-000002")

    def test_chain_for_standard_job(self, db_session, standard_job, parties):
        results = invoice_generator.generate_invoice_chain(db_session, standard_job)
        db_session.commit()
        pairs = [(i.from_company_id, i.to_company_id, i.amount) for i, _ in results]
        assert pairs == [
            (parties["producer"].id, parties["intermediary"].id, D("347.40")),
            (parties["intermediary"].id, parties["broker"].id, D("604.25")),
            (parties["broker"].id, parties["customer"].id, D("675.60")),
        ]
        numbers = [i.invoice_no for i, _ in results]
        assert len(set(numbers)) == 3
        assert sorted(numbers) == numbers

    def test_chain_is_idempotent(self, db_session, standard_job):
        invoice_generator.generate_invoice_chain(db_session, standard_job)
        again = invoice_generator.generate_invoice_chain(db_session, standard_job)
        db_session.commit()
        assert not any(created for _, created in again)
        assert len(_invoices(db_session, standard_job)) == 3

    def test_concurrent_chain_on_file_db(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'race.db'}"
        eng = configure_sqlite(create_engine(url, **_engine_kwargs(url)))

        Base.metadata.create_all(bind=eng)
        Factory = sessionmaker(bind=eng, autoflush=False, expire_on_commit=False)

        with Factory() as s:
            for name, role in (("B", "BROKER"), ("I", "INTERMEDIARY"), ("P", "PRODUCER"), ("C", "CUSTOMER")):
                s.add(Company(name=name, role=role, email=f"{name.lower()}@x.test", is_active=True))
            s.commit()
            customer = s.query(Company).filter_by(role="CUSTOMER").one()
            job, _ = job_service.create_job(s, customer_id=customer.id, quantity=10000, size_id="SM_7_25_16_375")
            po_chain.ensure_chain(s, job)
            s.commit()
            job_id = job.id

        barrier = threading.Barrier(8)

        def worker(_):
            barrier.wait()
            with Factory() as s:
                results = invoice_generator.generate_invoice_chain(s, s.get(Job, job_id))
                s.commit()
                return sum(created for _, created in results)

        with ThreadPoolExecutor(max_workers=8) as pool:
            created = list(pool.map(worker, range(8)))

        with Factory() as s:
            numbers = [i.invoice_no for i in s.query(Invoice).filter_by(job_id=job_id)]
        assert sum(created) == 3
        assert len(numbers) == len(set(numbers)) == 3
        eng.dispose()

    def test_chain_for_vendor_job_bills_customer_only(self, db_session, vendor_job, parties):
        results = invoice_generator.generate_invoice_chain(db_session, vendor_job)
        assert len(results) == 1
        assert results[0][0].amount == D("1000.00")

    def test_upstream_invoice_uses_po_vendor_amount(self, db_session, standard_job, parties):
        po = db_session.query(PurchaseOrder).filter_by(
            job_id=standard_job.id, target_company_id=parties["producer"].id
        ).one()
        po.vendor_amount = D("350.00")
        po.margin_amount = po.original_amount - po.vendor_amount
        db_session.commit()
        invoice, _ = invoice_generator.ensure_invoice(
            db_session, standard_job, parties["producer"], parties["intermediary"]
        )
        assert invoice.amount == D("350.00")

    def test_missing_amount_fails_loudly(self, db_session, standard_job, parties):
        standard_job.customer_total = None
        standard_job.broker_margin = None
        with pytest.raises(MissingAmountError):
            invoice_generator.ensure_customer_invoice(db_session, standard_job)


class TestTerms:
    def test_producer_invoices_are_net_ten(self, db_session, standard_job, parties):
        invoice, _ = invoice_generator.ensure_invoice(
            db_session, standard_job, parties["producer"], parties["intermediary"]
        )
        assert invoice.due_at - invoice.issued_at == timedelta(days=10)

    def test_default_net_thirty(self, db_session, standard_job):
        invoice, _ = invoice_generator.ensure_customer_invoice(db_session, standard_job)
        assert invoice.due_at - invoice.issued_at == timedelta(days=30)

    def test_company_override(self, db_session, standard_job, parties):
        parties["broker"].payment_terms_days = 15
        db_session.commit()
        invoice, _ = invoice_generator.ensure_customer_invoice(db_session, standard_job)
        assert invoice.due_at - invoice.issued_at == timedelta(days=15)


class TestPaymentAndEdits:
    def test_mark_paid_once(self, db_session, standard_job):
        invoice, _ = invoice_generator.ensure_customer_invoice(db_session, standard_job)
        db_session.commit()
        paid = datetime(2026, 3, 1, tzinfo=timezone.utc)
        invoice_generator.mark_invoice_paid(db_session, invoice.id, paid_at=paid)
        invoice_generator.mark_invoice_paid(db_session, invoice.id, paid_at=paid + timedelta(days=5))
        assert invoice.paid_at == paid
        assert invoice.is_paid

    def test_paid_invoice_cannot_be_edited(self, db_session, standard_job):
        invoice, _ = invoice_generator.ensure_customer_invoice(db_session, standard_job)
        db_session.commit()
        invoice_generator.mark_invoice_paid(db_session, invoice.id)
        with pytest.raises(InvalidTransitionError):
            invoice_generator.update_invoice(db_session, invoice.id, amount=10)

    def test_edit_syncs_matching_po(self, db_session, standard_job, parties):
        invoice, _ = invoice_generator.ensure_invoice(
            db_session, standard_job, parties["intermediary"], parties["broker"]
        )
        db_session.commit()
        invoice_generator.update_invoice(db_session, invoice.id, amount="610.00")
        po = db_session.query(PurchaseOrder).filter_by(
            job_id=standard_job.id, origin_company_id=parties["broker"].id
        ).one()
        assert invoice.amount == D("610.00")
        assert po.vendor_amount == D("610.00")
        assert po.margin_amount == D("65.60")

    def test_payment_and_edit_record_audit_notices(self, db_session, standard_job, parties):
        invoice, _ = invoice_generator.ensure_invoice(
            db_session, standard_job, parties["intermediary"], parties["broker"]
        )
        db_session.commit()
        invoice_generator.update_invoice(db_session, invoice.id, amount="610.00")
        invoice_generator.mark_invoice_paid(db_session, invoice.id)
        invoice_generator.mark_invoice_paid(db_session, invoice.id)

        def count(type_):
            return db_session.query(Notification).filter_by(type=type_).count()

        n = len(internal_recipients())
        assert count(NotificationType.INVOICE_UPDATED) == n
        assert count(NotificationType.PO_UPDATED) == n
        assert count(NotificationType.INVOICE_PAID) == n

    def test_unknown_invoice(self, db_session):
        with pytest.raises(NotFoundError):
            invoice_generator.get_invoice(db_session, 404)
