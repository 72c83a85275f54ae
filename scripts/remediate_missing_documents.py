#!/usr/bin/env python3
"""Create purchase orders and invoices that a job's status says should exist.

Covers jobs whose customer invoice failed after proof approval, or whose
PO creation was interrupted. Every step is an idempotent ensure, so the
script is safe to re-run.

Usage:
    python scripts/remediate_missing_documents.py --dry-run
    python scripts/remediate_missing_documents.py
    python scripts/remediate_missing_documents.py --job J-2026-000123
"""

import argparse
import os
import sys

# Add project root so we can import printflow modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from loguru import logger  # noqa: E402

from printflow.constants import CompanyRole, HopKey, JobStatus  # noqa: E402
from printflow.database import SessionLocal  # noqa: E402
from printflow.exceptions import SettlementError  # noqa: E402
from printflow.logging_config import setup_logging  # noqa: E402
from printflow.models import Job  # noqa: E402
from printflow.services import invoice_generator, po_chain, settlement_orchestrator  # noqa: E402
from printflow.services.routing_resolver import get_party, route_for_job  # noqa: E402

ACTIVE_STATUSES = (
    JobStatus.PENDING,
    JobStatus.READY_FOR_PROOF,
    JobStatus.PROOF_APPROVED,
    JobStatus.IN_PRODUCTION,
    JobStatus.COMPLETED,
)


def missing_documents(db, job) -> dict:
    """What remediate_job would create for this job, without writing."""
    route = route_for_job(db, job)
    missing_pos = [
        hop.key for hop in route.hops
        if po_chain.find_po(db, job.id, hop.origin.id, hop.target_key) is None
    ]
    broker = get_party(db, CompanyRole.BROKER)
    pairs = []
    if job.status == JobStatus.COMPLETED:
        if route.hop(HopKey.INTERMEDIARY_TO_PRODUCER):
            producer = get_party(db, CompanyRole.PRODUCER)
            intermediary = get_party(db, CompanyRole.INTERMEDIARY)
            pairs += [(producer, intermediary), (intermediary, broker)]
        pairs.append((broker, job.customer))
    elif job.status == JobStatus.PROOF_APPROVED or settlement_orchestrator.has_approved_latest_proof(db, job):
        pairs.append((broker, job.customer))
    missing_invoices = [
        f"{src.name} → {dst.name}" for src, dst in pairs
        if invoice_generator.find_invoice(db, job.id, src.id, dst.id) is None
    ]
    return {"pos": missing_pos, "invoices": missing_invoices}


def main():
    parser = argparse.ArgumentParser(description="PrintFlow missing PO / invoice remediation")
    parser.add_argument("--dry-run", action="store_true", help="Report gaps without creating anything")
    parser.add_argument("--job", help="Only this job number")
    args = parser.parse_args()

    setup_logging()
    db = SessionLocal()
    totals = {"jobs": 0, "pos_created": 0, "invoices_created": 0, "errors": 0}
    try:
        q = db.query(Job).filter(Job.deleted_at.is_(None), Job.status.in_(ACTIVE_STATUSES))
        if args.job:
            q = q.filter(Job.job_no == args.job)
        for job in q.order_by(Job.id).all():
            totals["jobs"] += 1
            try:
                if args.dry_run:
                    gaps = missing_documents(db, job)
                    if gaps["pos"] or gaps["invoices"]:
                        print(f"  {job.job_no} [{job.status}] missing POs={gaps['pos']} invoices={gaps['invoices']}")
                    continue
                summary = settlement_orchestrator.remediate_job(db, job)
                totals["pos_created"] += summary["pos_created"]
                totals["invoices_created"] += summary["invoices_created"]
            except SettlementError as e:
                db.rollback()
                totals["errors"] += 1
                logger.warning("Job {} not remediated: {}", job.job_no, e)
    finally:
        db.close()

    print(
        f"{'DRY RUN: ' if args.dry_run else ''}jobs={totals['jobs']} "
        f"pos_created={totals['pos_created']} invoices_created={totals['invoices_created']} "
        f"errors={totals['errors']}"
    )
    return 1 if totals["errors"] else 0


if __name__ == "__main__":
    sys.exit(main())
