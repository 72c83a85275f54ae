#!/usr/bin/env python3
"""Deliver queued notifications (PENDING, and FAILED under the retry cap).

Run from cron or by hand after an email API outage.

Usage:
    python scripts/drain_outbox.py              # deliver up to 200
    python scripts/drain_outbox.py --limit 50
    python scripts/drain_outbox.py --dry-run    # list what would be sent
"""

import argparse
import os
import sys

# Add project root so we can import printflow modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from loguru import logger  # noqa: E402

from printflow.database import SessionLocal  # noqa: E402
from printflow.logging_config import setup_logging  # noqa: E402
from printflow.services.notification_service import dispatch_pending, pending_notifications  # noqa: E402


def main():
    parser = argparse.ArgumentParser(description="PrintFlow outbox drain")
    parser.add_argument("--limit", type=int, default=200, help="Maximum notifications to attempt")
    parser.add_argument("--dry-run", action="store_true", help="List pending notifications without sending")
    args = parser.parse_args()

    setup_logging()
    db = SessionLocal()
    try:
        if args.dry_run:
            rows = pending_notifications(db, limit=args.limit)
            for row in rows:
                print(f"  #{row.id} {row.type:<28} {row.status:<8} attempts={row.attempts} → {row.recipient}")
            print(f"{len(rows)} notification(s) pending")
            return 0

        result = dispatch_pending(db, limit=args.limit)
        logger.info("Outbox drained: {} sent, {} failed", result["sent"], result["failed"])
        print(f"sent={result['sent']} failed={result['failed']}")
        return 1 if result["failed"] else 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
