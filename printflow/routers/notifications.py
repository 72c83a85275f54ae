"""
routers/notifications.py — Outbox Routes

Inspect queued notifications and trigger a dispatch pass.

Called by: main.py (router mount)
Depends on: services/notification_service.py
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import Notification
from ..services import notification_service

router = APIRouter(tags=["notifications"])


def notification_to_dict(n) -> dict:
    return {
        "id": n.id,
        "type": n.type,
        "job_id": n.job_id,
        "recipient": n.recipient,
        "subject": n.subject,
        "attachment_kind": n.attachment_kind,
        "attachment_id": n.attachment_id,
        "status": n.status,
        "attempts": n.attempts,
        "last_error": n.last_error,
        "created_at": n.created_at.isoformat() if n.created_at else None,
        "sent_at": n.sent_at.isoformat() if n.sent_at else None,
    }


@router.get("/api/notifications")
async def list_notifications(
    status: str | None = Query(None),
    job_id: int | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    q = db.query(Notification)
    if status:
        q = q.filter(Notification.status == status.upper())
    if job_id is not None:
        q = q.filter(Notification.job_id == job_id)
    return [notification_to_dict(n) for n in q.order_by(Notification.id.desc()).limit(limit).all()]


@router.post("/api/notifications/dispatch")
def dispatch(limit: int = Query(50, ge=1, le=500), db: Session = Depends(get_db)):
    return notification_service.dispatch_pending(db, limit=limit)
