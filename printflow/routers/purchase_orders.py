"""
routers/purchase_orders.py — Purchase Order Routes

List and edit POs, attach the intermediary's PO document, render PO PDFs,
and accept the intermediary's PO webhook.

Business Rules:
- Margin is recomputed on every amount edit; it is never accepted as input
- Cancelled POs cannot be edited
- An uploaded PO document never overwrites ledger amounts; a mismatch
  flags the job for approval
- The webhook is idempotent per component/estimate pair

Called by: main.py (router mount)
Depends on: services/po_chain.py, services/document_service.py,
            services/settlement_orchestrator.py
"""

import asyncio

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import Response
from loguru import logger
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..exceptions import NotFoundError
from ..rate_limit import limiter
from ..schemas.purchase_orders import IntermediaryPOWebhook, PurchaseOrderStatusUpdate, PurchaseOrderUpdate
from ..services import po_chain, settlement_orchestrator

router = APIRouter(tags=["purchase-orders"])


def _f(value):
    return float(value) if value is not None else None


def po_to_dict(po) -> dict:
    return {
        "id": po.id,
        "job_id": po.job_id,
        "job_no": po.job.job_no if po.job else None,
        "origin_company_id": po.origin_company_id,
        "origin_name": po.origin_company.name if po.origin_company else None,
        "target_company_id": po.target_company_id,
        "target_vendor_id": po.target_vendor_id,
        "target_name": po.target_name,
        "po_number": po.po_number,
        "po_number_source": po.po_number_source,
        "reference_po_number": po.reference_po_number,
        "original_amount": _f(po.original_amount),
        "vendor_amount": _f(po.vendor_amount),
        "margin_amount": _f(po.margin_amount),
        "vendor_cpm": _f(po.vendor_cpm),
        "external_ref": po.external_ref,
        "pdf_file_id": po.pdf_file_id,
        "status": po.status,
        "created_at": po.created_at.isoformat() if po.created_at else None,
    }


@router.get("/api/purchase-orders")
async def list_purchase_orders(
    job_id: int | None = Query(None),
    status: str | None = Query(None),
    db: Session = Depends(get_db),
):
    return [po_to_dict(po) for po in po_chain.list_pos(db, job_id=job_id, status=status)]


@router.get("/api/purchase-orders/{po_id}")
async def get_purchase_order(po_id: int, db: Session = Depends(get_db)):
    return po_to_dict(po_chain.get_po(db, po_id))


@router.patch("/api/purchase-orders/{po_id}")
async def update_purchase_order(po_id: int, body: PurchaseOrderUpdate, db: Session = Depends(get_db)):
    po = po_chain.update_po(db, po_id, **body.model_dump(exclude_unset=True))
    return po_to_dict(po)


@router.patch("/api/purchase-orders/{po_id}/status")
async def update_purchase_order_status(
    po_id: int, body: PurchaseOrderStatusUpdate, db: Session = Depends(get_db)
):
    return po_to_dict(po_chain.update_po_status(db, po_id, body.status))


@router.post("/api/jobs/{job_id}/po-document", status_code=201)
async def upload_po_document(
    job_id: int,
    file: UploadFile = File(...),
    po_number: str | None = Form(None),
    db: Session = Depends(get_db),
):
    """Attach the intermediary's PO PDF; the PO number is read from it when not given."""
    data = await file.read()
    if not data:
        raise HTTPException(400, "Empty file")
    if len(data) > settings.max_upload_size_mb * 1024 * 1024:
        raise HTTPException(413, f"File exceeds {settings.max_upload_size_mb} MB")

    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(
        None,
        settlement_orchestrator.on_po_document_parsed,
        db, job_id, data, file.filename or "purchase-order.pdf", po_number,
    )
    return {
        "purchase_order": po_to_dict(result["purchase_order"]),
        "created": result["created"],
        "file_id": result["file_id"],
        "extracted_po_number": result["extracted_po_number"],
        "fields": result["fields"],
        "amount_matches": result["amount_matches"],
    }


@router.get("/api/purchase-orders/{po_id}/pdf")
@limiter.limit("10/minute")
async def download_purchase_order_pdf(po_id: int, request: Request, db: Session = Depends(get_db)):
    """Render and download a purchase order PDF."""
    from ..services.document_service import generate_purchase_order_pdf

    try:
        loop = asyncio.get_running_loop()
        pdf_bytes = await loop.run_in_executor(None, generate_purchase_order_pdf, po_id, db)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    except Exception as e:
        logger.error("PDF generation failed for PO {}: {}", po_id, e)
        raise HTTPException(500, "PDF generation failed")

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename=po-{po_id}.pdf"},
    )


@router.post("/api/webhooks/intermediary-po")
async def intermediary_po_webhook(body: IntermediaryPOWebhook, db: Session = Depends(get_db)):
    payload = body.model_dump(mode="json")
    po, created = settlement_orchestrator.on_webhook_po(db, payload)
    logger.info("Intermediary PO webhook {}-{}: {}", body.component_id, body.estimate_number,
                "created" if created else "already recorded")
    return {"created": created, "purchase_order": po_to_dict(po)}
