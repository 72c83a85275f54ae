"""
routers/invoices.py — Invoice Routes

List, edit and pay invoices; ensure a single pair's invoice; render PDFs.

Business Rules:
- One invoice per (job, from, to); ensuring an existing pair returns it
- Paid invoices cannot be edited; paying twice keeps the first date
- Editing an upstream invoice keeps its PO's vendor amount in step

Called by: main.py (router mount)
Depends on: services/invoice_generator.py, services/document_service.py,
            services/notification_service.py
"""

import asyncio

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import Response
from loguru import logger
from sqlalchemy.orm import Session

from ..database import get_db
from ..exceptions import NotFoundError
from ..models import Company
from ..rate_limit import limiter
from ..schemas.invoices import InvoiceEnsure, InvoicePaid, InvoiceUpdate
from ..services import invoice_generator, job_service, notification_service

router = APIRouter(tags=["invoices"])


def invoice_to_dict(invoice) -> dict:
    return {
        "id": invoice.id,
        "invoice_no": invoice.invoice_no,
        "job_id": invoice.job_id,
        "job_no": invoice.job.job_no if invoice.job else None,
        "from_company_id": invoice.from_company_id,
        "from_company": invoice.from_company.name if invoice.from_company else None,
        "to_company_id": invoice.to_company_id,
        "to_company": invoice.to_company.name if invoice.to_company else None,
        "amount": float(invoice.amount),
        "issued_at": invoice.issued_at.isoformat() if invoice.issued_at else None,
        "due_at": invoice.due_at.isoformat() if invoice.due_at else None,
        "paid_at": invoice.paid_at.isoformat() if invoice.paid_at else None,
        "is_paid": invoice.is_paid,
    }


@router.get("/api/invoices")
async def list_invoices(
    job_id: int | None = Query(None),
    unpaid_only: bool = Query(False),
    db: Session = Depends(get_db),
):
    return [invoice_to_dict(i) for i in invoice_generator.list_invoices(db, job_id=job_id, unpaid_only=unpaid_only)]


@router.get("/api/invoices/{invoice_id}")
async def get_invoice(invoice_id: int, db: Session = Depends(get_db)):
    return invoice_to_dict(invoice_generator.get_invoice(db, invoice_id))


@router.patch("/api/invoices/{invoice_id}")
async def update_invoice(invoice_id: int, body: InvoiceUpdate, db: Session = Depends(get_db)):
    invoice = invoice_generator.update_invoice(db, invoice_id, amount=body.amount, due_at=body.due_at)
    return invoice_to_dict(invoice)


@router.post("/api/invoices/{invoice_id}/paid")
async def mark_paid(invoice_id: int, body: InvoicePaid | None = None, db: Session = Depends(get_db)):
    invoice = invoice_generator.mark_invoice_paid(db, invoice_id, paid_at=body.paid_at if body else None)
    return invoice_to_dict(invoice)


@router.post("/api/jobs/{job_id}/invoices")
async def ensure_invoice(job_id: int, body: InvoiceEnsure, db: Session = Depends(get_db)):
    """Create the pair's invoice if it does not exist yet."""
    job = job_service.get_job(db, job_id)
    from_company = db.get(Company, body.from_company_id)
    to_company = db.get(Company, body.to_company_id)
    if from_company is None or to_company is None:
        raise HTTPException(404, "Company not found")
    invoice, created = invoice_generator.ensure_invoice(db, job, from_company, to_company)
    if created:
        notification_service.notify_invoice(db, invoice)
    db.commit()
    return {"created": created, "invoice": invoice_to_dict(invoice)}


@router.get("/api/invoices/{invoice_id}/pdf")
@limiter.limit("10/minute")
async def download_invoice_pdf(invoice_id: int, request: Request, db: Session = Depends(get_db)):
    """Render and download an invoice PDF."""
    from ..services.document_service import generate_invoice_pdf

    try:
        loop = asyncio.get_running_loop()
        pdf_bytes = await loop.run_in_executor(None, generate_invoice_pdf, invoice_id, db)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    except Exception as e:
        logger.error("PDF generation failed for invoice {}: {}", invoice_id, e)
        raise HTTPException(500, "PDF generation failed")

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename=invoice-{invoice_id}.pdf"},
    )
