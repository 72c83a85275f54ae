"""PDF document rendering for invoices and purchase orders using WeasyPrint."""

import logging
import os
from datetime import datetime, timezone

from jinja2 import Environment, FileSystemLoader
from sqlalchemy.orm import Session

from ..exceptions import NotFoundError
from ..schemas.job_specs import parse_specs, summarize_specs

log = logging.getLogger("printflow.documents")

TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates", "documents")

_jinja_env = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=True,
)


def _generated_at() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def _html_to_pdf(html: str) -> bytes:
    from weasyprint import HTML
    return HTML(string=html).write_pdf()


def render_invoice_html(invoice) -> str:
    from .invoice_generator import payment_terms_days

    po_number = None
    for po in invoice.job.purchase_orders:
        if po.origin_company_id == invoice.to_company_id and po.target_company_id == invoice.from_company_id:
            po_number = po.po_number
    template = _jinja_env.get_template("invoice.html")
    return template.render(
        invoice=invoice,
        job=invoice.job,
        from_company=invoice.from_company,
        to_company=invoice.to_company,
        po_number=po_number,
        terms_days=payment_terms_days(invoice.from_company, invoice.to_company),
        generated_at=_generated_at(),
    )


def render_purchase_order_html(po) -> str:
    specs = summarize_specs(parse_specs(po.job.specs))
    template = _jinja_env.get_template("purchase_order.html")
    return template.render(
        po=po,
        job=po.job,
        target=po.target_company or po.target_vendor,
        specs=specs,
        generated_at=_generated_at(),
    )


def render_invoice_pdf(invoice) -> bytes:
    """Render an invoice to PDF bytes."""
    return _html_to_pdf(render_invoice_html(invoice))


def render_purchase_order_pdf(po) -> bytes:
    """Render a purchase order to PDF bytes."""
    return _html_to_pdf(render_purchase_order_html(po))


def generate_invoice_pdf(invoice_id: int, db: Session) -> bytes:
    from ..models import Invoice

    invoice = db.get(Invoice, invoice_id)
    if not invoice:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return render_invoice_pdf(invoice)


def generate_purchase_order_pdf(po_id: int, db: Session) -> bytes:
    from ..models import PurchaseOrder

    po = db.get(PurchaseOrder, po_id)
    if not po:
        raise NotFoundError(f"Purchase order {po_id} not found")
    return render_purchase_order_pdf(po)
