"""
routers/companies.py — Party & Vendor Routes

Broker, intermediary, producer and customers are Company rows with a role;
third-party vendors are kept apart since they only ever receive POs.

Called by: main.py (router mount)
Depends on: models
"""

from fastapi import APIRouter, Depends, Query
from loguru import logger
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import Company, Vendor
from ..schemas.companies import CompanyCreate, VendorCreate

router = APIRouter(tags=["companies"])


def company_to_dict(c) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "role": c.role,
        "email": c.email,
        "phone": c.phone,
        "address": c.address,
        "notification_emails": c.notification_emails or [],
        "payment_terms_days": c.payment_terms_days,
        "is_active": c.is_active,
    }


def vendor_to_dict(v) -> dict:
    return {
        "id": v.id,
        "name": v.name,
        "email": v.email,
        "phone": v.phone,
        "notification_emails": v.notification_emails or [],
        "payment_terms_days": v.payment_terms_days,
        "is_active": v.is_active,
    }


@router.get("/api/companies")
async def list_companies(role: str | None = Query(None), db: Session = Depends(get_db)):
    q = db.query(Company)
    if role:
        q = q.filter(Company.role == role.upper())
    return [company_to_dict(c) for c in q.order_by(Company.name).all()]


@router.post("/api/companies", status_code=201)
async def create_company(body: CompanyCreate, db: Session = Depends(get_db)):
    company = Company(**body.model_dump())
    db.add(company)
    db.commit()
    logger.info("Company {} created ({})", company.name, company.role)
    return company_to_dict(company)


@router.get("/api/vendors")
async def list_vendors(db: Session = Depends(get_db)):
    return [vendor_to_dict(v) for v in db.query(Vendor).order_by(Vendor.name).all()]


@router.post("/api/vendors", status_code=201)
async def create_vendor(body: VendorCreate, db: Session = Depends(get_db)):
    vendor = Vendor(**body.model_dump())
    db.add(vendor)
    db.commit()
    logger.info("Vendor {} created", vendor.name)
    return vendor_to_dict(vendor)
