"""
routers/pricing.py — Pricing Calculator Routes

Quote a size and quantity without creating a job, list the size table,
and maintain database overrides of the built-in rate cards.

Called by: main.py (router mount)
Depends on: services/pricing_calculator.py, models.PricingRule
"""

from fastapi import APIRouter, Depends
from loguru import logger
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import PricingRule
from ..schemas.pricing import PricingRequest, PricingRuleUpsert, VendorPricingRequest
from ..services.pricing_calculator import (
    PRODUCT_SIZES,
    calculate_pricing,
    calculate_vendor_pricing,
    get_pricing_rule,
)

router = APIRouter(tags=["pricing"])


@router.post("/api/pricing/calculate")
async def calculate(body: PricingRequest, db: Session = Depends(get_db)):
    rule = get_pricing_rule(body.size_id, db)
    return calculate_pricing(body.size_id, body.quantity, body.custom_price, rule=rule).to_dict()


@router.post("/api/pricing/calculate-vendor")
async def calculate_vendor(body: VendorPricingRequest):
    breakdown = calculate_vendor_pricing(
        body.customer_total, body.vendor_amount, body.intermediary_cut, body.quantity
    )
    return breakdown.to_dict()


@router.get("/api/pricing/sizes")
async def list_sizes(db: Session = Depends(get_db)):
    overrides = {r.size_id for r in db.query(PricingRule).filter_by(is_active=True).all()}
    sizes = sorted(set(PRODUCT_SIZES) | overrides)
    items = []
    for size_id in sizes:
        card = get_pricing_rule(size_id, db)
        items.append({
            "size_id": card.size_id,
            "name": card.name,
            "paper_type": card.paper_type,
            "customer_cpm": float(card.customer_cpm),
            "base_cost_cpm": float(card.base_cost_cpm),
            "overridden": size_id in overrides,
        })
    return items


@router.put("/api/pricing/rules")
async def upsert_rule(body: PricingRuleUpsert, db: Session = Depends(get_db)):
    rule = db.query(PricingRule).filter_by(size_id=body.size_id).first()
    if rule is None:
        rule = PricingRule(size_id=body.size_id)
        db.add(rule)
    for field, value in body.model_dump(exclude={"size_id"}).items():
        setattr(rule, field, value)
    rule.is_active = True
    db.commit()
    logger.info("Pricing rule {} saved", body.size_id)
    return {"ok": True, "size_id": rule.size_id}
