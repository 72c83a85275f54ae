"""
routing_resolver.py — Decides the PO chain topology for a job

Business Rules:
- STANDARD: Broker → Intermediary, then Intermediary → Producer
- THIRD_PARTY_VENDOR: a single Broker → Vendor hop
- The vendor route needs an active vendor and a non-negative vendor amount
- Party companies are found by role; exactly one active company per role

Called by: services/settlement_orchestrator.py, services/job_service.py
Depends on: models (Company, Vendor)
"""

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.orm import Session

from ..constants import CompanyRole, HopKey, RoutingType
from ..exceptions import InvalidRoutingError, NotFoundError
from ..models import Company, Vendor, target_key_for


@dataclass
class Hop:
    key: str
    origin: Company
    target_company: Company | None = None
    target_vendor: Vendor | None = None

    @property
    def target(self):
        return self.target_company or self.target_vendor

    @property
    def target_key(self) -> str:
        return target_key_for(
            self.target_company.id if self.target_company else None,
            self.target_vendor.id if self.target_vendor else None,
        )

    @property
    def recipients(self) -> list[str]:
        return self.target.recipients if self.target else []


@dataclass
class Route:
    routing_type: str
    hops: list[Hop] = field(default_factory=list)

    def hop(self, key: str) -> Hop | None:
        return next((h for h in self.hops if h.key == key), None)


def get_party(db: Session, role: str) -> Company:
    """The active company playing a brokerage role."""
    company = (
        db.query(Company)
        .filter_by(role=role, is_active=True)
        .order_by(Company.id)
        .first()
    )
    if company is None:
        raise NotFoundError(f"No active {role.lower()} company configured", role=role)
    return company


def resolve_route(
    db: Session,
    routing_type: str,
    vendor_id: int | None = None,
    vendor_amount=None,
) -> Route:
    """Ordered hops to materialize for a job."""
    if routing_type == RoutingType.STANDARD:
        broker = get_party(db, CompanyRole.BROKER)
        intermediary = get_party(db, CompanyRole.INTERMEDIARY)
        producer = get_party(db, CompanyRole.PRODUCER)
        return Route(
            routing_type=routing_type,
            hops=[
                Hop(HopKey.BROKER_TO_INTERMEDIARY, broker, target_company=intermediary),
                Hop(HopKey.INTERMEDIARY_TO_PRODUCER, intermediary, target_company=producer),
            ],
        )

    if routing_type == RoutingType.THIRD_PARTY_VENDOR:
        if vendor_id is None:
            raise InvalidRoutingError("Third-party vendor routing requires a vendor")
        if vendor_amount is None or Decimal(str(vendor_amount)) < 0:
            raise InvalidRoutingError(
                "Third-party vendor routing requires a non-negative vendor amount",
                vendor_id=vendor_id,
            )
        vendor = db.get(Vendor, vendor_id)
        if vendor is None or not vendor.is_active:
            raise InvalidRoutingError(f"Vendor {vendor_id} not found or inactive", vendor_id=vendor_id)
        broker = get_party(db, CompanyRole.BROKER)
        return Route(
            routing_type=routing_type,
            hops=[Hop(HopKey.BROKER_TO_VENDOR, broker, target_vendor=vendor)],
        )

    raise InvalidRoutingError(f"Unknown routing type '{routing_type}'", routing_type=routing_type)


def route_for_job(db: Session, job) -> Route:
    return resolve_route(db, job.routing_type, job.vendor_id, job.vendor_amount)
