"""
conftest.py — Shared Test Fixtures for PrintFlow

Provides an in-memory SQLite database, a FastAPI TestClient bound to it,
and factory fixtures for the chain parties, a vendor, and a priced job.

Business Rules:
- All tests run against an isolated in-memory DB
- Each test function gets fresh tables
- Engines reuse printflow.database.configure_sqlite, the app's own SQLite
  listeners, so SAVEPOINTs and write locking behave as in production

Called by: all test files via pytest autodiscovery
Depends on: printflow.models (Base), printflow.database (get_db)
"""

import os
os.environ["TESTING"] = "1"  # Must be set before importing printflow modules
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from printflow.constants import CompanyRole, RoutingType
from printflow.database import configure_sqlite
from printflow.models import Base, Company, Vendor

# ── In-memory SQLite engine ──────────────────────────────────────────

TEST_DB_URL = "sqlite://"  # in-memory, fresh per session


def make_engine(url: str = TEST_DB_URL, **kwargs):
    """SQLite engine wired with the same listeners the app engine uses."""
    connect_args = {"check_same_thread": False, "timeout": 30, **kwargs.pop("connect_args", {})}
    return configure_sqlite(create_engine(url, connect_args=connect_args, **kwargs))


engine = make_engine(poolclass=StaticPool)
TestSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def db_session():
    """Create all tables, yield a session, then tear down."""
    Base.metadata.create_all(bind=engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def _company(db: Session, name: str, role: str, email: str, **kw) -> Company:
    co = Company(name=name, role=role, email=email, is_active=True, **kw)
    db.add(co)
    db.commit()
    db.refresh(co)
    return co


@pytest.fixture()
def broker(db_session: Session) -> Company:
    return _company(db_session, "Impact Direct", CompanyRole.BROKER, "orders@impactdirect.test")


@pytest.fixture()
def intermediary(db_session: Session) -> Company:
    return _company(db_session, "Bradford Commercial", CompanyRole.INTERMEDIARY, "po@bradford.test")


@pytest.fixture()
def producer(db_session: Session) -> Company:
    return _company(db_session, "JD Graphic", CompanyRole.PRODUCER, "production@jdgraphic.test")


@pytest.fixture()
def customer(db_session: Session) -> Company:
    return _company(
        db_session, "Acme Mailers", CompanyRole.CUSTOMER, "ap@acme.test",
        notification_emails=["jane@acme.test", "ap@acme.test"],
    )


@pytest.fixture()
def parties(broker, intermediary, producer, customer) -> dict:
    """All four chain parties."""
    return {"broker": broker, "intermediary": intermediary, "producer": producer, "customer": customer}


@pytest.fixture()
def vendor(db_session: Session) -> Vendor:
    v = Vendor(name="Northside Print", email="jobs@northside.test", is_active=True)
    db_session.add(v)
    db_session.commit()
    db_session.refresh(v)
    return v


@pytest.fixture()
def standard_job(db_session: Session, parties):
    """SM_7_25_16_375 x 10,000 on the standard route, POs materialized."""
    from printflow.services import settlement_orchestrator

    return settlement_orchestrator.create_job(
        db_session,
        customer_id=parties["customer"].id,
        quantity=10000,
        size_id="SM_7_25_16_375",
        customer_po_number="ACME-7781",
        description="Spring self-mailer",
    )


@pytest.fixture()
def vendor_job(db_session: Session, parties, vendor):
    """Third-party vendor job: customer 1,000.00, vendor 700.00."""
    from printflow.services import settlement_orchestrator

    return settlement_orchestrator.create_job(
        db_session,
        customer_id=parties["customer"].id,
        quantity=5000,
        routing_type=RoutingType.THIRD_PARTY_VENDOR,
        vendor_id=vendor.id,
        vendor_amount=Decimal("700.00"),
        custom_price=Decimal("1000.00"),
    )


@pytest.fixture()
def client(db_session: Session) -> TestClient:
    """FastAPI TestClient with get_db overridden to the test session."""
    from printflow.database import get_db
    from printflow.main import app

    def _override_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_db

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
