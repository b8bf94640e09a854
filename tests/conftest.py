"""
conftest.py — Shared Test Fixtures for PO Manager

Provides an in-memory SQLite database, FastAPI TestClient with auth
overrides, and factory fixtures for core models (User per role, Vendor,
Product, PurchaseOrder).

Business Rules:
- All tests run against isolated in-memory DB (no prod data risk)
- Auth is overridden; tests pick the acting user with `act_as`
- Each test function gets fresh tables

Called by: all test files via pytest autodiscovery
Depends on: po_manager.models (Base), po_manager.database (get_db), po_manager.dependencies
"""

import os
os.environ["TESTING"] = "1"  # Must be set before importing po_manager modules
os.environ["RATE_LIMIT_ENABLED"] = "false"

from datetime import date, datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from po_manager.models import (
    Base, Product, PurchaseOrder, PurchaseOrderItem, User, Vendor,
)

# ── In-memory SQLite engine ──────────────────────────────────────────

TEST_DB_URL = "sqlite://"  # in-memory, fresh per session

engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@event.listens_for(engine, "connect")
def _enable_fk(dbapi_conn, _):
    """SQLite ignores FKs by default; turn them on."""
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


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


def _make_user(db: Session, email: str, name: str, role: str) -> User:
    user = User(
        email=email,
        name=name,
        role=role,
        created_at=datetime.now(timezone.utc),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def admin_user(db_session: Session) -> User:
    """main_admin: holds every capability."""
    return _make_user(db_session, "admin@example.com", "Main Admin", "main_admin")


@pytest.fixture()
def approver_user(db_session: Session) -> User:
    """approval_admin: approves, rejects, downloads."""
    return _make_user(db_session, "approver@example.com", "Approver", "approval_admin")


@pytest.fixture()
def creator_user(db_session: Session) -> User:
    """po_creator: creates POs, single downloads, sends."""
    return _make_user(db_session, "creator@example.com", "Creator", "po_creator")


@pytest.fixture()
def vendor(db_session: Session) -> Vendor:
    v = Vendor(
        id="V001",
        storage_ref="3f6c1a52-0001",
        name="Acme Supplies",
        phone="+91 98765-43210",
        contact_name="Priya",
        contact_email="orders@acme.example",
    )
    db_session.add(v)
    db_session.commit()
    return v


@pytest.fixture()
def vendor2(db_session: Session) -> Vendor:
    v = Vendor(
        id="V002",
        storage_ref="3f6c1a52-0002",
        name="Bolt Traders",
        phone="(415) 555-0100",
        contact_name="Sam",
        contact_email="sales@bolt.example",
    )
    db_session.add(v)
    db_session.commit()
    return v


def _make_product(db: Session, name: str, vendor_id: str, **kw) -> Product:
    p = Product(
        name=name,
        brand=kw.pop("brand", "FastenCo"),
        category=kw.pop("category", "Hardware"),
        vendor_id=vendor_id,
        unit=kw.pop("unit", "piece"),
        **kw,
    )
    db.add(p)
    db.commit()
    return p


@pytest.fixture()
def product(db_session: Session, vendor: Vendor) -> Product:
    return _make_product(db_session, "Steel Bolts M8", vendor.id)


@pytest.fixture()
def box_product(db_session: Session, vendor: Vendor) -> Product:
    return _make_product(
        db_session, "Hex Nuts M8", vendor.id, brand="NutWorks", category="Fasteners", unit="box"
    )


@pytest.fixture()
def product_v2(db_session: Session, vendor2: Vendor) -> Product:
    return _make_product(db_session, "Copper Wire 2mm", vendor2.id, brand="Cuprum", category="Electrical")


@pytest.fixture()
def make_po(db_session: Session):
    """Factory: insert a PO directly, bypassing the lifecycle service.

    make_po(vendor, [(product, qty), ...], status="approved")
    """
    counter = {"n": 0}

    def _make(vendor, items, status="created", po_date=date(2024, 1, 15), **kw):
        counter["n"] += 1
        po = PurchaseOrder(
            po_number=kw.pop("po_number", f"PO-{po_date.year}-{counter['n']:03d}"),
            vendor_id=vendor.id if vendor is not None else kw.pop("vendor_id", None),
            vendor_name=kw.pop("vendor_name", vendor.name if vendor is not None else None),
            date=po_date,
            status=status,
            items=[
                PurchaseOrderItem(product_id=p.id if p is not None else None, quantity=q)
                for p, q in items
            ],
            **kw,
        )
        po.total_items = len(po.items)
        if status == "approved" and po.approved_at is None:
            po.approved_at = datetime(2024, 1, 16, 9, 30, tzinfo=timezone.utc)
        if status == "rejected" and po.rejected_at is None:
            po.rejected_at = datetime(2024, 1, 16, 9, 30, tzinfo=timezone.utc)
        db_session.add(po)
        db_session.commit()
        return po

    return _make


@pytest.fixture()
def acting(admin_user: User) -> dict:
    """Mutable holder for the user require_user returns (default: main_admin)."""
    return {"user": admin_user}


@pytest.fixture()
def act_as(acting: dict):
    def _set(user: User) -> None:
        acting["user"] = user

    return _set


@pytest.fixture()
def client(db_session: Session, acting: dict) -> TestClient:
    """FastAPI TestClient with get_db and require_user overridden."""
    from po_manager.database import get_db
    from po_manager.dependencies import require_user
    from po_manager.main import app

    def _override_db():
        yield db_session

    def _override_user():
        return acting["user"]

    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[require_user] = _override_user

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
