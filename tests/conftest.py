"""
Test Configuration and Fixtures
Shared testing infrastructure for the reconciliation engine
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_TO_FILE", "False")

import pytest
from datetime import date, timedelta
from typing import Generator, Dict, Any
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session

from stockrecon.main import app
from stockrecon.core.database import get_db, Base, create_db_engine, init_db
from stockrecon.core.security import Actor, create_access_token
from stockrecon import models  # noqa: F401
from stockrecon.models.master import (
    Store, Product, AccountType, Account, Currency, FinancialPeriod, AdjustmentReason
)

TENANT_ID = "tenant-1"
OTHER_TENANT_ID = "tenant-2"
ACTOR_ID = "user-1"

# In-memory SQLite pinned to a single connection
engine = create_db_engine("sqlite://")

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh database session for each test"""
    init_db(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database dependency override"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def actor() -> Actor:
    return Actor(actor_id=ACTOR_ID, tenant_id=TENANT_ID, username="counter")


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    """Bearer token for the test actor"""
    token = create_access_token({"sub": ACTOR_ID, "tenant_id": TENANT_ID, "username": "counter"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def seeded(db_session: Session) -> Dict[str, Any]:
    """
    Master data for one tenant: a store, a plain and a serial-tracked
    product, the four posting accounts, a default currency and an active
    financial period.
    """
    store = Store(tenant_id=TENANT_ID, code="MAIN", name="Main Store")
    widget = Product(tenant_id=TENANT_ID, code="W-100", name="Widget", track_serial_number=False)
    scanner = Product(tenant_id=TENANT_ID, code="S-200", name="Scanner", track_serial_number=True)

    asset = AccountType(tenant_id=TENANT_ID, code="ASSET", name="Asset", nature="debit")
    income = AccountType(tenant_id=TENANT_ID, code="INCOME", name="Income", nature="credit")
    expense = AccountType(tenant_id=TENANT_ID, code="EXPENSE", name="Expense", nature="debit")

    inventory_in = Account(tenant_id=TENANT_ID, code="1300", name="Inventory", account_type=asset)
    inventory_gain = Account(tenant_id=TENANT_ID, code="4900", name="Inventory Gain", account_type=income)
    inventory_out = Account(tenant_id=TENANT_ID, code="1301", name="Inventory Out", account_type=asset)
    inventory_loss = Account(tenant_id=TENANT_ID, code="5900", name="Inventory Loss", account_type=expense)

    usd = Currency(tenant_id=TENANT_ID, code="USD", name="US Dollar", symbol="$", is_default=True)
    eur = Currency(tenant_id=TENANT_ID, code="EUR", name="Euro", symbol="E", is_default=False)

    period = FinancialPeriod(
        tenant_id=TENANT_ID,
        name="FY",
        start_date=date.today() - timedelta(days=180),
        end_date=date.today() + timedelta(days=180),
        is_active=True
    )
    damage = AdjustmentReason(tenant_id=TENANT_ID, code="DMG", name="Damaged", direction="out")

    foreign_store = Store(tenant_id=OTHER_TENANT_ID, code="X", name="Other tenant store")

    db_session.add_all([
        store, widget, scanner, asset, income, expense,
        inventory_in, inventory_gain, inventory_out, inventory_loss,
        usd, eur, period, damage, foreign_store
    ])
    db_session.commit()

    return {
        "store": store,
        "widget": widget,
        "scanner": scanner,
        "inventory_in": inventory_in,
        "inventory_gain": inventory_gain,
        "inventory_out": inventory_out,
        "inventory_loss": inventory_loss,
        "usd": usd,
        "eur": eur,
        "period": period,
        "damage": damage,
        "foreign_store": foreign_store,
    }


@pytest.fixture
def draft_payload(seeded):
    """Factory for create-draft payloads with all posting accounts set"""
    def build(items=None, **overrides) -> Dict[str, Any]:
        payload = {
            "store_id": seeded["store"].id,
            "inventory_date": date.today().isoformat(),
            "exchange_rate": 1.0,
            "inventory_in_account_id": seeded["inventory_in"].id,
            "inventory_in_corresponding_account_id": seeded["inventory_gain"].id,
            "inventory_out_account_id": seeded["inventory_out"].id,
            "inventory_out_corresponding_account_id": seeded["inventory_loss"].id,
            "notes": "Quarterly count",
            "items": items if items is not None else [{
                "product_id": seeded["widget"].id,
                "current_quantity": 10,
                "counted_quantity": 15,
                "unit_cost": 2,
            }],
        }
        payload.update(overrides)
        return payload
    return build
