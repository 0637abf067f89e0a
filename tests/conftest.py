"""
Shared fixtures: a throwaway SQLite database per test, row builders for the
billing tables, and an HTTP client bound to the app.

The database is a file rather than :memory: so that several sessions (the
concurrency tests) see the same data.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from portal.config import Settings
from portal.core.locks import CustomerLockRegistry
from portal.database import Base, custom_json_dumps


FIXED_NOW = datetime(2025, 11, 21, 14, 30, tzinfo=timezone.utc)
CRON_SECRET = "cron-secret"
ADMIN_TOKEN = "admin-token"


def fixed_clock():
    return FIXED_NOW


@pytest.fixture
async def engine(tmp_path):
    from portal import models  # noqa: F401

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'billing.db'}",
        json_serializer=custom_json_dumps,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def locks():
    return CustomerLockRegistry()


# ============================================================================
# ROW BUILDERS
# ============================================================================

@pytest.fixture
def make_customer(db):
    from portal.models import Customer

    async def _make(**fields):
        fields.setdefault("name", "Acme Goods")
        fields.setdefault("email", "billing@acme.test")
        fields.setdefault("status", "approved")
        customer = Customer(**fields)
        db.add(customer)
        await db.commit()
        return customer

    return _make


@pytest.fixture
def make_shipment(db):
    from portal.models import Shipment

    async def _make(customer, **fields):
        fields.setdefault("date", "2025-11-20T10:00:00Z")
        fields.setdefault("ship_to", "Amazon FBA - PHX7")
        shipment = Shipment(customer_id=customer.id, **fields)
        db.add(shipment)
        await db.commit()
        return shipment

    return _make


@pytest.fixture
def make_inventory(db):
    from portal.models import InventoryItem

    async def _make(customer, quantity, date_added, **fields):
        fields.setdefault("product_name", "Widget")
        fields.setdefault("status", "In Stock")
        item = InventoryItem(
            customer_id=customer.id,
            quantity=Decimal(str(quantity)),
            date_added=date_added,
            **fields
        )
        db.add(item)
        await db.commit()
        return item

    return _make


@pytest.fixture
def make_pricing(db):
    from portal.models import StoragePricing

    async def _make(customer, price, **fields):
        pricing = StoragePricing(customer_id=customer.id, price=Decimal(str(price)), **fields)
        db.add(pricing)
        await db.commit()
        return pricing

    return _make


def widget_items(boxes=2, price=5, **extra):
    entry = {
        "productId": extra.pop("product_id", None),
        "productName": extra.pop("product_name", "Widget"),
        "boxesShipped": boxes,
        "shippedQty": boxes * 10,
        "packOf": 10,
        "unitPrice": price,
    }
    entry.update(extra)
    return [entry]


# ============================================================================
# API
# ============================================================================

@pytest.fixture
def app_settings():
    return Settings(
        INVOICE_CRON_SECRET=CRON_SECRET,
        INVOICE_TRIGGER_AUTH_REQUIRED=True,
        ADMIN_API_TOKEN=ADMIN_TOKEN,
        SCHEDULER_ENABLED=False,
    )


@pytest.fixture
async def client(session_factory, locks, app_settings):
    from portal.api.deps import get_app_settings, get_customer_locks
    from portal.database import get_db
    from portal.main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_customer_locks] = lambda: locks
    app.dependency_overrides[get_app_settings] = lambda: app_settings

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}", "X-Admin-User": "ops@warehouse.test"}


@pytest.fixture
def random_id():
    return uuid.uuid4()
