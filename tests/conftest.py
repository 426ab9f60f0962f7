import os

# settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("ENCRYPTION_MASTER_KEY", "test-master-key")
os.environ.setdefault("SESSION_SECRET", "test-session-secret")

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from deliverydesk.models import Base, Order, ShopifyConnection, User
from deliverydesk.utils.security import encrypt_access_token


@pytest_asyncio.fixture
async def engine(tmp_path):
    # File database: the reconciler's side effects open their own connections
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'deliverydesk.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


async def _add(session_factory, obj):
    async with session_factory() as session:
        session.add(obj)
        await session.commit()
    return obj


@pytest_asyncio.fixture
async def admin(session_factory):
    return await _add(session_factory, User(name="Dispatch Admin", email="admin@example.com", role="admin"))


@pytest_asyncio.fixture
async def driver(session_factory):
    return await _add(session_factory, User(name="Dana Driver", email="dana@example.com", role="driver"))


@pytest_asyncio.fixture
async def other_driver(session_factory):
    return await _add(session_factory, User(name="Omar Other", email="omar@example.com", role="driver"))


@pytest.fixture
def make_order(session_factory, driver, admin):
    async def _make(**overrides):
        fields = {
            "order_number": "1001",
            "status": "in_transit",
            "driver_id": driver.id,
            "created_by": admin.id,
            "customer_name": "Jane Customer",
            "delivery_address": "12 Elm St",
        }
        fields.update(overrides)
        return await _add(session_factory, Order(**fields))
    return _make


@pytest_asyncio.fixture
async def shop(session_factory, admin):
    return await _add(session_factory, ShopifyConnection(
        admin_id=admin.id,
        shop_domain="test-shop.myshopify.com",
        access_token_encrypted=encrypt_access_token("shpat_test"),
        is_active=True,
    ))


@pytest.fixture
def fetch(session_factory):
    """Read a row through a fresh session"""
    async def _fetch(model, id):
        async with session_factory() as session:
            return await session.get(model, id)
    return _fetch


def _shopify_transport(status_code=201, json=None, calls=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        body = json if json is not None else {"fulfillment": {"id": 555001}}
        return httpx.Response(status_code, json=body)
    return httpx.MockTransport(handler)


@pytest.fixture
def shopify_transport():
    return _shopify_transport


@pytest.fixture
def shopify_calls():
    return []


@pytest_asyncio.fixture
async def http_client(shopify_calls):
    async with httpx.AsyncClient(transport=_shopify_transport(calls=shopify_calls)) as client:
        yield client
