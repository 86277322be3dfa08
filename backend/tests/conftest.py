"""Shared test configuration and fixtures.

Each test gets a fresh in-memory SQLite database (aiosqlite) with all
tables created, and the webhook endpoint is wired to it by overriding
``get_session_factory``.
"""

import os

os.environ.setdefault("STRIPE_WEBHOOK_SIGNING_SECRET", "whsec_test_secret")
os.environ.setdefault("DATABASE_URL", "")

import hashlib
import hmac
import json
import time
import uuid
from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from stripe_sync.billing.store import DataStore
from stripe_sync.config import settings
from stripe_sync.database import Base, get_session_factory
from stripe_sync.main import app
from stripe_sync.models import Customer

TEST_SECRET = settings.stripe_webhook_signing_secret


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create all tables in a fresh in-memory database."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(db_session: AsyncSession) -> DataStore:
    return DataStore(db_session)


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to the test database."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


async def create_customer(
    session: AsyncSession,
    email: str | None = None,
    stripe_customer_id: str | None = None,
) -> Customer:
    """Insert a signup-time customer row."""
    customer = Customer(
        email=email or f"user-{uuid.uuid4().hex[:8]}@test.com",
        stripe_customer_id=stripe_customer_id,
    )
    session.add(customer)
    await session.commit()
    return customer


# ---------------------------------------------------------------------------
# Signed Stripe payloads
# ---------------------------------------------------------------------------


def make_event(event_type: str, data_object: dict[str, Any]) -> dict[str, Any]:
    """Create a Stripe event envelope."""
    return {
        "id": f"evt_test_{uuid.uuid4().hex[:8]}",
        "object": "event",
        "type": event_type,
        "created": int(time.time()),
        "livemode": False,
        "api_version": "2024-06-20",
        "data": {"object": data_object},
    }


def sign_payload(payload: bytes, secret: str = TEST_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header the way Stripe signs webhooks."""
    if timestamp is None:
        timestamp = int(time.time())
    signed = f"{timestamp}.".encode() + payload
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def encode_event(event: dict[str, Any]) -> bytes:
    return json.dumps(event).encode()


def stripe_product(product_id: str = "prod_test_123", **overrides: Any) -> dict[str, Any]:
    product = {
        "id": product_id,
        "object": "product",
        "active": True,
        "name": "Pro Plan",
        "description": "Everything in Free, and more.",
        "images": ["https://files.stripe.com/pro.png", "https://files.stripe.com/alt.png"],
        "metadata": {"tier": "pro"},
    }
    product.update(overrides)
    return product


def stripe_price(
    price_id: str = "price_test_123",
    product_id: str = "prod_test_123",
    **overrides: Any,
) -> dict[str, Any]:
    price = {
        "id": price_id,
        "object": "price",
        "product": product_id,
        "active": True,
        "nickname": "Monthly",
        "currency": "usd",
        "unit_amount": 2900,
        "type": "recurring",
        "recurring": {"interval": "month", "interval_count": 1, "trial_period_days": 14},
        "metadata": {},
    }
    price.update(overrides)
    return price


def stripe_subscription(
    customer: str = "cus_123",
    sub_id: str = "sub_test_123",
    price_id: str = "price_test_123",
    status: str = "active",
    quantity: int = 1,
    **overrides: Any,
) -> dict[str, Any]:
    sub = {
        "id": sub_id,
        "object": "subscription",
        "customer": customer,
        "status": status,
        "cancel_at_period_end": False,
        "created": 1700000000,
        "current_period_start": 1700000000,
        "current_period_end": 1702600000,
        "trial_start": None,
        "trial_end": None,
        "cancel_at": None,
        "canceled_at": None,
        "ended_at": None,
        "items": {
            "object": "list",
            "data": [
                {
                    "id": "si_test_123",
                    "price": {"id": price_id},
                    "quantity": quantity,
                }
            ],
        },
        "metadata": {},
    }
    sub.update(overrides)
    return sub
