"""
Pytest configuration and shared fixtures for the storefront tests.

Provides an in-memory SQLite database, a payment service with a fake QR
renderer, recording notification channels, and an httpx client bound to
the ASGI app with its dependencies overridden.
"""
import os

# Test-only settings; must be in place before config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("MERCHANT_KEY", "+5599991842200")
os.environ.setdefault("MERCHANT_NAME", "LOJA EXEMPLO")
os.environ.setdefault("MERCHANT_CITY", "SAMBAIBA")

import asyncio
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from domain.enums import DeliveryOutcome
from domain.errors import NotificationError
from services.async_executor import drain_detached
from services.notification_service import Notifier
from services.order_service import OrderPipeline
from services.payment_service import PaymentService
from services.pix_codec import MerchantConfig


# ── Fakes ────────────────────────────────────────────────────────────


class FakeRenderer:
    """Stands in for the QR image codec: deterministic, no PIL."""

    def __init__(self):
        self.calls = []

    async def render(self, payload: str) -> str:
        self.calls.append(payload)
        return f"data:image/png;base64,FAKE-{len(payload)}"


class RecordingRelay:
    enabled = True

    def __init__(self, fail: bool = False, gate: asyncio.Event | None = None):
        self.sent: list[str] = []
        self.fail = fail
        self.gate = gate

    async def send(self, text: str) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise NotificationError("relay down", status_code=502)
        self.sent.append(text)


class ScriptedPush:
    """Push channel answering per endpoint from a script (default: delivered)."""
    enabled = True
    public_key = "test-vapid-public-key"

    def __init__(self, outcomes: dict[str, DeliveryOutcome] | None = None):
        self.outcomes = outcomes or {}
        self.sent: list[tuple[str, str]] = []

    async def send(self, subscription: dict, payload: str) -> DeliveryOutcome:
        endpoint = subscription["endpoint"]
        self.sent.append((endpoint, payload))
        return self.outcomes.get(endpoint, DeliveryOutcome.DELIVERED)


# ── Database Fixtures ────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """
    In-memory SQLite database for each test.

    Uses StaticPool so every session shares the one in-memory connection.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await drain_detached(timeout=5.0)
    await engine.dispose()


@pytest_asyncio.fixture
async def file_session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """File-backed SQLite with real separate connections, for concurrency tests."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'store.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await drain_detached(timeout=5.0)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ── Service Fixtures ─────────────────────────────────────────────────


@pytest.fixture
def merchant() -> MerchantConfig:
    return MerchantConfig(key="+5599991842200", name="LOJA EXEMPLO", city="SAMBAIBA")


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def payment_service(merchant, renderer) -> PaymentService:
    return PaymentService(merchant, renderer)


@pytest.fixture
def relay() -> RecordingRelay:
    return RecordingRelay()


@pytest.fixture
def push() -> ScriptedPush:
    return ScriptedPush()


@pytest.fixture
def notifier(relay, push, session_factory) -> Notifier:
    return Notifier(relay, push, session_factory)


@pytest.fixture
def pipeline(payment_service, notifier) -> OrderPipeline:
    return OrderPipeline(payment_service, notifier, default_status="pending")


# ── HTTP Client ──────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def client(session_factory, payment_service, notifier) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx client against the ASGI app (no lifespan): services are placed
    on app.state directly and get_db yields sessions from the test database.
    """
    from main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.payment_service = payment_service
    app.state.notifier = notifier
    app.state.default_order_status = "pending"

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


# ── Test Data Fixtures ───────────────────────────────────────────────


@pytest_asyncio.fixture
async def sample_product(db_session):
    """A product with 10 units in stock, priced 12.75."""
    from decimal import Decimal
    from db_models import Product

    product = Product(name="Açaí 500ml", price=Decimal("12.75"), stock_quantity=10)
    db_session.add(product)
    await db_session.commit()
    await db_session.refresh(product)
    return product
