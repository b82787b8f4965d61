"""Pytest configuration and fixtures for AgencyDesk tests."""

from collections.abc import AsyncGenerator, Generator
from datetime import date
from decimal import Decimal
from typing import Any
from unittest.mock import patch

import pytest
import pytest_asyncio
from fakeredis import FakeServer
from fakeredis import aioredis as fakeredis
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from agencydesk.core.limiter import limiter
from agencydesk.db.base import Base
from agencydesk.db.session import get_db
from agencydesk.main import app

# Import all models to ensure they're registered with Base.metadata
from agencydesk.models.client import Client
from agencydesk.models.payment import Payment
from agencydesk.models.post_count import PostCount  # noqa: F401
from agencydesk.models.task import Task  # noqa: F401
from agencydesk.models.team import OtherExpense, TeamMember


# Test database URL (using in-memory SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine() -> AsyncGenerator[Any, None]:
    """Create test database engine.

    StaticPool keeps a single connection so the in-memory database created
    below is the one every session sees.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Enable foreign keys for SQLite
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection: Any, _connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine: Any) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture(scope="function")
def test_redis() -> Any:
    """Create fake Redis client for testing.

    Each test gets its own server so keys never leak between tests.
    """
    return fakeredis.FakeRedis(server=FakeServer(), decode_responses=True)


@pytest.fixture(autouse=True)
def mock_redis(test_redis: Any) -> Generator[Any, None, None]:
    """Route every Redis lookup to the fake client."""
    with (
        patch("agencydesk.core.cache.get_redis", return_value=test_redis),
        patch("agencydesk.api.health.get_redis", return_value=test_redis),
    ):
        yield test_redis


@pytest.fixture(autouse=True)
def disable_rate_limits() -> Generator[None, None, None]:
    """The limiter's in-memory counters would otherwise leak across tests."""
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest_asyncio.fixture(scope="function")
async def test_client(test_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with dependency overrides."""

    # Override database dependency
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield test_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)  # type: ignore[arg-type]
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    # Clean up overrides
    app.dependency_overrides.clear()


@pytest.fixture
def sample_client_data() -> dict[str, Any]:
    """Flat monthly client payload."""
    return {
        "name": "Acme Bakery",
        "email": "owner@acmebakery.in",
        "phone": "+919876543210",
        "company": "Acme Bakery Pvt Ltd",
        "payment_type": "monthly",
        "monthly_rate": 20000,
        "services": {"Reels": 5000, "Stories": 2000},
        "next_payment": "2025-03-15",
    }


@pytest.fixture
def sample_tiers() -> list[dict[str, Any]]:
    """Two-tier schedule: 3 payments at 10k, then 6 payments at 15k + SEO."""
    return [
        {"amount": 10000, "duration_months": 3, "payment_type": "monthly", "services": {}},
        {"amount": 15000, "duration_months": 6, "payment_type": "monthly", "services": {"SEO": 3000}},
    ]


@pytest_asyncio.fixture
async def create_test_client(test_session: AsyncSession) -> Any:
    """Factory fixture to create clients."""

    async def _create_client(**kwargs: Any) -> Client:
        client_data: dict[str, Any] = {
            "name": "Test Client",
            "payment_type": "monthly",
            "monthly_rate": Decimal("20000"),
            "status": "active",
            "next_payment": date(2025, 3, 15),
        }
        client_data.update(kwargs)
        client = Client(**client_data)
        test_session.add(client)
        await test_session.commit()
        await test_session.refresh(client)
        return client

    return _create_client


@pytest_asyncio.fixture
async def create_test_payment(test_session: AsyncSession) -> Any:
    """Factory fixture to insert payments directly, bypassing the workflow."""

    async def _create_payment(client: Client, **kwargs: Any) -> Payment:
        payment_data: dict[str, Any] = {
            "client_id": client.id,
            "amount": Decimal("10000"),
            "payment_date": date(2025, 1, 15),
            "status": "completed",
            "type": "payment",
        }
        payment_data.update(kwargs)
        payment = Payment(**payment_data)
        test_session.add(payment)
        await test_session.commit()
        await test_session.refresh(payment)
        return payment

    return _create_payment


@pytest_asyncio.fixture
async def create_test_team_member(test_session: AsyncSession) -> Any:
    """Factory fixture to create team members."""

    async def _create_member(**kwargs: Any) -> TeamMember:
        member_data: dict[str, Any] = {
            "name": "Priya Sharma",
            "role": "Designer",
            "salary": Decimal("30000"),
            "status": "active",
            "payment_date": "2025-03-05",
        }
        member_data.update(kwargs)
        member = TeamMember(**member_data)
        test_session.add(member)
        await test_session.commit()
        await test_session.refresh(member)
        return member

    return _create_member


@pytest_asyncio.fixture
async def create_test_expense(test_session: AsyncSession) -> Any:
    """Factory fixture to create expenses."""

    async def _create_expense(**kwargs: Any) -> OtherExpense:
        expense_data: dict[str, Any] = {
            "title": "Office rent",
            "amount": Decimal("15000"),
            "expense_date": date(2025, 3, 1),
        }
        expense_data.update(kwargs)
        expense = OtherExpense(**expense_data)
        test_session.add(expense)
        await test_session.commit()
        await test_session.refresh(expense)
        return expense

    return _create_expense
