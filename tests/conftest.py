"""Pytest fixtures for ParcelFlow persistence and API tests."""

import uuid
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import parcelflow.models  # noqa: F401
from parcelflow.config import settings
from parcelflow.database.base import Base
from parcelflow.database.session import get_db
from parcelflow.middleware.rate_limit import limiter
from parcelflow.models.enums import ShipmentStatus
from parcelflow.models.shipment import Shipment
from parcelflow.modules.tracking.registry import ShipmentParties


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Rate-limit counters are process-wide; start every test from zero."""
    limiter.reset()
    yield


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """File-backed SQLite so separate sessions see each other's commits."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'parcelflow.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def parties() -> ShipmentParties:
    return ShipmentParties(sender_id=uuid.uuid4(), carrier_id=uuid.uuid4())


@pytest.fixture
def make_shipment(session_factory, parties):
    """Insert a shipment directly, the way the marketplace would."""

    async def _make(
        status: ShipmentStatus = ShipmentStatus.REQUESTED,
        with_carrier: bool = True,
    ) -> uuid.UUID:
        async with session_factory() as session:
            async with session.begin():
                shipment = Shipment(
                    title="Box of books",
                    sender_id=parties.sender_id,
                    carrier_id=parties.carrier_id if with_carrier else None,
                    status=status,
                )
                session.add(shipment)
            return shipment.id

    return _make


def make_token(user_id: uuid.UUID, email: str = "user@example.com") -> str:
    return jwt.encode(
        {"sub": str(user_id), "email": email},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def auth_headers(user_id: uuid.UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest_asyncio.fixture
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """httpx AsyncClient wired to the app, one committed unit of work per request."""
    from parcelflow.app import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
