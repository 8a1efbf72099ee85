"""
Pytest fixtures for test database, client, catalog data and authentication.

Tests run against a SQLite file through aiosqlite. Tables are created and
dropped around every test for isolation. Redis and the background sweeper
are disabled; tests drive the sweeper explicitly.
"""

import os
import tempfile
from datetime import time, timedelta
from decimal import Decimal
from typing import AsyncGenerator

_DB_PATH = os.path.join(tempfile.gettempdir(), "cinema_booking_test.db")
TEST_DATABASE_URL = f"sqlite+aiosqlite:///{_DB_PATH}"

os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["REDIS_ENABLED"] = "false"
os.environ["HOLD_SWEEPER_ENABLED"] = "false"

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from cinema_booking.main import app
from cinema_booking.db.base import Base
from cinema_booking.db.session import get_db
from cinema_booking.core.clock import utcnow
from cinema_booking.core.security import create_access_token
from cinema_booking.models import Hall, Movie, Showtime
from cinema_booking.schemas.catalog import HallCreate, MovieCreate, ShowtimeCreate
from cinema_booking.services import catalog_service
from cinema_booking.services.gateway_factory import get_payment_gateway
from cinema_booking.services.interfaces.simulated_gateway import SimulatedPaymentGateway

DECLINED_CARD = "4000000000000002"
APPROVED_CARD = "4242424242424242"
TICKET_PRICE = Decimal("50000.00")

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


def card_fields(card_number: str = APPROVED_CARD) -> dict:
    return {
        "card_number": card_number,
        "expiry_date": "12/39",
        "cvv": "123",
        "card_holder": "Test Patron",
    }


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def session_factory(db_session: AsyncSession) -> async_sessionmaker[AsyncSession]:
    """Factory for extra sessions, one per simulated concurrent client."""
    return TestSessionLocal


@pytest.fixture
def gateway() -> SimulatedPaymentGateway:
    return SimulatedPaymentGateway(decline_card_prefix=DECLINED_CARD)


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    gateway: SimulatedPaymentGateway,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with a fresh test-database session per request."""

    async def override_get_db():
        async with TestSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def movie(db_session: AsyncSession) -> Movie:
    return await catalog_service.create_movie(
        db_session, MovieCreate(title="The Long Queue", genre="Drama", duration_minutes=120)
    )


@pytest_asyncio.fixture
async def hall(db_session: AsyncSession) -> Hall:
    """Two rows of five: A1..A5, B1..B5."""
    return await catalog_service.create_hall(
        db_session, HallCreate(name="Hall 1", total_seats=10, layout_rows=2, layout_columns=5)
    )


@pytest_asyncio.fixture
async def showtime(db_session: AsyncSession, movie: Movie, hall: Hall) -> Showtime:
    """A showtime a week from now with ten available seats."""
    return await catalog_service.create_showtime(
        db_session,
        ShowtimeCreate(
            movie_id=movie.id,
            hall_id=hall.id,
            show_date=utcnow().date() + timedelta(days=7),
            start_time=time(19, 0),
            end_time=time(21, 0),
            ticket_price=TICKET_PRICE,
        ),
    )


@pytest_asyncio.fixture
async def past_showtime(db_session: AsyncSession, movie: Movie, hall: Hall) -> Showtime:
    return await catalog_service.create_showtime(
        db_session,
        ShowtimeCreate(
            movie_id=movie.id,
            hall_id=hall.id,
            show_date=utcnow().date() - timedelta(days=1),
            start_time=time(19, 0),
            end_time=time(21, 0),
            ticket_price=TICKET_PRICE,
        ),
    )


def auth_headers_for(subject: str, role: str = "user") -> dict:
    token = create_access_token(data={"sub": subject, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user1_headers() -> dict:
    return auth_headers_for("user-1")


@pytest.fixture
def user2_headers() -> dict:
    return auth_headers_for("user-2")


@pytest.fixture
def admin_headers() -> dict:
    return auth_headers_for("admin-1", role="admin")
