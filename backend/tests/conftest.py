"""
Pytest fixtures for test database, client, and trip inventory.

Each test gets a fresh database: tables are created before and dropped
after. The default is a SQLite file through aiosqlite; set
TEST_DATABASE_URL to run against PostgreSQL instead.

Inventory fixtures return plain ids, not ORM objects, so tests never hold
instances that a later rollback would expire.
"""

import os

# Must be set before bus_booking.core.config.get_settings() is first called
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("PAYMENT_PROCESSOR", "mock")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("ENVIRONMENT", "test")

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from bus_booking.main import app
from bus_booking.db.base import Base, utcnow
from bus_booking.db.session import get_db
from bus_booking.models import Bus, PricingTier, Route, Schedule, Seat, SeatLock
from bus_booking.services.interfaces.notification import BookingSummary, Notifier
from bus_booking.services.notification_service import NotificationQueue
from bus_booking.services.payment_processors import MockPaymentProcessor
from bus_booking.services.rate_limit_service import RateLimiter
from bus_booking.services.strategy_factory import (
    get_mock_processor,
    get_notification_queue,
    get_payment_processor,
    get_rate_limiter,
)

SEAT_LAYOUT = [
    ("1A", "PREMIUM"), ("1B", "PREMIUM"), ("1C", "REGULAR"), ("1D", "REGULAR"),
    ("2A", "REGULAR"), ("2B", "REGULAR"), ("2C", "REGULAR"), ("2D", "REGULAR"),
    ("10A", "SLEEPER"), ("10B", "SLEEPER"),
]
BASE_PRICE = Decimal("25.00")
PREMIUM_PRICE = Decimal("40.00")


class RecordingNotifier(Notifier):
    def __init__(self):
        self.sent: list[BookingSummary] = []

    async def send_booking_confirmation(self, summary: BookingSummary) -> None:
        self.sent.append(summary)


@dataclass
class Trip:
    schedule_id: int
    bus_id: int
    seats: dict[str, int]  # seat number -> seat id


@pytest.fixture
def database_url(tmp_path) -> str:
    return os.environ.get("TEST_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path}/bus_booking_test.db")


@pytest_asyncio.fixture(scope="function")
async def session_factory(database_url: str) -> AsyncGenerator[async_sessionmaker, None]:
    """Create tables, yield a session factory, then drop tables for isolation."""
    engine = create_async_engine(database_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_processor() -> MockPaymentProcessor:
    return MockPaymentProcessor(currency="usd", decline_rate=0.0)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def notification_queue(notifier: RecordingNotifier) -> NotificationQueue:
    return NotificationQueue(notifier, max_attempts=2, backoff_seconds=0, maxsize=100)


@pytest_asyncio.fixture(scope="function")
async def client(
    session_factory: async_sessionmaker,
    mock_processor: MockPaymentProcessor,
    notification_queue: NotificationQueue,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with a fresh DB session per request and deterministic collaborators."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def no_redis():
        return None

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_processor] = lambda: mock_processor
    app.dependency_overrides[get_mock_processor] = lambda: mock_processor
    app.dependency_overrides[get_notification_queue] = lambda: notification_queue
    app.dependency_overrides[get_rate_limiter] = lambda: RateLimiter(redis_getter=no_redis)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def create_trip(
    session_factory: async_sessionmaker,
    departs_in: timedelta = timedelta(days=2),
    duration: timedelta = timedelta(hours=6),
    bus_number: str = "BUS-001",
    is_active: bool = True,
    unavailable_seats: tuple[str, ...] = (),
) -> Trip:
    """Route + bus + seats + one schedule with a PREMIUM pricing tier."""
    async with session_factory() as session:
        route = Route(
            origin_name="Springfield",
            origin_code="SPF",
            destination_name="Shelbyville",
            destination_code="SHB",
            operator_name="Comet Lines",
            duration_minutes=int(duration.total_seconds() // 60),
            distance_km=320,
        )
        bus = Bus(bus_number=bus_number, bus_type="AC_SLEEPER", total_seats=len(SEAT_LAYOUT))
        session.add_all([route, bus])
        await session.flush()

        seats = [
            Seat(
                bus_id=bus.id,
                seat_number=number,
                seat_type=seat_type,
                is_available=number not in unavailable_seats,
            )
            for number, seat_type in SEAT_LAYOUT
        ]
        session.add_all(seats)

        departure = utcnow() + departs_in
        schedule = Schedule(
            route_id=route.id,
            bus_id=bus.id,
            departure_time=departure,
            arrival_time=departure + duration,
            base_price=BASE_PRICE,
            is_active=is_active,
        )
        session.add(schedule)
        await session.flush()
        session.add(PricingTier(schedule_id=schedule.id, seat_type="PREMIUM", price=PREMIUM_PRICE))
        await session.commit()

        return Trip(
            schedule_id=schedule.id,
            bus_id=bus.id,
            seats={seat.seat_number: seat.id for seat in seats},
        )


@pytest_asyncio.fixture
async def trip(session_factory: async_sessionmaker) -> Trip:
    """An active trip departing in two days."""
    return await create_trip(session_factory)


def booking_payload(trip: Trip, seat_numbers: list[str], session_id: str, **overrides) -> dict:
    payload = {
        "schedule_id": trip.schedule_id,
        "seat_ids": [trip.seats[number] for number in seat_numbers],
        "session_id": session_id,
        "passenger_info": {
            "name": "Alice Traveler",
            "phone": "+15550100",
            "email": "alice@example.com",
        },
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def trip_factory(session_factory: async_sessionmaker):
    """Build extra trips: `await trip_factory(departs_in=..., is_active=...)`."""

    async def factory(**kwargs) -> Trip:
        return await create_trip(session_factory, **kwargs)

    return factory


@pytest.fixture
def make_payload():
    return booking_payload


@pytest.fixture
def expire_locks(session_factory: async_sessionmaker):
    """Backdate a session's locks so they count as expired."""

    async def expire(session_id: str) -> None:
        async with session_factory() as session:
            await session.execute(
                update(SeatLock)
                .where(SeatLock.session_id == session_id)
                .values(expires_at=utcnow() - timedelta(seconds=1))
            )
            await session.commit()

    return expire
