"""
Trip search: active schedules between two cities on a given day.

Seat counts use the same derivation as the seat map (active bookings plus
unexpired locks), so a trip's count and its seat map always agree.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bus_booking.core.exceptions import InvalidRequest
from bus_booking.core.logging import get_logger
from bus_booking.db.base import utcnow
from bus_booking.models import Route, Schedule, Seat
from bus_booking.services.availability_service import schedule_summary
from bus_booking.services.inventory_service import find_booked_seat_ids, find_live_locks

logger = get_logger(__name__)


@dataclass
class TripOption:
    schedule: dict
    total_seats: int
    available_seats: int
    booked_seats: int
    locked_seats: int
    is_bookable: bool
    pricing: list[dict] = field(default_factory=list)


@dataclass
class City:
    code: str
    name: str


def _day_window(departure_date: date) -> tuple[datetime, datetime]:
    start = datetime.combine(departure_date, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


async def search_trips(
    db: AsyncSession,
    origin: str,
    destination: str,
    departure_date: date,
    passengers: int = 1,
) -> list[TripOption]:
    """
    Active schedules from `origin` to `destination` (city codes, any case)
    departing on `departure_date` (UTC day), earliest first.

    A trip is bookable when it has not departed yet and has at least
    `passengers` free seats.
    """
    if origin.strip().upper() == destination.strip().upper():
        raise InvalidRequest("Origin and destination must be different")

    now = utcnow()
    start, end = _day_window(departure_date)
    result = await db.execute(
        select(Schedule)
        .join(Route, Route.id == Schedule.route_id)
        .where(
            Schedule.is_active.is_(True),
            Schedule.departure_time >= start,
            Schedule.departure_time < end,
            func.upper(Route.origin_code) == origin.strip().upper(),
            func.upper(Route.destination_code) == destination.strip().upper(),
        )
        .order_by(Schedule.departure_time, Schedule.id)
    )
    schedules = list(result.unique().scalars().all())
    if not schedules:
        logger.info(
            "trip_search_empty",
            origin=origin,
            destination=destination,
            departure_date=departure_date.isoformat(),
        )
        return []

    seats_result = await db.execute(
        select(Seat).where(Seat.bus_id.in_(sorted({s.bus_id for s in schedules})))
    )
    seats_by_bus = defaultdict(list)
    for seat in seats_result.scalars().all():
        seats_by_bus[seat.bus_id].append(seat)

    options = []
    for schedule in schedules:
        seats = seats_by_bus[schedule.bus_id]
        booked = await find_booked_seat_ids(db, schedule.id)
        locked = {lock.seat_id for lock in await find_live_locks(db, schedule.id, now)} - booked
        free = [
            seat for seat in seats
            if seat.is_available and seat.id not in booked and seat.id not in locked
        ]

        pricing = [
            {
                "seat_type": seat_type,
                "price": Decimal(schedule.price_for(seat_type)),
                "available_count": sum(1 for seat in free if seat.seat_type == seat_type),
            }
            for seat_type in sorted({seat.seat_type for seat in seats})
        ]
        options.append(TripOption(
            schedule=schedule_summary(schedule),
            total_seats=len(seats),
            available_seats=len(free),
            booked_seats=len(booked),
            locked_seats=len(locked),
            is_bookable=schedule.departure_time > now and len(free) >= passengers,
            pricing=pricing,
        ))

    logger.info(
        "trip_search",
        origin=origin,
        destination=destination,
        departure_date=departure_date.isoformat(),
        passengers=passengers,
        results=len(options),
    )
    return options


async def list_cities(db: AsyncSession) -> list[City]:
    """Every city served as an origin or destination, sorted by name."""
    origins = await db.execute(select(Route.origin_code, Route.origin_name).distinct())
    destinations = await db.execute(
        select(Route.destination_code, Route.destination_name).distinct()
    )
    cities = {code.upper(): name for code, name in origins.all()}
    for code, name in destinations.all():
        cities.setdefault(code.upper(), name)
    return [City(code=code, name=name) for code, name in sorted(cities.items(), key=lambda c: c[1])]
