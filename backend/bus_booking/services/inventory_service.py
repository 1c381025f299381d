"""
Shared inventory queries used by the lock, booking and availability services.
"""

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from bus_booking.core.exceptions import InvalidRequest, ScheduleUnavailable
from bus_booking.core.metrics import seat_locks_swept
from bus_booking.core.config import get_settings
from bus_booking.models import ACTIVE_BOOKING_STATUSES, Booking, BookingSeat, Schedule, SeatLock


def validate_seat_selection(seat_ids: list[int]) -> None:
    """Reject empty, oversized or duplicated selections before touching the store."""
    max_seats = get_settings().MAX_SEATS_PER_BOOKING
    if not seat_ids:
        raise InvalidRequest("At least one seat must be selected")
    if len(seat_ids) > max_seats:
        raise InvalidRequest(f"A maximum of {max_seats} seats can be selected")
    if len(set(seat_ids)) != len(seat_ids):
        raise InvalidRequest("Seat selection contains duplicate seats")


async def get_bookable_schedule(
    db: AsyncSession,
    schedule_id: int,
    now: datetime,
) -> Schedule:
    """Active schedule departing after `now`, or ScheduleUnavailable."""
    result = await db.execute(
        select(Schedule).where(
            Schedule.id == schedule_id,
            Schedule.is_active.is_(True),
            Schedule.departure_time > now,
        )
    )
    schedule = result.unique().scalar_one_or_none()
    if schedule is None:
        raise ScheduleUnavailable(schedule_id)
    return schedule


async def get_active_schedule(db: AsyncSession, schedule_id: int) -> Schedule:
    """Active schedule regardless of departure time, or ScheduleUnavailable."""
    result = await db.execute(
        select(Schedule).where(Schedule.id == schedule_id, Schedule.is_active.is_(True))
    )
    schedule = result.unique().scalar_one_or_none()
    if schedule is None:
        raise ScheduleUnavailable(schedule_id)
    return schedule


async def sweep_expired_locks(db: AsyncSession, now: datetime) -> int:
    """Delete every lock whose expiry has passed. Runs inside the caller's transaction."""
    result = await db.execute(delete(SeatLock).where(SeatLock.expires_at < now))
    if result.rowcount:
        seat_locks_swept.inc(result.rowcount)
    return result.rowcount or 0


async def find_booked_seat_ids(
    db: AsyncSession,
    schedule_id: int,
    seat_ids: Optional[Iterable[int]] = None,
) -> set[int]:
    """Seats held by a PENDING or CONFIRMED booking on this schedule."""
    query = (
        select(BookingSeat.seat_id)
        .join(Booking, Booking.id == BookingSeat.booking_id)
        .where(
            Booking.schedule_id == schedule_id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        )
    )
    if seat_ids is not None:
        query = query.where(BookingSeat.seat_id.in_(list(seat_ids)))
    result = await db.execute(query)
    return set(result.scalars().all())


async def find_live_locks(
    db: AsyncSession,
    schedule_id: int,
    now: datetime,
    seat_ids: Optional[Iterable[int]] = None,
    for_update: bool = False,
) -> list[SeatLock]:
    """Unexpired locks on this schedule, optionally limited to some seats."""
    query = select(SeatLock).where(
        SeatLock.schedule_id == schedule_id,
        SeatLock.expires_at > now,
    )
    if seat_ids is not None:
        query = query.where(SeatLock.seat_id.in_(list(seat_ids)))
    if for_update:
        query = query.with_for_update(of=SeatLock)
    result = await db.execute(query.order_by(SeatLock.seat_id))
    return list(result.unique().scalars().all())
