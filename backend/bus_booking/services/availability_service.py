"""
Seat map queries.

A seat's status on a trip is derived, in priority order:

  booked      a PENDING or CONFIRMED booking on this schedule holds it
  locked      an unexpired lock on this schedule holds it
  available   the seat's administrative flag is set
  unavailable otherwise

The map is a read-only view for clients. It is never used as a write gate:
lock acquisition and booking creation re-check everything in their own
transactions.
"""

import re
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bus_booking.core.logging import get_logger
from bus_booking.db.base import utcnow
from bus_booking.db.session import transaction
from bus_booking.models import Schedule, Seat
from bus_booking.services.inventory_service import (
    find_booked_seat_ids,
    find_live_locks,
    get_active_schedule,
    sweep_expired_locks,
)

logger = get_logger(__name__)

_ROW_PATTERN = re.compile(r"^(\d+)")


@dataclass
class SeatStatus:
    id: int
    seat_number: str
    seat_type: str
    price: Decimal
    status: str
    is_selectable: bool
    lock_expires_at: Optional[datetime] = None
    held_by_session: bool = False


@dataclass
class SeatMap:
    schedule: dict
    seats: list[SeatStatus]
    seat_map: dict[str, list[SeatStatus]]
    availability: dict
    pricing: list[dict] = field(default_factory=list)


def row_of(seat_number: str) -> str:
    """Row label of a seat: its leading digits, or the whole label if none."""
    match = _ROW_PATTERN.match(seat_number)
    return match.group(1) if match else seat_number


def _row_sort_key(row: str):
    return (0, int(row), "") if row.isdigit() else (1, 0, row)


def schedule_summary(schedule: Schedule) -> dict:
    route = schedule.route
    bus = schedule.bus
    return {
        "id": schedule.id,
        "departure_time": schedule.departure_time,
        "arrival_time": schedule.arrival_time,
        "base_price": schedule.base_price,
        "origin_name": route.origin_name,
        "origin_code": route.origin_code,
        "destination_name": route.destination_name,
        "destination_code": route.destination_code,
        "operator": route.operator_name,
        "duration_minutes": route.duration_minutes,
        "distance_km": route.distance_km,
        "bus_number": bus.bus_number,
        "bus_type": bus.bus_type,
        "total_seats": bus.total_seats,
    }


async def get_seat_map(
    db: AsyncSession,
    schedule_id: int,
    session_id: Optional[str] = None,
) -> SeatMap:
    """
    Current per-seat status for one schedule.

    `held_by_session` marks locks owned by `session_id`; other sessions' ids
    are never exposed.

    Raises:
        ScheduleUnavailable: schedule unknown or inactive
    """
    now = utcnow()
    async with transaction(db):
        await sweep_expired_locks(db, now)

    schedule = await get_active_schedule(db, schedule_id)
    seats_result = await db.execute(
        select(Seat).where(Seat.bus_id == schedule.bus_id).order_by(Seat.seat_number)
    )
    seats = sorted(
        seats_result.scalars().all(),
        key=lambda seat: (_row_sort_key(row_of(seat.seat_number)), seat.seat_number),
    )

    booked = await find_booked_seat_ids(db, schedule.id)
    locks = {lock.seat_id: lock for lock in await find_live_locks(db, schedule.id, now)}

    statuses = []
    for seat in seats:
        lock = locks.get(seat.id)
        if seat.id in booked:
            status = "booked"
        elif lock is not None:
            status = "locked"
        elif seat.is_available:
            status = "available"
        else:
            status = "unavailable"

        statuses.append(SeatStatus(
            id=seat.id,
            seat_number=seat.seat_number,
            seat_type=seat.seat_type,
            price=Decimal(schedule.price_for(seat.seat_type)),
            status=status,
            is_selectable=status == "available",
            lock_expires_at=lock.expires_at if status == "locked" else None,
            held_by_session=bool(
                session_id and status == "locked" and lock.session_id == session_id
            ),
        ))

    rows: dict[str, list[SeatStatus]] = defaultdict(list)
    for seat_status in statuses:
        rows[row_of(seat_status.seat_number)].append(seat_status)

    counts = defaultdict(int)
    for seat_status in statuses:
        counts[seat_status.status] += 1
    total = len(statuses)
    occupied = counts["booked"] + counts["locked"]

    pricing = []
    for seat_type in sorted({s.seat_type for s in statuses}):
        pricing.append({
            "seat_type": seat_type,
            "price": Decimal(schedule.price_for(seat_type)),
            "available_count": sum(
                1 for s in statuses if s.seat_type == seat_type and s.status == "available"
            ),
        })

    logger.debug(
        "seat_map_built",
        schedule_id=schedule.id,
        total=total,
        booked=counts["booked"],
        locked=counts["locked"],
    )
    return SeatMap(
        schedule=schedule_summary(schedule),
        seats=statuses,
        seat_map=dict(sorted(rows.items(), key=lambda item: _row_sort_key(item[0]))),
        availability={
            "total_seats": total,
            "available_seats": counts["available"],
            "booked_seats": counts["booked"],
            "locked_seats": counts["locked"],
            "occupancy_rate": round(occupied / total * 100, 2) if total else 0.0,
        },
        pricing=pricing,
    )
