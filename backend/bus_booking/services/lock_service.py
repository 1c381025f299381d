"""
Seat lock service: short-lived, session-scoped soft reservations.

CONCURRENCY STRATEGY: Row locks + unique constraint backstop
=============================================================

Problem:
  Two shoppers pick seat 1A on the same trip at the same moment.
  Both read "1A is free", both insert a lock, both proceed to checkout.

Solution:
  acquire_locks() runs as ONE transaction:

  1. DELETE expired locks (passive expiry, no background daemon)
  2. DELETE this session's previous locks (re-locking replaces the selection)
  3. SELECT the requested Seat rows FOR UPDATE, ordered by id, so concurrent
     acquisitions touching the same seats serialize instead of interleaving
  4. Re-check every seat: on the schedule's bus, administratively available,
     no PENDING/CONFIRMED booking on this trip, no other live lock on this trip
  5. Any failure aborts the whole transaction with SeatUnavailable naming the
     conflicting seats; otherwise INSERT one lock per seat

  The unique constraint on seat_locks(schedule_id, seat_id) is the final
  safety net: if two transactions still race past step 4, the second INSERT
  fails and is reported as SeatUnavailable. Either all requested seats end up
  locked to the session or none do.

Locks expire lazily: an abandoned checkout's rows are swept by the next
acquisition or seat map query after SEAT_LOCK_MINUTES.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bus_booking.core.config import get_settings
from bus_booking.core.exceptions import InvalidRequest, SeatUnavailable
from bus_booking.core.logging import get_logger
from bus_booking.core.metrics import record_lock_attempt
from bus_booking.db.base import utcnow
from bus_booking.db.session import transaction
from bus_booking.models import Seat, SeatLock
from bus_booking.services.inventory_service import (
    find_booked_seat_ids,
    find_live_locks,
    get_bookable_schedule,
    sweep_expired_locks,
    validate_seat_selection,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class LockResult:
    schedule_id: int
    seat_ids: list[int]
    session_id: str
    expires_at: datetime

    @property
    def lock_duration_seconds(self) -> int:
        return get_settings().SEAT_LOCK_MINUTES * 60


async def acquire_locks(
    db: AsyncSession,
    schedule_id: int,
    seat_ids: list[int],
    session_id: str,
) -> LockResult:
    """
    Lock `seat_ids` on `schedule_id` for `session_id`, all or nothing.

    Raises:
        InvalidRequest: empty, oversized or duplicated selection
        ScheduleUnavailable: schedule inactive, unknown or departed
        SeatUnavailable: one or more seats are taken (named in seat_ids)
        StorageError: the store failed; nothing was locked
    """
    validate_seat_selection(seat_ids)
    if not session_id:
        raise InvalidRequest("Session ID is required")

    settings = get_settings()
    now = utcnow()
    expires_at = now + timedelta(minutes=settings.SEAT_LOCK_MINUTES)

    try:
        async with transaction(db):
            schedule = await get_bookable_schedule(db, schedule_id, now)
            bus_id = schedule.bus_id

            swept = await sweep_expired_locks(db, now)
            await db.execute(delete(SeatLock).where(SeatLock.session_id == session_id))

            seats_result = await db.execute(
                select(Seat)
                .where(Seat.id.in_(seat_ids), Seat.bus_id == bus_id)
                .order_by(Seat.id)
                .with_for_update()
            )
            seats = {seat.id: seat for seat in seats_result.scalars().all()}
            booked = await find_booked_seat_ids(db, schedule_id, seat_ids)
            locked = {lock.seat_id for lock in await find_live_locks(db, schedule_id, now, seat_ids)}

            unavailable = [
                seat_id for seat_id in seat_ids
                if seat_id not in seats
                or not seats[seat_id].is_available
                or seat_id in booked
                or seat_id in locked
            ]
            if unavailable:
                raise SeatUnavailable(unavailable)

            db.add_all([
                SeatLock(
                    schedule_id=schedule_id,
                    seat_id=seat_id,
                    session_id=session_id,
                    expires_at=expires_at,
                )
                for seat_id in seat_ids
            ])
            try:
                await db.flush()
            except IntegrityError as e:
                # Another transaction inserted a lock between our check and insert
                logger.warning(
                    "seat_lock_constraint_conflict",
                    schedule_id=schedule_id,
                    seat_ids=seat_ids,
                    session_id=session_id,
                )
                raise SeatUnavailable(seat_ids) from e
    except SeatUnavailable as e:
        record_lock_attempt("conflict")
        logger.info(
            "seat_lock_conflict",
            schedule_id=schedule_id,
            requested=seat_ids,
            unavailable=e.seat_ids,
            session_id=session_id,
        )
        raise
    except Exception:
        record_lock_attempt("error")
        raise

    record_lock_attempt("acquired")
    logger.info(
        "seats_locked",
        schedule_id=schedule_id,
        seat_ids=seat_ids,
        session_id=session_id,
        expires_at=expires_at.isoformat(),
        expired_swept=swept,
    )
    return LockResult(
        schedule_id=schedule_id,
        seat_ids=list(seat_ids),
        session_id=session_id,
        expires_at=expires_at,
    )


async def release_locks(db: AsyncSession, session_id: str) -> int:
    """Release every lock held by the session. Idempotent; returns the count removed."""
    if not session_id:
        raise InvalidRequest("Session ID is required")

    async with transaction(db):
        result = await db.execute(delete(SeatLock).where(SeatLock.session_id == session_id))

    released = result.rowcount or 0
    logger.info("seat_locks_released", session_id=session_id, released=released)
    return released


async def renew_locks(
    db: AsyncSession,
    session_id: str,
    extra_minutes: int,
) -> tuple[int, datetime]:
    """
    Move the expiry of the session's live locks to now + extra_minutes.
    Returns the number of locks renewed and the new expiry.
    """
    max_minutes = get_settings().SEAT_LOCK_MAX_RENEW_MINUTES
    if not 1 <= extra_minutes <= max_minutes:
        raise InvalidRequest(f"Locks can be extended by 1 to {max_minutes} minutes")

    now = utcnow()
    new_expiry = now + timedelta(minutes=extra_minutes)
    async with transaction(db):
        result = await db.execute(
            update(SeatLock)
            .where(SeatLock.session_id == session_id, SeatLock.expires_at > now)
            .values(expires_at=new_expiry)
            .execution_options(synchronize_session="fetch")
        )

    renewed = result.rowcount or 0
    logger.info(
        "seat_locks_renewed",
        session_id=session_id,
        renewed=renewed,
        expires_at=new_expiry.isoformat(),
    )
    return renewed, new_expiry


async def get_session_locks(db: AsyncSession, session_id: str) -> list[SeatLock]:
    """The session's unexpired locks, with their seats loaded."""
    result = await db.execute(
        select(SeatLock)
        .where(SeatLock.session_id == session_id, SeatLock.expires_at > utcnow())
        .order_by(SeatLock.seat_id)
    )
    return list(result.unique().scalars().all())


async def cleanup_expired_locks(db: AsyncSession) -> int:
    """Standalone sweep of expired locks, committed on its own."""
    async with transaction(db):
        swept = await sweep_expired_locks(db, utcnow())
    if swept:
        logger.info("expired_seat_locks_cleaned", count=swept)
    return swept
