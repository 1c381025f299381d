"""
Seat lock endpoints: hold seats during checkout.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bus_booking.api.deps import rate_limited
from bus_booking.db.session import get_db
from bus_booking.schemas.seat import (
    SeatLockReleaseResponse,
    SeatLockRenewRequest,
    SeatLockRenewResponse,
    SeatLockRequest,
    SeatLockResponse,
)
from bus_booking.services.lock_service import acquire_locks, release_locks, renew_locks

router = APIRouter(prefix="/seats", tags=["Seats"])


@router.post(
    "/lock",
    response_model=SeatLockResponse,
    dependencies=[Depends(rate_limited("seat_lock"))],
)
async def lock_seats(
    lock_data: SeatLockRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Lock seats on a trip for this session, all or nothing.

    Locking again replaces the session's previous selection. A 409 response
    names the seats that are taken in `seat_ids`.
    """
    result = await acquire_locks(db, lock_data.schedule_id, lock_data.seat_ids, lock_data.session_id)
    return SeatLockResponse(
        schedule_id=result.schedule_id,
        locked_seats=result.seat_ids,
        expires_at=result.expires_at,
        lock_duration_seconds=result.lock_duration_seconds,
    )


@router.delete("/lock", response_model=SeatLockReleaseResponse)
async def unlock_seats(
    session_id: str = Query(..., min_length=1, max_length=128),
    db: AsyncSession = Depends(get_db),
):
    """Release every seat held by the session."""
    released = await release_locks(db, session_id)
    return SeatLockReleaseResponse(message="Seat locks released", released=released)


@router.post("/lock/renew", response_model=SeatLockRenewResponse)
async def renew_seat_locks(
    renew_data: SeatLockRenewRequest,
    db: AsyncSession = Depends(get_db),
):
    """Push the session's live locks out to now + extra_minutes."""
    renewed, expires_at = await renew_locks(db, renew_data.session_id, renew_data.extra_minutes)
    return SeatLockRenewResponse(renewed=renewed, expires_at=expires_at)
