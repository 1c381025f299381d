"""
Schedule seat map endpoint.
"""

from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bus_booking.db.session import get_db
from bus_booking.schemas.seat import SeatMapResponse
from bus_booking.services.availability_service import get_seat_map

router = APIRouter(prefix="/schedules", tags=["Schedules"])


@router.get("/{schedule_id}/seats", response_model=SeatMapResponse)
async def seat_map(
    schedule_id: int,
    session_id: Optional[str] = Query(None, max_length=128),
    db: AsyncSession = Depends(get_db),
):
    """
    Per-seat status for one trip: booked, locked, available or unavailable.

    Pass your session_id to see which locked seats are yours.
    """
    result = await get_seat_map(db, schedule_id, session_id)
    return SeatMapResponse.model_validate(asdict(result))
