"""
Pydantic schemas for seat locks and seat maps.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field


class SeatLockRequest(BaseModel):
    schedule_id: int
    seat_ids: list[int]
    session_id: str = Field(..., min_length=1, max_length=128)


class SeatLockResponse(BaseModel):
    schedule_id: int
    locked_seats: list[int]
    expires_at: datetime
    lock_duration_seconds: int


class SeatLockRenewRequest(BaseModel):
    session_id: str = Field(..., min_length=1, max_length=128)
    extra_minutes: int = Field(default=5, ge=1)


class SeatLockRenewResponse(BaseModel):
    renewed: int
    expires_at: datetime


class SeatLockReleaseResponse(BaseModel):
    message: str
    released: int


SeatStatusLiteral = Literal["booked", "locked", "available", "unavailable"]


class SeatView(BaseModel):
    id: int
    seat_number: str
    seat_type: str
    price: Decimal
    status: SeatStatusLiteral
    is_selectable: bool
    lock_expires_at: Optional[datetime] = None
    held_by_session: bool = False


class AvailabilityStats(BaseModel):
    total_seats: int
    available_seats: int
    booked_seats: int
    locked_seats: int
    occupancy_rate: float


class PricingSummary(BaseModel):
    seat_type: str
    price: Decimal
    available_count: int


class ScheduleSummary(BaseModel):
    id: int
    departure_time: datetime
    arrival_time: datetime
    base_price: Decimal
    origin_name: str
    origin_code: str
    destination_name: str
    destination_code: str
    operator: str
    duration_minutes: Optional[int]
    distance_km: Optional[int]
    bus_number: str
    bus_type: str
    total_seats: int


class SeatMapResponse(BaseModel):
    schedule: ScheduleSummary
    seats: list[SeatView]
    seat_map: dict[str, list[SeatView]]
    availability: AvailabilityStats
    pricing: list[PricingSummary]
