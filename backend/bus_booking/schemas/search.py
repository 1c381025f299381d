"""
Pydantic schemas for trip search.
"""

from datetime import date

from pydantic import BaseModel

from bus_booking.schemas.seat import PricingSummary, ScheduleSummary


class TripOptionResponse(BaseModel):
    schedule: ScheduleSummary
    total_seats: int
    available_seats: int
    booked_seats: int
    locked_seats: int
    is_bookable: bool
    pricing: list[PricingSummary]


class TripSearchResponse(BaseModel):
    origin: str
    destination: str
    departure_date: date
    passengers: int
    results: list[TripOptionResponse]
    total_results: int


class CityResponse(BaseModel):
    code: str
    name: str
