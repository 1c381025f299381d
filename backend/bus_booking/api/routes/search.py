"""
Trip search endpoints.
"""

from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bus_booking.db.session import get_db
from bus_booking.schemas.search import CityResponse, TripOptionResponse, TripSearchResponse
from bus_booking.services.search_service import list_cities, search_trips

router = APIRouter(tags=["Search"])


@router.get("/routes/search", response_model=TripSearchResponse)
async def search(
    origin: str = Query(..., min_length=1, max_length=10),
    destination: str = Query(..., min_length=1, max_length=10),
    departure_date: date = Query(...),
    passengers: int = Query(1, ge=1, le=6),
    db: AsyncSession = Depends(get_db),
):
    """
    Trips between two city codes on one day, earliest departure first.

    Each trip carries its free seat count and per-seat-type prices.
    `is_bookable` is false once the trip has departed or has fewer free
    seats than `passengers`.
    """
    options = await search_trips(db, origin, destination, departure_date, passengers)
    results = [TripOptionResponse.model_validate(asdict(option)) for option in options]
    return TripSearchResponse(
        origin=origin.upper(),
        destination=destination.upper(),
        departure_date=departure_date,
        passengers=passengers,
        results=results,
        total_results=len(results),
    )


@router.get("/cities", response_model=list[CityResponse])
async def cities(db: AsyncSession = Depends(get_db)):
    """Cities served by at least one route."""
    return [CityResponse.model_validate(asdict(city)) for city in await list_cities(db)]
