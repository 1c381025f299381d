"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from bus_booking.api.routes import bookings, payments, schedules, search, seats

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(search.router)
api_router.include_router(schedules.router)
api_router.include_router(seats.router)
api_router.include_router(bookings.router)
api_router.include_router(payments.router)
