from bus_booking.models.schedule import Route, Bus, Schedule, PricingTier
from bus_booking.models.seat import Seat, SeatLock, SeatType
from bus_booking.models.booking import (
    ACTIVE_BOOKING_STATUSES,
    Booking,
    BookingPassenger,
    BookingSeat,
    BookingStatus,
    Payment,
    PaymentStatus,
)

__all__ = [
    "Route", "Bus", "Schedule", "PricingTier",
    "Seat", "SeatLock", "SeatType",
    "Booking", "BookingSeat", "BookingPassenger", "Payment",
    "BookingStatus", "PaymentStatus", "ACTIVE_BOOKING_STATUSES",
]
