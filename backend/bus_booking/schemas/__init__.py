from bus_booking.schemas.seat import (
    SeatLockRequest, SeatLockResponse, SeatLockRenewRequest, SeatLockRenewResponse,
    SeatLockReleaseResponse, SeatMapResponse,
)
from bus_booking.schemas.booking import (
    BookingCreate, BookingCreateResponse, BookingDetailResponse, TicketValidationResponse,
)
from bus_booking.schemas.payment import PaymentConfirmRequest, PaymentConfirmResponse, WebhookAck
from bus_booking.schemas.search import CityResponse, TripSearchResponse

__all__ = [
    "SeatLockRequest", "SeatLockResponse", "SeatLockRenewRequest", "SeatLockRenewResponse",
    "SeatLockReleaseResponse", "SeatMapResponse",
    "BookingCreate", "BookingCreateResponse", "BookingDetailResponse", "TicketValidationResponse",
    "PaymentConfirmRequest", "PaymentConfirmResponse", "WebhookAck",
    "TripSearchResponse", "CityResponse",
]
