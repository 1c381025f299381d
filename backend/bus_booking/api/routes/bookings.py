"""
Booking endpoints: create from locked seats, look up, validate for boarding.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from bus_booking.api.deps import rate_limited
from bus_booking.db.session import get_db
from bus_booking.schemas.booking import (
    BookedSeatResponse,
    BookingCreate,
    BookingCreateResponse,
    BookingDetailResponse,
    BookingSummaryResponse,
    PassengerSeat,
    PaymentHandshake,
    TicketValidationResponse,
    booking_detail,
)
from bus_booking.services.booking_service import create_booking, get_booking, validate_ticket
from bus_booking.services.interfaces.discount import DiscountStrategy
from bus_booking.services.interfaces.payment import PaymentProcessor
from bus_booking.services.notification_service import NotificationQueue
from bus_booking.services.strategy_factory import (
    get_discount_strategy,
    get_notification_queue,
    get_payment_processor,
)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post(
    "",
    response_model=BookingCreateResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limited("bookings"))],
)
async def create_booking_endpoint(
    booking_data: BookingCreate,
    db: AsyncSession = Depends(get_db),
    processor: PaymentProcessor = Depends(get_payment_processor),
    discounts: DiscountStrategy = Depends(get_discount_strategy),
    notifications: NotificationQueue = Depends(get_notification_queue),
):
    """
    Turn the session's locked seats into a PENDING booking.

    Re-validates every lock inside the booking transaction, so a lock that
    expired or was taken over since the seat map was fetched yields 409.
    The response carries the payment handshake the client completes next.
    """
    result = await create_booking(db, booking_data, processor, discounts, notifications)
    return BookingCreateResponse(
        booking=BookingSummaryResponse.model_validate(result.booking),
        seats=[
            BookedSeatResponse(
                seat_id=quote.seat_id,
                seat_number=quote.seat_number,
                seat_type=quote.seat_type,
                price=quote.price,
            )
            for quote in result.seats
        ],
        passengers=[PassengerSeat(**p) for p in result.passengers],
        payment=PaymentHandshake(
            payment_intent_id=result.payment.id,
            client_secret=result.payment.client_secret,
            provider=result.payment.provider,
            is_mock_payment=result.payment.is_mock,
        ),
    )


@router.get("", response_model=BookingDetailResponse)
async def lookup_booking(
    pnr: str = Query(..., min_length=3, max_length=25),
    email: str = Query(..., min_length=3, max_length=255),
    db: AsyncSession = Depends(get_db),
):
    """Find a booking by PNR and the contact email used to book it."""
    booking = await get_booking(db, pnr, email)
    return booking_detail(booking)


@router.get("/validate", response_model=TicketValidationResponse)
async def validate_booking(
    pnr: str = Query(..., min_length=1, max_length=64),
    db: AsyncSession = Depends(get_db),
):
    """Check whether a ticket may board right now, with reasons when it may not."""
    validation = await validate_ticket(db, pnr)
    booking = validation.booking
    return TicketValidationResponse(
        pnr=booking.pnr,
        status=booking.status,
        payment_status=booking.payment_status,
        passenger_name=booking.passenger_name,
        seat_numbers=[booking_seat.seat.seat_number for booking_seat in booking.seats],
        is_valid=validation.is_valid,
        validation_reasons=validation.reasons,
        boarding_opens_at=validation.boarding_opens_at,
        boarding_closes_at=validation.boarding_closes_at,
        validated_at=validation.validated_at,
    )
