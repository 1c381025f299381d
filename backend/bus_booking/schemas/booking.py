"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class PassengerContact(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=1, max_length=50)
    email: EmailStr


class PassengerSeat(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    seat_id: int


class BookingCreate(BaseModel):
    schedule_id: int
    # Upper bound is enforced against MAX_SEATS_PER_BOOKING by the service
    seat_ids: list[int]
    session_id: str = Field(..., min_length=1, max_length=128)
    passenger_info: PassengerContact
    passengers: Optional[list[PassengerSeat]] = None
    discount_code: Optional[str] = Field(None, max_length=50)


class BookedSeatResponse(BaseModel):
    seat_id: int
    seat_number: str
    seat_type: str
    price: Decimal


class PaymentHandshake(BaseModel):
    payment_intent_id: str
    client_secret: Optional[str]
    provider: str
    is_mock_payment: bool


class BookingSummaryResponse(BaseModel):
    id: int
    pnr: str
    schedule_id: int
    status: str
    payment_status: str
    total_amount: Decimal
    discount_amount: Decimal
    passenger_name: str
    passenger_phone: str
    passenger_email: str
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingCreateResponse(BaseModel):
    booking: BookingSummaryResponse
    seats: list[BookedSeatResponse]
    passengers: list[PassengerSeat] = []
    payment: PaymentHandshake


class PaymentRecordResponse(BaseModel):
    id: int
    provider: str
    transaction_id: str
    amount: Decimal
    currency: str
    status: str
    processed_at: Optional[datetime]

    model_config = {"from_attributes": True}


class BookingDetailResponse(BookingSummaryResponse):
    seats: list[BookedSeatResponse]
    passengers: list[PassengerSeat]
    payments: list[PaymentRecordResponse]
    origin: str
    destination: str
    departure_time: datetime
    arrival_time: datetime
    operator: str
    bus_number: str


class TicketValidationResponse(BaseModel):
    pnr: str
    status: str
    payment_status: str
    passenger_name: str
    seat_numbers: list[str]
    is_valid: bool
    validation_reasons: list[str]
    boarding_opens_at: datetime
    boarding_closes_at: datetime
    validated_at: datetime


def booking_detail(booking) -> BookingDetailResponse:
    """Flatten a fully loaded Booking (schedule, seats, passengers, payments) for the API."""
    schedule = booking.schedule
    return BookingDetailResponse(
        id=booking.id,
        pnr=booking.pnr,
        schedule_id=booking.schedule_id,
        status=booking.status,
        payment_status=booking.payment_status,
        total_amount=booking.total_amount,
        discount_amount=booking.discount_amount,
        passenger_name=booking.passenger_name,
        passenger_phone=booking.passenger_phone,
        passenger_email=booking.passenger_email,
        created_at=booking.created_at,
        seats=[
            BookedSeatResponse(
                seat_id=booking_seat.seat_id,
                seat_number=booking_seat.seat.seat_number,
                seat_type=booking_seat.seat.seat_type,
                price=booking_seat.price,
            )
            for booking_seat in booking.seats
        ],
        passengers=[
            PassengerSeat(name=p.passenger_name, seat_id=p.seat_id) for p in booking.passengers
        ],
        payments=[PaymentRecordResponse.model_validate(p) for p in booking.payments],
        origin=schedule.route.origin_name,
        destination=schedule.route.destination_name,
        departure_time=schedule.departure_time,
        arrival_time=schedule.arrival_time,
        operator=schedule.route.operator_name,
        bus_number=schedule.bus.bus_number,
    )
