"""
Booking service: turns a locked seat selection into a priced, payable booking.

BOOKING FLOW
============

  validate selection -> load bookable schedule -> verify session's locks
  -> price seats (tier by seat type, else schedule base price) -> discount
  -> create payment intent (with mock fallback)
  -> ONE transaction: re-verify locks FOR UPDATE, re-check no active booking
     holds the seats, insert Booking + BookingSeats + passengers + Payment
  -> enqueue confirmation notification (fire-and-forget)

Why re-verify inside the transaction:
  Minutes can pass between locking and submitting, and the payment provider
  call happens in between. The lock rows are selected FOR UPDATE in the
  insert transaction, so they cannot be swept or taken over while the
  booking rows are written.

PNR collisions:
  PNRs are "BT" + millisecond timestamp + 4 random base36 characters. They
  are unique with overwhelming probability but not by construction, so the
  bookings.pnr unique constraint decides. On a violation the transaction is
  rolled back and retried with a fresh PNR, up to PNR_MAX_ATTEMPTS times,
  then StorageError.

Seats are NOT marked unavailable here. A PENDING booking already holds its
seats for availability purposes; payment confirmation makes it final.
"""

import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bus_booking.core.config import get_settings
from bus_booking.core.exceptions import (
    BookingNotFound,
    InvalidRequest,
    LockExpired,
    PaymentProcessorError,
    PaymentUnavailable,
    SeatUnavailable,
    StorageError,
)
from bus_booking.core.logging import get_logger
from bus_booking.core.metrics import booking_latency, pnr_collisions, record_booking_attempt
from bus_booking.db.base import utcnow
from bus_booking.db.session import transaction
from bus_booking.models import (
    Booking,
    BookingPassenger,
    BookingSeat,
    BookingStatus,
    Payment,
    PaymentStatus,
    Seat,
)
from bus_booking.schemas.booking import BookingCreate
from bus_booking.services.interfaces.discount import DiscountStrategy
from bus_booking.services.interfaces.notification import BookingSummary, SeatSummary
from bus_booking.services.interfaces.payment import PaymentIntent, PaymentProcessor
from bus_booking.services.inventory_service import (
    find_booked_seat_ids,
    find_live_locks,
    get_bookable_schedule,
    validate_seat_selection,
)
from bus_booking.services.notification_service import NotificationQueue

logger = get_logger(__name__)

PNR_ALPHABET = string.ascii_uppercase + string.digits


class _DuplicatePNR(Exception):
    pass


@dataclass(frozen=True)
class SeatQuote:
    seat_id: int
    seat_number: str
    seat_type: str
    price: Decimal


@dataclass
class BookingResult:
    booking: Booking
    seats: list[SeatQuote]
    payment: PaymentIntent
    passengers: list[dict] = field(default_factory=list)


@dataclass
class TicketValidation:
    booking: Booking
    is_valid: bool
    reasons: list[str]
    boarding_opens_at: datetime
    boarding_closes_at: datetime
    validated_at: datetime


def generate_pnr() -> str:
    """Human-facing booking reference, e.g. BT1718000000000X7K2."""
    suffix = "".join(secrets.choice(PNR_ALPHABET) for _ in range(4))
    return f"BT{int(time.time() * 1000)}{suffix}"


def _missing_lock_seat_ids(locks, seat_ids: list[int], session_id: str) -> list[int]:
    held = {lock.seat_id for lock in locks if lock.session_id == session_id}
    return [seat_id for seat_id in seat_ids if seat_id not in held]


async def create_booking(
    db: AsyncSession,
    booking_data: BookingCreate,
    processor: PaymentProcessor,
    discounts: DiscountStrategy,
    notifications: Optional[NotificationQueue] = None,
) -> BookingResult:
    """
    Create a PENDING booking for seats the session has locked.

    Raises:
        InvalidRequest: bad selection or passenger list
        ScheduleUnavailable: schedule inactive, unknown or departed
        LockExpired: a seat is not locked by this session any more
        SeatUnavailable: a seat is already held by another active booking
        StorageError: the store failed or PNR generation kept colliding
        PaymentUnavailable: the payment processor could not create an intent
    """
    started = time.perf_counter()
    settings = get_settings()
    seat_ids = list(booking_data.seat_ids)
    session_id = booking_data.session_id

    validate_seat_selection(seat_ids)
    passengers = booking_data.passengers or []
    stray = [p.seat_id for p in passengers if p.seat_id not in seat_ids]
    if stray:
        raise InvalidRequest(f"Passengers reference seats outside the selection: {stray}")

    now = utcnow()
    schedule = await get_bookable_schedule(db, booking_data.schedule_id, now)
    schedule_id = schedule.id

    locks = await find_live_locks(db, schedule_id, now, seat_ids)
    missing = _missing_lock_seat_ids(locks, seat_ids, session_id)
    if missing:
        record_booking_attempt("lock_expired")
        logger.warning(
            "booking_lock_expired",
            schedule_id=schedule_id,
            session_id=session_id,
            missing_seat_ids=missing,
        )
        raise LockExpired(missing)

    seats_result = await db.execute(
        select(Seat).where(Seat.id.in_(seat_ids), Seat.bus_id == schedule.bus_id)
    )
    seats_by_id = {seat.id: seat for seat in seats_result.scalars().all()}
    foreign = [seat_id for seat_id in seat_ids if seat_id not in seats_by_id]
    if foreign:
        raise SeatUnavailable(foreign)
    quotes = [
        SeatQuote(
            seat_id=seat_id,
            seat_number=seats_by_id[seat_id].seat_number,
            seat_type=seats_by_id[seat_id].seat_type,
            price=Decimal(schedule.price_for(seats_by_id[seat_id].seat_type)),
        )
        for seat_id in seat_ids
    ]

    subtotal = sum((quote.price for quote in quotes), Decimal("0"))
    discount = await discounts.compute_discount(booking_data.discount_code, subtotal)
    discount = min(max(Decimal(discount), Decimal("0")), subtotal)
    total = subtotal - discount

    contact = booking_data.passenger_info
    summary_base = dict(
        passenger_name=contact.name,
        passenger_email=contact.email,
        origin=schedule.route.origin_name,
        destination=schedule.route.destination_name,
        departure_time=schedule.departure_time.isoformat(),
        arrival_time=schedule.arrival_time.isoformat(),
        operator=schedule.route.operator_name,
        bus_number=schedule.bus.bus_number,
    )

    try:
        intent = await processor.create_payment_intent(
            total,
            {
                "schedule_id": schedule_id,
                "seat_ids": ",".join(str(seat_id) for seat_id in seat_ids),
                "session_id": session_id,
                "passenger_name": contact.name,
                "passenger_email": contact.email,
            },
        )
    except PaymentProcessorError as e:
        record_booking_attempt("error")
        logger.error(
            "booking_payment_intent_failed",
            schedule_id=schedule_id,
            session_id=session_id,
            provider=processor.name,
            error=str(e),
        )
        raise PaymentUnavailable("Payment service is unavailable, please retry") from e

    booking = None
    for attempt in range(1, settings.PNR_MAX_ATTEMPTS + 1):
        pnr = generate_pnr()
        try:
            booking = await _insert_booking(
                db, booking_data, schedule_id, pnr, quotes, total, discount, intent
            )
            break
        except _DuplicatePNR:
            pnr_collisions.inc()
            logger.warning("booking_pnr_collision", pnr=pnr, attempt=attempt)
        except LockExpired as e:
            record_booking_attempt("lock_expired")
            logger.warning(
                "booking_lock_expired",
                schedule_id=schedule_id,
                session_id=session_id,
                missing_seat_ids=e.seat_ids,
            )
            raise
        except SeatUnavailable as e:
            record_booking_attempt("conflict")
            logger.warning(
                "booking_seat_conflict",
                schedule_id=schedule_id,
                session_id=session_id,
                seat_ids=e.seat_ids,
            )
            raise
        except StorageError:
            record_booking_attempt("error")
            raise

    if booking is None:
        record_booking_attempt("error")
        raise StorageError("Could not generate a unique booking reference, please retry")

    booking_latency.observe(time.perf_counter() - started)
    record_booking_attempt("success")
    logger.info(
        "booking_created",
        booking_id=booking.id,
        pnr=booking.pnr,
        schedule_id=schedule_id,
        session_id=session_id,
        seats=seat_ids,
        total=str(total),
        payment_provider=intent.provider,
    )

    if notifications is not None:
        summary = BookingSummary(
            pnr=booking.pnr,
            total_amount=total,
            seats=[SeatSummary(q.seat_number, q.seat_type, q.price) for q in quotes],
            passenger_names=[p.name for p in passengers],
            payment_intent_id=intent.id,
            **summary_base,
        )
        try:
            notifications.enqueue(summary)
        except Exception as e:
            logger.error("notification_enqueue_failed", pnr=booking.pnr, error=str(e))

    return BookingResult(
        booking=booking,
        seats=quotes,
        payment=intent,
        passengers=[{"name": p.name, "seat_id": p.seat_id} for p in passengers],
    )


async def _insert_booking(
    db: AsyncSession,
    booking_data: BookingCreate,
    schedule_id: int,
    pnr: str,
    quotes: list[SeatQuote],
    total: Decimal,
    discount: Decimal,
    intent: PaymentIntent,
) -> Booking:
    """One attempt at writing the booking rows atomically."""
    seat_ids = [quote.seat_id for quote in quotes]
    session_id = booking_data.session_id
    contact = booking_data.passenger_info

    async with transaction(db):
        now = utcnow()
        locks = await find_live_locks(db, schedule_id, now, seat_ids, for_update=True)
        missing = _missing_lock_seat_ids(locks, seat_ids, session_id)
        if missing:
            raise LockExpired(missing)

        taken = await find_booked_seat_ids(db, schedule_id, seat_ids)
        if taken:
            raise SeatUnavailable(
                [seat_id for seat_id in seat_ids if seat_id in taken],
                message="Seats are already held by another booking",
            )

        booking = Booking(
            pnr=pnr,
            schedule_id=schedule_id,
            session_id=session_id,
            passenger_name=contact.name,
            passenger_phone=contact.phone,
            passenger_email=contact.email,
            total_amount=total,
            discount_code=booking_data.discount_code,
            discount_amount=discount,
            payment_intent_id=intent.id,
            status=BookingStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
        )
        booking.seats = [
            BookingSeat(seat_id=quote.seat_id, price=quote.price) for quote in quotes
        ]
        booking.passengers = [
            BookingPassenger(seat_id=p.seat_id, passenger_name=p.name)
            for p in (booking_data.passengers or [])
        ]
        booking.payments = [
            Payment(
                provider=intent.provider,
                transaction_id=intent.id,
                amount=total,
                currency=intent.currency,
                status=PaymentStatus.PENDING.value,
            )
        ]
        db.add(booking)
        try:
            await db.flush()
        except IntegrityError as e:
            if "pnr" in str(e.orig).lower():
                raise _DuplicatePNR(pnr) from e
            raise

    return booking


async def get_booking(db: AsyncSession, pnr: str, email: str) -> Booking:
    """Booking lookup for the passenger: PNR plus the contact email used to book."""
    result = await db.execute(
        select(Booking).where(
            Booking.pnr == pnr.strip().upper(),
            func.lower(Booking.passenger_email) == email.strip().lower(),
        )
        .execution_options(populate_existing=True)
    )
    booking = result.unique().scalar_one_or_none()
    if booking is None:
        raise BookingNotFound(pnr)
    return booking


async def validate_ticket(db: AsyncSession, pnr: str) -> TicketValidation:
    """
    Decide whether a ticket may board now.

    A ticket is valid when the booking is CONFIRMED, its payment status is
    COMPLETED with at least one completed payment row, and the current time
    is between BOARDING_WINDOW_HOURS before departure and arrival.
    """
    clean_pnr = pnr.strip().upper()
    if not 3 <= len(clean_pnr) <= 25:
        raise InvalidRequest("Invalid PNR format - must be between 3-25 characters")

    result = await db.execute(
        select(Booking)
        .where(Booking.pnr == clean_pnr)
        .execution_options(populate_existing=True)
    )
    booking = result.unique().scalar_one_or_none()
    if booking is None:
        raise BookingNotFound(clean_pnr)

    now = utcnow()
    schedule = booking.schedule
    boarding_opens = schedule.departure_time - timedelta(hours=get_settings().BOARDING_WINDOW_HOURS)
    reasons = []

    if booking.status != BookingStatus.CONFIRMED.value:
        reasons.append(f"Booking status is {booking.status}, must be CONFIRMED")
    if booking.payment_status != PaymentStatus.COMPLETED.value:
        reasons.append(f"Payment status is {booking.payment_status}, must be COMPLETED")
    if not any(p.status == PaymentStatus.COMPLETED.value for p in booking.payments):
        reasons.append("No completed payment records found")
    if now < boarding_opens:
        reasons.append(f"Boarding not yet allowed - earliest boarding: {boarding_opens.isoformat()}")
    if now > schedule.arrival_time:
        reasons.append(f"Journey has ended - arrival was: {schedule.arrival_time.isoformat()}")

    logger.info("ticket_validated", pnr=clean_pnr, valid=not reasons, reasons=reasons)
    return TicketValidation(
        booking=booking,
        is_valid=not reasons,
        reasons=reasons,
        boarding_opens_at=boarding_opens,
        boarding_closes_at=schedule.arrival_time,
        validated_at=now,
    )
