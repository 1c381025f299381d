"""
Payment confirmation: moves a PENDING booking to its final state.

STATE MACHINE
=============

  PENDING/PENDING --succeeded--> CONFIRMED/COMPLETED
  PENDING/PENDING --failed/cancelled--> CANCELLED/FAILED

CONFIRMED and CANCELLED are terminal. Processors deliver events at least
once and in any order, so a later event for a terminal booking is logged and
ignored rather than treated as an error. Two concurrent deliveries of the
same event serialize on the booking row (SELECT ... FOR UPDATE) and the
second one sees the terminal state.

Either outcome removes any seat locks still held for the booking's seats on
its schedule: a confirmed booking holds the seats itself, a cancelled one
releases them back to inventory.
"""

from typing import Any, Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bus_booking.core.exceptions import InvalidRequest, PaymentDeclined, UnknownPayment
from bus_booking.core.logging import get_logger
from bus_booking.core.metrics import record_payment_event
from bus_booking.db.base import utcnow
from bus_booking.db.session import transaction
from bus_booking.models import Booking, BookingStatus, Payment, PaymentStatus, SeatLock
from bus_booking.services.payment_processors import MockPaymentProcessor, is_mock_intent

logger = get_logger(__name__)

SUCCEEDED_EVENTS = {"payment_intent.succeeded"}
FAILED_EVENTS = {"payment_intent.payment_failed", "payment_intent.canceled"}


async def _find_booking_for_intent(
    db: AsyncSession,
    payment_intent_id: str,
    for_update: bool = False,
) -> Booking:
    query = (
        select(Booking)
        .outerjoin(Payment, Payment.booking_id == Booking.id)
        .where(
            or_(
                Payment.transaction_id == payment_intent_id,
                Booking.payment_intent_id == payment_intent_id,
            )
        )
        .execution_options(populate_existing=True)
    )
    if for_update:
        query = query.with_for_update(of=Booking)
    result = await db.execute(query)
    booking = result.unique().scalars().first()
    if booking is None:
        record_payment_event("unknown")
        logger.error("payment_intent_unknown", payment_intent_id=payment_intent_id)
        raise UnknownPayment(payment_intent_id)
    return booking


async def _release_booking_locks(db: AsyncSession, booking: Booking) -> int:
    result = await db.execute(
        delete(SeatLock).where(
            SeatLock.schedule_id == booking.schedule_id,
            SeatLock.seat_id.in_(booking.seat_ids),
        )
    )
    return result.rowcount or 0


def _settle_payments(booking: Booking, payment_intent_id: str, status: PaymentStatus) -> None:
    now = utcnow()
    for payment in booking.payments:
        if payment.transaction_id == payment_intent_id:
            payment.status = status.value
            payment.processed_at = now


async def on_payment_succeeded(db: AsyncSession, payment_intent_id: str) -> Booking:
    """
    Confirm the booking paid by `payment_intent_id`.

    Idempotent: a CONFIRMED booking is returned untouched.

    Raises:
        UnknownPayment: no booking references the intent
        StorageError: the store failed; nothing changed
    """
    async with transaction(db):
        booking = await _find_booking_for_intent(db, payment_intent_id, for_update=True)

        if booking.status != BookingStatus.PENDING.value:
            outcome = "duplicate" if booking.status == BookingStatus.CONFIRMED.value else "ignored"
            record_payment_event(outcome)
            logger.info(
                "payment_success_ignored",
                pnr=booking.pnr,
                payment_intent_id=payment_intent_id,
                status=booking.status,
            )
            return booking

        booking.status = BookingStatus.CONFIRMED.value
        booking.payment_status = PaymentStatus.COMPLETED.value
        _settle_payments(booking, payment_intent_id, PaymentStatus.COMPLETED)
        released = await _release_booking_locks(db, booking)

    record_payment_event("confirmed")
    logger.info(
        "booking_confirmed",
        booking_id=booking.id,
        pnr=booking.pnr,
        payment_intent_id=payment_intent_id,
        locks_released=released,
    )
    return booking


async def on_payment_failed_or_cancelled(db: AsyncSession, payment_intent_id: str) -> Booking:
    """
    Cancel the booking whose payment failed or was cancelled, freeing its seats.

    A booking that is already CONFIRMED or CANCELLED is returned untouched.
    """
    async with transaction(db):
        booking = await _find_booking_for_intent(db, payment_intent_id, for_update=True)

        if booking.status != BookingStatus.PENDING.value:
            outcome = "duplicate" if booking.status == BookingStatus.CANCELLED.value else "ignored"
            record_payment_event(outcome)
            logger.info(
                "payment_failure_ignored",
                pnr=booking.pnr,
                payment_intent_id=payment_intent_id,
                status=booking.status,
            )
            return booking

        booking.status = BookingStatus.CANCELLED.value
        booking.payment_status = PaymentStatus.FAILED.value
        _settle_payments(booking, payment_intent_id, PaymentStatus.FAILED)
        released = await _release_booking_locks(db, booking)

    record_payment_event("cancelled")
    logger.warning(
        "booking_cancelled",
        booking_id=booking.id,
        pnr=booking.pnr,
        payment_intent_id=payment_intent_id,
        locks_released=released,
    )
    return booking


async def confirm_mock_payment(
    db: AsyncSession,
    payment_intent_id: str,
    processor: MockPaymentProcessor,
) -> Booking:
    """
    Client-side confirmation for mock payment intents.

    Real processor intents are confirmed by webhook only.

    Raises:
        InvalidRequest: not a mock intent, or the booking was already cancelled
        UnknownPayment: no booking references the intent
        PaymentDeclined: the simulated charge was declined; the booking is
            cancelled before this is raised
    """
    if not is_mock_intent(payment_intent_id):
        raise InvalidRequest("Real processor payments are confirmed by webhook")

    booking = await _find_booking_for_intent(db, payment_intent_id)
    if booking.status == BookingStatus.CONFIRMED.value:
        return await on_payment_succeeded(db, payment_intent_id)
    if booking.status == BookingStatus.CANCELLED.value:
        raise InvalidRequest(f"Booking {booking.pnr} is cancelled and cannot be paid")

    try:
        await processor.confirm_payment_intent(payment_intent_id)
    except PaymentDeclined as e:
        logger.warning(
            "mock_payment_declined",
            payment_intent_id=payment_intent_id,
            decline_code=e.decline_code,
        )
        await on_payment_failed_or_cancelled(db, payment_intent_id)
        raise

    return await on_payment_succeeded(db, payment_intent_id)


def _event_field(obj: Any, name: str) -> Any:
    # stripe.Event objects and plain dicts both support item access
    try:
        return obj[name]
    except (KeyError, TypeError):
        return None


async def handle_webhook_event(db: AsyncSession, event: Any) -> Optional[Booking]:
    """
    Apply a verified processor event.

    Returns the affected booking, or None when the event was ignored or
    referenced an unknown intent. Unknown intents are logged and
    acknowledged so the processor stops redelivering them.
    """
    event_type = _event_field(event, "type")
    data = _event_field(event, "data")
    intent = _event_field(data, "object") if data is not None else None
    payment_intent_id = _event_field(intent, "id") if intent is not None else None

    if event_type not in SUCCEEDED_EVENTS | FAILED_EVENTS:
        record_payment_event("ignored")
        logger.info("webhook_event_ignored", event_type=event_type)
        return None
    if not payment_intent_id:
        logger.warning("webhook_event_without_intent", event_type=event_type)
        return None

    logger.info("webhook_event_received", event_type=event_type, payment_intent_id=payment_intent_id)
    try:
        if event_type in SUCCEEDED_EVENTS:
            return await on_payment_succeeded(db, payment_intent_id)
        return await on_payment_failed_or_cancelled(db, payment_intent_id)
    except UnknownPayment:
        return None
