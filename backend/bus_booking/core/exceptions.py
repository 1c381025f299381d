"""
Booking error taxonomy.

Every error raised by the booking core derives from BookingError and
carries the HTTP status it maps to, a stable machine-readable code, and
whether the caller may retry:

  InvalidRequest       400  malformed input, retry only after changing it
  SeatUnavailable      409  seat contention, re-query availability and retry
  LockExpired          409  stale client state, re-lock and retry
  ScheduleUnavailable  404  trip inactive or departed
  BookingNotFound      404  unknown PNR / email combination
  UnknownPayment       404  payment intent with no booking (operator issue)
  PaymentDeclined      402  processor declined the payment
  StorageError         503  infrastructure failure, retry with backoff
  PaymentUnavailable   503  payment processor unreachable, retry with backoff
"""

from typing import Optional, Sequence


class BookingError(Exception):
    status_code: int = 400
    code: str = "booking_error"
    retryable: bool = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message, "retryable": self.retryable}


class InvalidRequest(BookingError):
    status_code = 400
    code = "invalid_request"


class _SeatError(BookingError):
    """Errors that name the specific seats so the client can deselect just those."""

    def __init__(self, message: str, seat_ids: Sequence[int]):
        self.seat_ids = list(seat_ids)
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["seat_ids"] = self.seat_ids
        return data


class SeatUnavailable(_SeatError):
    status_code = 409
    code = "seat_unavailable"
    retryable = True

    def __init__(self, seat_ids: Sequence[int], message: Optional[str] = None):
        ids = ", ".join(str(s) for s in seat_ids)
        super().__init__(message or f"Seats {ids} are no longer available", seat_ids)


class LockExpired(_SeatError):
    status_code = 409
    code = "lock_expired"
    retryable = True

    def __init__(self, seat_ids: Sequence[int]):
        ids = ", ".join(str(s) for s in seat_ids)
        super().__init__(f"Seat locks have expired or are invalid for seats {ids}", seat_ids)


class ScheduleUnavailable(BookingError):
    status_code = 404
    code = "schedule_unavailable"

    def __init__(self, schedule_id: int):
        self.schedule_id = schedule_id
        super().__init__(f"Schedule {schedule_id} not found or already departed")


class BookingNotFound(BookingError):
    status_code = 404
    code = "booking_not_found"

    def __init__(self, pnr: str):
        self.pnr = pnr
        super().__init__(f"Booking {pnr} not found")


class UnknownPayment(BookingError):
    status_code = 404
    code = "unknown_payment"

    def __init__(self, payment_intent_id: str):
        self.payment_intent_id = payment_intent_id
        super().__init__(f"No booking found for payment intent {payment_intent_id}")


class PaymentDeclined(BookingError):
    status_code = 402
    code = "payment_declined"

    def __init__(self, message: str, decline_code: str = "card_declined"):
        self.decline_code = decline_code
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["decline_code"] = self.decline_code
        return data


class StorageError(BookingError):
    status_code = 503
    code = "storage_error"
    retryable = True


class PaymentUnavailable(BookingError):
    status_code = 503
    code = "payment_unavailable"
    retryable = True


class PaymentProcessorError(Exception):
    """Raised by a payment processor when it cannot create or confirm an intent."""
