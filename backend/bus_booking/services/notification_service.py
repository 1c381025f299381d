"""
Booking confirmation notifications.

DISPATCH STRATEGY: In-process queue + single worker
===================================================

Sending a confirmation must never slow down or fail a booking request.
The request handler only calls `enqueue()`, which is a non-blocking
`put_nowait` on an asyncio.Queue. A worker task started by the application
lifespan drains the queue and delivers each summary through the configured
Notifier, retrying with exponential backoff:

  attempt 1 -> wait backoff -> attempt 2 -> wait 2 * backoff -> attempt 3 -> give up

Failures are logged and counted, never raised. A full queue drops the
notification (logged) rather than applying back-pressure to bookings.
"""

import asyncio
from typing import Optional

from bus_booking.core.logging import get_logger
from bus_booking.core.metrics import record_notification
from bus_booking.services.interfaces.notification import BookingSummary, Notifier

logger = get_logger(__name__)


class LoggingNotifier(Notifier):
    """Default notifier: records the confirmation in the structured log."""

    async def send_booking_confirmation(self, summary: BookingSummary) -> None:
        logger.info(
            "booking_confirmation_sent",
            pnr=summary.pnr,
            email=summary.passenger_email,
            route=f"{summary.origin} -> {summary.destination}",
            departure=summary.departure_time,
            seats=[seat.seat_number for seat in summary.seats],
            total=str(summary.total_amount),
        )


class NotificationQueue:
    def __init__(
        self,
        notifier: Notifier,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        maxsize: int = 1000,
    ):
        self.notifier = notifier
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._queue: asyncio.Queue[BookingSummary] = asyncio.Queue(maxsize=maxsize)
        self._worker: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def enqueue(self, summary: BookingSummary) -> bool:
        """Queue a confirmation without waiting. Returns False if it was dropped."""
        try:
            self._queue.put_nowait(summary)
        except asyncio.QueueFull:
            record_notification("dropped")
            logger.error("notification_dropped", pnr=summary.pnr, reason="queue_full")
            return False
        return True

    async def deliver(self, summary: BookingSummary) -> bool:
        """Deliver one summary with retries. Returns True once sent."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                await self.notifier.send_booking_confirmation(summary)
                record_notification("sent")
                return True
            except Exception as e:
                if attempt == self.max_attempts:
                    record_notification("failed")
                    logger.error(
                        "notification_failed",
                        pnr=summary.pnr,
                        attempts=attempt,
                        error=str(e),
                    )
                    return False
                delay = self.backoff_seconds * (2 ** (attempt - 1))
                record_notification("retried")
                logger.warning(
                    "notification_retry",
                    pnr=summary.pnr,
                    attempt=attempt,
                    retry_in_seconds=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)
        return False

    async def _run(self) -> None:
        while True:
            summary = await self._queue.get()
            try:
                await self.deliver(summary)
            finally:
                self._queue.task_done()

    def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="notification-worker")
        logger.info("notification_worker_started")

    async def stop(self, drain_timeout: float = 5.0) -> None:
        """Give queued notifications a chance to go out, then cancel the worker."""
        if not self.running:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=drain_timeout)
        except asyncio.TimeoutError:
            logger.warning("notification_drain_timeout", pending=self.pending)
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("notification_worker_stopped")
