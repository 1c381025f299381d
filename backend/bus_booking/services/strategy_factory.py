"""
Collaborator factory.
Configures which payment processor, discount strategy, notifier and rate
limiter the booking core uses. Each getter is also a FastAPI dependency, so
tests swap implementations through app.dependency_overrides.
"""

from typing import Optional

from bus_booking.core.config import get_settings
from bus_booking.core.logging import get_logger
from bus_booking.services.interfaces.discount import DiscountStrategy, NoDiscount
from bus_booking.services.interfaces.payment import PaymentProcessor
from bus_booking.services.notification_service import LoggingNotifier, NotificationQueue
from bus_booking.services.payment_processors import (
    FallbackPaymentProcessor,
    MockPaymentProcessor,
    StripePaymentProcessor,
)
from bus_booking.services.rate_limit_service import RateLimiter

logger = get_logger(__name__)


def build_payment_processor() -> PaymentProcessor:
    """
    Build the configured payment processor.

    PAYMENT_PROCESSOR selects:
    - mock: MockPaymentProcessor only
    - stripe: StripePaymentProcessor, no fallback
    - auto (default): Stripe with mock fallback when Stripe is configured,
      otherwise mock
    """
    settings = get_settings()
    mock = MockPaymentProcessor(
        currency=settings.CURRENCY,
        decline_rate=settings.MOCK_PAYMENT_DECLINE_RATE,
    )
    choice = settings.PAYMENT_PROCESSOR.lower()

    if choice == "mock":
        return mock
    if choice == "stripe":
        return StripePaymentProcessor(settings.STRIPE_SECRET_KEY, settings.CURRENCY)
    if settings.stripe_configured:
        return FallbackPaymentProcessor(
            StripePaymentProcessor(settings.STRIPE_SECRET_KEY, settings.CURRENCY),
            mock,
        )

    logger.warning("stripe_not_configured", message="Using mock payment processor")
    return mock


# Singleton instances
_processor: Optional[PaymentProcessor] = None
_mock_processor: Optional[MockPaymentProcessor] = None
_discount: Optional[DiscountStrategy] = None
_notifications: Optional[NotificationQueue] = None
_rate_limiter: Optional[RateLimiter] = None


def get_payment_processor() -> PaymentProcessor:
    global _processor
    if _processor is None:
        _processor = build_payment_processor()
    return _processor


def get_mock_processor() -> MockPaymentProcessor:
    """The processor that confirms mock intents, whatever the primary is."""
    global _mock_processor
    if _mock_processor is None:
        settings = get_settings()
        _mock_processor = MockPaymentProcessor(
            currency=settings.CURRENCY,
            decline_rate=settings.MOCK_PAYMENT_DECLINE_RATE,
        )
    return _mock_processor


def get_discount_strategy() -> DiscountStrategy:
    global _discount
    if _discount is None:
        _discount = NoDiscount()
    return _discount


def get_notification_queue() -> NotificationQueue:
    global _notifications
    if _notifications is None:
        settings = get_settings()
        _notifications = NotificationQueue(
            LoggingNotifier(),
            max_attempts=settings.NOTIFICATION_MAX_ATTEMPTS,
            backoff_seconds=settings.NOTIFICATION_RETRY_BACKOFF_SECONDS,
            maxsize=settings.NOTIFICATION_QUEUE_SIZE,
        )
    return _notifications


def get_rate_limiter() -> RateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter()
    return _rate_limiter
