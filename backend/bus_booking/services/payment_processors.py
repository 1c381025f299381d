"""
Payment processor implementations.

FALLBACK POLICY
===============

Booking creation must not be blocked by a payment provider outage in
non-critical environments. FallbackPaymentProcessor tries the primary
processor (Stripe) and, on any PaymentProcessorError, creates a mock intent
instead. The booking records which provider issued its intent, so mock
intents are later confirmed through /payments/confirm while Stripe intents
are confirmed by webhook.

This is a deliberate simplification for this system: in a production
deployment that takes real money, PAYMENT_PROCESSOR=stripe disables the
fallback.
"""

import asyncio
import random
import secrets
import time
from decimal import Decimal, ROUND_HALF_UP

import stripe

from bus_booking.core.exceptions import PaymentDeclined, PaymentProcessorError
from bus_booking.core.logging import get_logger
from bus_booking.core.metrics import payment_fallbacks, payment_intents
from bus_booking.services.interfaces.payment import PaymentIntent, PaymentProcessor

logger = get_logger(__name__)

MOCK_INTENT_PREFIX = "pi_mock_"


def to_minor_units(amount: Decimal) -> int:
    """Convert dollars to cents the way Stripe expects them."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_mock_intent(payment_intent_id: str) -> bool:
    return payment_intent_id.startswith(MOCK_INTENT_PREFIX)


class StripePaymentProcessor(PaymentProcessor):
    """Live Stripe PaymentIntents. The SDK is blocking, so calls run in a worker thread."""

    name = "stripe"

    def __init__(self, api_key: str, currency: str = "usd"):
        self.api_key = api_key
        self.currency = currency

    async def create_payment_intent(self, amount: Decimal, metadata: dict) -> PaymentIntent:
        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.create,
                api_key=self.api_key,
                amount=to_minor_units(amount),
                currency=self.currency,
                metadata={key: str(value) for key, value in metadata.items()},
                automatic_payment_methods={"enabled": True},
            )
        except Exception as e:
            logger.error("stripe_intent_failed", error=str(e), error_type=type(e).__name__)
            raise PaymentProcessorError(f"Stripe payment intent creation failed: {e}") from e

        payment_intents.labels(provider=self.name).inc()
        return PaymentIntent(
            id=intent["id"],
            client_secret=intent["client_secret"],
            provider=self.name,
            amount=Decimal(amount),
            currency=self.currency,
        )


class MockPaymentProcessor(PaymentProcessor):
    """
    Local payment intents for development, CI and provider outages.

    Intents always create successfully. Confirmation succeeds unless a
    decline rate is configured, which simulates card declines for testing.
    """

    name = "mock"

    def __init__(self, currency: str = "usd", decline_rate: float = 0.0):
        self.currency = currency
        self.decline_rate = decline_rate

    async def create_payment_intent(self, amount: Decimal, metadata: dict) -> PaymentIntent:
        intent_id = f"{MOCK_INTENT_PREFIX}{int(time.time() * 1000)}_{secrets.token_hex(5)}"
        payment_intents.labels(provider=self.name).inc()
        return PaymentIntent(
            id=intent_id,
            client_secret=f"{intent_id}_secret_{secrets.token_hex(5)}",
            provider=self.name,
            amount=Decimal(amount),
            currency=self.currency,
        )

    async def confirm_payment_intent(self, payment_intent_id: str) -> str:
        """
        Simulate the customer completing payment.

        Returns:
            "succeeded"

        Raises:
            PaymentDeclined: simulated decline (only when decline_rate > 0)
        """
        roll = random.random()
        if roll < self.decline_rate / 2:
            raise PaymentDeclined("Your card was declined.", "card_declined")
        if roll < self.decline_rate:
            raise PaymentDeclined("Your card has insufficient funds.", "insufficient_funds")
        return "succeeded"


class FallbackPaymentProcessor(PaymentProcessor):
    """Primary processor with a fallback used whenever the primary fails."""

    def __init__(self, primary: PaymentProcessor, fallback: PaymentProcessor):
        self.primary = primary
        self.fallback = fallback
        self.name = primary.name

    async def create_payment_intent(self, amount: Decimal, metadata: dict) -> PaymentIntent:
        try:
            return await self.primary.create_payment_intent(amount, metadata)
        except PaymentProcessorError as e:
            payment_fallbacks.inc()
            logger.warning(
                "payment_processor_fallback",
                primary=self.primary.name,
                fallback=self.fallback.name,
                error=str(e),
            )
            return await self.fallback.create_payment_intent(amount, metadata)


def verify_webhook_signature(payload: bytes, signature: str, secret: str) -> stripe.Event:
    """
    Verify a Stripe webhook payload and return the parsed event.

    Raises:
        ValueError: payload is not valid JSON
        stripe.SignatureVerificationError: signature mismatch or stale timestamp
    """
    return stripe.Webhook.construct_event(payload, signature, secret)
