"""
Payment processor interface.
The booking core only needs to create payment intents; confirmation arrives
later through the processor's webhook or the mock confirm endpoint.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    client_secret: Optional[str]
    provider: str
    amount: Decimal
    currency: str

    @property
    def is_mock(self) -> bool:
        return self.provider == "mock"


class PaymentProcessor(ABC):
    """
    Interface for payment processors.

    Implementations:
    - StripePaymentProcessor: live Stripe PaymentIntents
    - MockPaymentProcessor: local intents for environments without credentials
    - FallbackPaymentProcessor: primary processor with a mock fallback
    """

    name: str = "abstract"

    @abstractmethod
    async def create_payment_intent(self, amount: Decimal, metadata: dict) -> PaymentIntent:
        """
        Create a payment intent for `amount` in the configured currency.

        Args:
            amount: Amount in major currency units (e.g. dollars)
            metadata: Free-form key/value pairs attached to the intent

        Raises:
            PaymentProcessorError: The processor could not create the intent
        """
        pass
