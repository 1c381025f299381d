"""
Notification interface for booking confirmations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class SeatSummary:
    seat_number: str
    seat_type: str
    price: Decimal


@dataclass(frozen=True)
class BookingSummary:
    """Everything a confirmation message needs, detached from the ORM session."""

    pnr: str
    passenger_name: str
    passenger_email: str
    origin: str
    destination: str
    departure_time: str
    arrival_time: str
    operator: str
    bus_number: str
    total_amount: Decimal
    seats: list[SeatSummary] = field(default_factory=list)
    passenger_names: list[str] = field(default_factory=list)
    payment_intent_id: Optional[str] = None


class Notifier(ABC):
    @abstractmethod
    async def send_booking_confirmation(self, summary: BookingSummary) -> None:
        """Deliver a confirmation. May raise; the dispatcher retries and logs."""
        pass
