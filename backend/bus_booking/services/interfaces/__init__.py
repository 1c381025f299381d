"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .payment import PaymentIntent, PaymentProcessor
from .notification import BookingSummary, Notifier, SeatSummary
from .discount import DiscountStrategy, NoDiscount

__all__ = [
    'PaymentIntent', 'PaymentProcessor',
    'BookingSummary', 'Notifier', 'SeatSummary',
    'DiscountStrategy', 'NoDiscount',
]
