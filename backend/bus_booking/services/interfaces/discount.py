"""
Discount strategy interface.
Discount codes have no business rules yet; NoDiscount is the default.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional


class DiscountStrategy(ABC):
    @abstractmethod
    async def compute_discount(self, code: Optional[str], cart_total: Decimal) -> Decimal:
        """
        Discount to subtract from `cart_total` for `code`.

        Returns:
            Amount in major currency units; the orchestrator clamps it to
            [0, cart_total]
        """
        pass


class NoDiscount(DiscountStrategy):
    """Every code is worth nothing."""

    async def compute_discount(self, code: Optional[str], cart_total: Decimal) -> Decimal:
        return Decimal("0")
