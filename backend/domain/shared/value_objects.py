"""
Shared value objects: interface language, money and percentages.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional


TWO_PLACES = Decimal("0.01")


# =============================================================================
# ENUMERATIONS
# =============================================================================

class Language(str, Enum):
    """Interface languages for localized fields."""

    RU = "ru"
    TJ = "tj"
    EN = "en"

    @classmethod
    def parse(cls, value: Optional[str]) -> Language:
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.RU


class Currency(str, Enum):
    """Contract currencies."""

    USD = "USD"
    TJS = "TJS"


def localized(lang: Optional[str], ru: str, tj: Optional[str] = None, en: Optional[str] = None) -> str:
    """Pick the localized variant of a text, falling back to Russian when blank."""
    language = Language.parse(lang)
    if language == Language.TJ and tj:
        return tj
    if language == Language.EN and en:
        return en
    return ru


# =============================================================================
# VALUE OBJECTS
# =============================================================================

@dataclass(frozen=True)
class Money:
    """
    Amount in USD or TJS. PMMIS reports in USD, so TJS amounts are
    converted with the rate fixed in the payment or amendment.
    """

    amount: Decimal
    currency: str = Currency.USD.value

    def __post_init__(self):
        if len(self.currency) != 3:
            raise ValueError("Currency must be a 3-letter code")

    def rounded(self) -> Money:
        return Money(self.amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP), self.currency)

    def to_usd(self, exchange_rate: Optional[Decimal]) -> Money:
        """Convert TJS to USD using TJS-per-USD rate."""
        if self.currency == Currency.USD.value:
            return self
        if not exchange_rate or exchange_rate <= 0:
            raise ValueError("Exchange rate must be positive")
        return Money(self.amount / Decimal(str(exchange_rate)), Currency.USD.value).rounded()


@dataclass(frozen=True)
class Percent:
    """
    Percentage in the 0..100 range.
    """

    value: Decimal

    def __post_init__(self):
        if self.value < 0 or self.value > 100:
            raise ValueError("Percent must be between 0 and 100")

    @classmethod
    def clamp(cls, value) -> Percent:
        value = Decimal(str(value))
        return cls(min(max(value, Decimal(0)), Decimal(100)))

    @classmethod
    def ratio(cls, part: Decimal, whole: Decimal) -> Decimal:
        """part / whole * 100, zero when whole is not positive."""
        if not whole or whole <= 0:
            return Decimal(0)
        return (Decimal(part) / Decimal(whole) * 100).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

    def __str__(self) -> str:
        return f"{self.value}%"
