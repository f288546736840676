"""
Common Value Objects

Value objects used across the booking engine:
- Money: A non-negative amount in a supported currency
- DateRange: A half-open range of calendar days [start_date, end_date)
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from shared.domain.base import ValueObject

SUPPORTED_CURRENCIES = ('KZT', 'USD', 'EUR', 'RUB')

CENT = Decimal('0.01')


@dataclass(frozen=True)
class Money(ValueObject):
    """
    Money value object

    Amounts are stored with two decimal places.
    """
    amount: Decimal
    currency: str = 'KZT'

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))
        object.__setattr__(self, 'amount', self.amount.quantize(CENT, rounding=ROUND_HALF_UP))
        if self.amount < 0:
            raise ValueError("Amount cannot be negative")
        if self.currency not in SUPPORTED_CURRENCIES:
            raise ValueError(f"Unsupported currency: {self.currency}")

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    def __str__(self):
        return f"{self.amount:,.2f} {self.currency}"


@dataclass(frozen=True)
class DateRange(ValueObject):
    """
    Date range value object

    start_date is inclusive, end_date is exclusive. Two ranges touching
    at a boundary (one ends on the day the other starts) do not overlap.
    """
    start_date: date
    end_date: date

    def __post_init__(self):
        if isinstance(self.start_date, datetime) or isinstance(self.end_date, datetime):
            raise TypeError("DateRange bounds must be dates, not datetimes")
        if self.start_date >= self.end_date:
            raise ValueError(f"Start date ({self.start_date}) must be before end date ({self.end_date})")

    @property
    def nights(self) -> int:
        return (self.end_date - self.start_date).days

    def __str__(self):
        return f"{self.start_date.isoformat()}..{self.end_date.isoformat()}"
