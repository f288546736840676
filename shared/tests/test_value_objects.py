from datetime import date, datetime
from decimal import Decimal

import pytest

from shared.domain.value_objects import DateRange, Money


class TestMoney:
    def test_amount_is_rounded_to_cents(self):
        assert Money(Decimal("10.005")).amount == Decimal("10.01")
        assert Money(12).amount == Decimal("12.00")

    def test_negative_amount_is_rejected(self):
        with pytest.raises(ValueError):
            Money(Decimal("-1"))

    def test_unsupported_currency_is_rejected(self):
        with pytest.raises(ValueError):
            Money(Decimal("1"), "XYZ")

    def test_zero_amount(self):
        assert Money(Decimal("0"), "USD").is_zero
        assert not Money(Decimal("0.01")).is_zero
        assert str(Money(Decimal("1500"))) == "1,500.00 KZT"


class TestDateRange:
    def test_empty_or_reversed_range_is_rejected(self):
        with pytest.raises(ValueError):
            DateRange(date(2026, 3, 5), date(2026, 3, 5))
        with pytest.raises(ValueError):
            DateRange(date(2026, 3, 6), date(2026, 3, 5))

    def test_datetimes_are_rejected(self):
        with pytest.raises(TypeError):
            DateRange(datetime(2026, 3, 1, 12), datetime(2026, 3, 2, 12))

    def test_nights(self):
        stay = DateRange(date(2026, 3, 1), date(2026, 3, 5))

        assert stay.nights == 4
        assert str(stay) == "2026-03-01..2026-03-05"
