"""
Tests for money helpers.

WHY: Every amount in the engine is integer cents; a rounding slip at the
edge would let an invoice drift one cent past the contract ceiling.
"""

from decimal import Decimal

import pytest

from jobbilling.core.money import format_money, from_cents, to_cents


class TestToCents:
    """Decimal dollars -> integer cents."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (Decimal("10200.00"), 1_020_000),
            ("52.5", 5_250),
            (19.99, 1_999),
            (0, 0),
            (Decimal("0.005"), 1),
        ],
    )
    def test_converts(self, value, expected):
        assert to_cents(value) == expected

    def test_float_uses_decimal_representation(self):
        """WHY: 0.1 + 0.2 style float noise must not leak into cents."""
        assert to_cents(0.1 + 0.2) == 30

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity", True])
    def test_rejects_non_amounts(self, value):
        with pytest.raises(ValueError):
            to_cents(value)


class TestFormatting:
    def test_from_cents_has_two_places(self):
        assert from_cents(520_000) == Decimal("5200.00")
        assert str(from_cents(5)) == "0.05"

    def test_format_money_groups_thousands(self):
        assert format_money(1_020_000) == "$10,200.00"

    def test_format_money_negative(self):
        assert format_money(-1_250) == "-$12.50"
