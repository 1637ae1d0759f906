"""
Money helpers.

WHAT: Conversion between integer minor units (cents) and decimal amounts.

WHY: Every amount inside the billing engine is an ``int`` number of cents.
Decimal values only exist at the edges: request parsing, API responses,
PDF rendering and error messages. Keeping one representation removes the
rounding drift that mixed float/decimal-string arithmetic produces.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Union

CENT = Decimal("0.01")

AmountLike = Union[Decimal, str, int, float]


def to_cents(value: AmountLike) -> int:
    """
    Convert a decimal amount (dollars) to integer cents.

    WHY: Floats are routed through ``str`` so that 19.99 becomes
    Decimal("19.99") rather than its binary approximation.

    Args:
        value: Amount in dollars

    Returns:
        Amount in cents, rounded half-up to the nearest cent

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError("Boolean is not a monetary amount")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Invalid monetary amount: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"Invalid monetary amount: {value!r}")
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Convert integer cents to a two-place Decimal."""
    return (Decimal(cents) / 100).quantize(CENT)


def format_money(cents: int) -> str:
    """
    Format cents as a USD string, e.g. ``1020000`` -> ``"$10,200.00"``.

    Negative amounts are rendered as ``-$12.50``.
    """
    sign = "-" if cents < 0 else ""
    return f"{sign}${from_cents(abs(cents)):,.2f}"
