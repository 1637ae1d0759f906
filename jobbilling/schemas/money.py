"""
Money field types shared by the API schemas.

WHAT: Annotated types that move amounts across the HTTP boundary.

WHY: Clients send and receive dollars with two decimal places; the engine
works in integer cents. Converting in exactly one place keeps the API
layer from ever doing arithmetic on decimals.

HOW:
- ``MoneyIn`` accepts a decimal (number or string) with at most two places
  and validates it to ``int`` cents.
- ``MoneyOut`` accepts ``int`` cents (from ORM attributes) and serializes as
  a two-place decimal string.
"""

from decimal import Decimal
from typing import Annotated

from pydantic import AfterValidator, BeforeValidator, Field, PlainSerializer

from jobbilling.core.money import from_cents, to_cents


MoneyIn = Annotated[
    Decimal,
    Field(max_digits=14, decimal_places=2),
    AfterValidator(to_cents),
]

MoneyOut = Annotated[
    Decimal,
    BeforeValidator(lambda v: from_cents(v) if isinstance(v, int) else v),
    PlainSerializer(lambda v: f"{v:.2f}", return_type=str),
]
