"""Money / rounding helpers.

Amounts are stored as integer pence; decimals only exist at the edges
(request payloads and display values). Centralized so the service, models
and assistant tools share identical rounding semantics.
"""

from __future__ import annotations
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

PENCE_PER_POUND = 100
_TWO_PLACES = Decimal("0.01")


def to_minor_units(amount: Union[Decimal, float, int, str]) -> int:
    """Convert a pound amount to pence, rounding half-up to the nearest penny."""
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    return int((value * PENCE_PER_POUND).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount_minor: int) -> Decimal:
    return (Decimal(amount_minor) / PENCE_PER_POUND).quantize(_TWO_PLACES)


def format_gbp(amount_minor: int) -> str:
    return f"£{from_minor_units(amount_minor):,.2f}"
