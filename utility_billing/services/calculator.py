"""Meter reading and charge arithmetic.

Every derived figure is rounded half-up to cents before the next one is
computed from it, in the order consumption -> amount -> tax -> total.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

Number = Union[Decimal, int, float, str]

TWO_PLACES = Decimal("0.01")
HUNDRED = Decimal("100")


def to_decimal(value: Number) -> Decimal:
    """Convert via str() so floats like 2.675 keep their printed value"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round2(value: Number) -> Decimal:
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Charges:
    """Derived bill figures. All None means the reading is not in yet."""
    consumption: Optional[Decimal]
    amount: Optional[Decimal]
    tax_amount: Optional[Decimal]
    total_amount: Optional[Decimal]

    @property
    def is_computed(self) -> bool:
        return self.total_amount is not None


NOT_COMPUTED = Charges(None, None, None, None)


def calculate_charges(
    previous_reading: Optional[Number],
    current_reading: Optional[Number],
    rate: Number,
    tax_rate_percent: Optional[Number] = 0,
) -> Charges:
    """
    Derive consumption, subtotal, tax and total for a bill.

    A missing previous reading counts as zero. A missing current reading
    leaves everything unset. Negative consumption is returned as-is.
    """
    if current_reading is None:
        return NOT_COMPUTED

    previous = to_decimal(previous_reading) if previous_reading is not None else Decimal("0")
    tax_rate = to_decimal(tax_rate_percent) if tax_rate_percent is not None else Decimal("0")

    consumption = round2(to_decimal(current_reading) - previous)
    amount = round2(consumption * to_decimal(rate))
    tax_amount = round2(amount * tax_rate / HUNDRED)
    total_amount = round2(amount + tax_amount)
    return Charges(consumption, amount, tax_amount, total_amount)
