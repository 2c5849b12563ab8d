"""
DOMAIN MODELS — DECIMAL PRECISION

Quantization rules for every monetary and unit figure.
Binary floats never reach the ledger: inputs go through Decimal(str(x)).
"""

from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP, ROUND_UP
from typing import Union

MONEY_QUANT = Decimal("0.01")
UNITS_QUANT = Decimal("0.0001")
PRICE_QUANT = Decimal("0.0001")
COST_QUANT = Decimal("0.00000001")

ZERO = Decimal("0")

# Smallest tradable quantity
MIN_ORDER_UNITS = Decimal("0.01")

Numeric = Union[Decimal, int, float, str]


def to_decimal(value: Numeric) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value: Numeric) -> Decimal:
    return to_decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def units(value: Numeric) -> Decimal:
    return to_decimal(value).quantize(UNITS_QUANT, rounding=ROUND_HALF_UP)


def price(value: Numeric) -> Decimal:
    return to_decimal(value).quantize(PRICE_QUANT, rounding=ROUND_HALF_UP)


def cost(value: Numeric) -> Decimal:
    return to_decimal(value).quantize(COST_QUANT, rounding=ROUND_HALF_UP)


def pct(numerator: Decimal, denominator: Decimal) -> Decimal:
    """Percentage with an explicit zero-denominator branch."""
    if denominator > ZERO:
        return money(numerator / denominator * Decimal("100"))
    return money(ZERO)


def money_up(value: Numeric) -> Decimal:
    """Cash owed by the user: rounded away from zero to the cent."""
    return to_decimal(value).quantize(MONEY_QUANT, rounding=ROUND_UP)


def money_down(value: Numeric) -> Decimal:
    """Cash owed to the user: truncated to the cent."""
    return to_decimal(value).quantize(MONEY_QUANT, rounding=ROUND_DOWN)
