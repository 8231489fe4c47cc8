"""
Fixed-point money helpers.

Every amount is a ``Decimal`` with two fractional digits. Products and tax
are rounded half-up exactly once, where they are computed; sums of already
rounded amounts are exact and are never re-rounded.
"""
from decimal import ROUND_HALF_UP, Decimal

from shopcore.utils.settings import TAX_RATE

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    if isinstance(value, float):
        #go through str so binary float noise never enters a money value
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(unit_price, quantity: int) -> Decimal:
    return to_money(Decimal(unit_price) * quantity)


def tax_for(subtotal, rate: Decimal = TAX_RATE) -> Decimal:
    return to_money(Decimal(subtotal) * rate)


def money_sum(values) -> Decimal:
    return sum((Decimal(v) for v in values), ZERO)
