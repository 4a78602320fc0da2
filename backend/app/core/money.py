"""
Money helpers.

Amounts are Decimal end to end; rounding happens only at money
boundaries (final amounts, ledger writes).
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

Money = Decimal

CENT = Decimal("0.01")


def D(x) -> Money:
    if isinstance(x, Decimal):
        return x
    try:
        return Decimal(str(x if x is not None else "0"))
    except InvalidOperation:
        raise ValueError(f"Not a money amount: {x!r}")


def round_money(x) -> Money:
    return D(x).quantize(CENT, rounding=ROUND_HALF_UP)
