"""Money arithmetic shared by pricing, discounts and refunds.

Amounts are carried as floats (Protean ``Float`` fields) and rounded half-up
to two decimals at every pricing step so totals reproduce exactly.
"""

from decimal import ROUND_HALF_UP, Decimal

_CENT = Decimal("0.01")


def round_money(amount) -> float:
    if amount is None:
        return 0.0
    return float(Decimal(str(amount)).quantize(_CENT, rounding=ROUND_HALF_UP))


def sum_money(amounts) -> float:
    total = sum((Decimal(str(a)) for a in amounts if a is not None), Decimal("0"))
    return round_money(total)
