from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def quantize_money(value: Decimal | float | int | str | None) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def money(value: Decimal | float | int | str | None) -> Decimal:
    """Like quantize_money, but treats a missing value as zero."""
    if value is None:
        return ZERO
    return quantize_money(value)


def sum_money(values: Iterable[Decimal | float | int | str | None]) -> Decimal:
    return quantize_money(sum((Decimal(str(value)) for value in values if value is not None), ZERO))
