from decimal import ROUND_HALF_DOWN, ROUND_HALF_UP, Decimal
from typing import Union

# Type alias for money values
Money = Decimal

ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

MoneyLike = Union[Decimal, float, int, str]


def round_money(value: MoneyLike) -> Decimal:
    """
    Round monetary value to 2 decimal places using ROUND_HALF_UP.

    Examples:
        >>> round_money(10.125)
        Decimal('10.13')
        >>> round_money("10.115")
        Decimal('10.12')
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if value < 0:
        return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_DOWN)
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def percent_of(amount: MoneyLike, percent: MoneyLike) -> Decimal:
    """amount × percent / 100, rounded to cents."""
    return round_money(Decimal(str(amount)) * Decimal(str(percent)) / HUNDRED)


def percent_ratio(part: MoneyLike, whole: MoneyLike) -> Decimal:
    """part / whole × 100 with 2 decimals. Zero whole yields zero."""
    whole_d = Decimal(str(whole))
    if whole_d == 0:
        return ZERO
    return round_money(Decimal(str(part)) * HUNDRED / whole_d)


def clamp_non_negative(value: MoneyLike) -> Decimal:
    """Round and floor at zero."""
    return max(round_money(value), ZERO)


def from_minor_units(value: int | str) -> Decimal:
    """Convert kobo/cents to the major unit."""
    return round_money(Decimal(str(value)) / HUNDRED)
