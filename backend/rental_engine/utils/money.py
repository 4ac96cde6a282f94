from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Largest value a Numeric(12, 2) column holds
MAX_AMOUNT = Decimal("9999999999.99")


def to_money(value: Any, bounded: bool = True) -> Decimal:
    """Coerce a number-like value to a two-decimal Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.10"), not its binary
    expansion. None is treated as zero. Unless ``bounded`` is False (sums over
    many rentals), values outside the storable range raise ValueError like any
    other malformed amount.
    """
    if value is None:
        return ZERO
    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, float):
            amount = Decimal(str(value))
        else:
            amount = Decimal(str(value).strip())
        if not amount.is_finite():
            raise ValueError(f"Invalid monetary amount: {value!r}")
        amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid monetary amount: {value!r}") from exc
    if bounded and abs(amount) > MAX_AMOUNT:
        raise ValueError(f"Monetary amount out of range: {value!r}")
    return amount


def to_decimal_or_none(value: Any) -> Optional[Decimal]:
    """Usage readings (hours, mileage) keep their own precision."""
    if value is None:
        return None
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as exc:
            raise ValueError(f"Invalid numeric reading: {value!r}") from exc
    if not value.is_finite() or abs(value) > MAX_AMOUNT:
        raise ValueError(f"Numeric reading out of range: {value!r}")
    return value
