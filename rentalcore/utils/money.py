"""Decimal helpers for monetary amounts."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value, default: Optional[Decimal] = None) -> Decimal:
    """
    Convert int/float/str/Decimal to Decimal without binary float noise.
    Floats go through str() so 0.15 stays 0.15.
    None (or '') returns `default`, or raises ValueError when no default is given.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise ValueError("Amount is required")
        return default
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Not an amount: {value!r}")
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Not an amount: {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"Not an amount: {value!r}")
    return result


def round_money(x: Decimal) -> Decimal:
    """Round to the currency minor unit (2 decimals), half-up."""
    return to_decimal(x).quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(x: Optional[Decimal]) -> Optional[str]:
    """Render an amount for flat records; keeps full precision, at least 2 decimals."""
    if x is None:
        return None
    x = to_decimal(x)
    if x == x.quantize(CENT):
        return str(x.quantize(CENT))
    return format(x.normalize(), "f")
