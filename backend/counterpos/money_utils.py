from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any, default: Optional[Decimal] = ZERO) -> Optional[Decimal]:
    """
    Coerce API/DB input to Decimal.

    - None / "" -> default
    - floats go through str() so 29.99 stays 29.99
    - bools are rejected (True is not a price)
    """
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError("expected a number, got a boolean")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = str(value)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return default
    try:
        result = Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValueError(f"invalid number: {value!r}")
    if not result.is_finite():
        raise ValueError(f"invalid number: {value!r}")
    return result


def quantize_money(value: Decimal) -> Decimal:
    """Round to cents, half-up (storage and display precision)."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value: Optional[Decimal]) -> Optional[str]:
    """Serialize a money amount as a fixed two-decimal string."""
    if value is None:
        return None
    return str(quantize_money(Decimal(value)))
