# Overview: Pure invoice arithmetic shared by the live preview and the commit handler.

"""
Invoice math (no database, no Flask)

One module computes line totals, invoice totals, loyalty redemption and
earned points so the preview endpoint and the commit transaction can never
drift apart.

CLAMPING, NOT REJECTING:
- quantity      -> [1, max(1, current_stock)]  (stock <= 0 leaves only the floor of 1)
- line discount -> [0, 100] percent
- invoice discount -> [0, 100] percent, tax -> [0, inf) percent
- redeemed points -> [0, min(balance, floor(gross_total))]

Money stays at full Decimal precision here; rounding to cents happens only
when a figure is stored or serialized.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_FLOOR
from typing import Iterable, Sequence

from ..money_utils import ZERO, HUNDRED, to_decimal


DEFAULT_EARN_DIVISOR = 10


def clamp_percent(value, upper: Decimal | None = HUNDRED) -> Decimal:
    pct = to_decimal(value)
    if pct < ZERO:
        return ZERO
    if upper is not None and pct > upper:
        return upper
    return pct


def clamp_quantity(quantity, current_stock: int | None = None) -> int:
    """
    Clamp a requested quantity to [1, max(1, current_stock)].

    A stock of 0 (or negative, or unknown) still allows 1 unit: the oversell
    allowance for stale stock data.
    """
    try:
        qty = int(quantity)
    except (TypeError, ValueError):
        qty = 1
    upper = max(1, current_stock) if current_stock is not None else None
    if qty < 1:
        qty = 1
    if upper is not None and qty > upper:
        qty = upper
    return qty


def floor_int(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


@dataclass(frozen=True)
class LineInput:
    """One cart row. product_id None marks a row with no product selected."""
    product_id: int | None
    quantity: int
    unit_price: Decimal
    discount_pct: Decimal = ZERO
    points: int = 0


@dataclass(frozen=True)
class LineResult:
    product_id: int | None
    quantity: int
    unit_price: Decimal
    discount_pct: Decimal
    effective_unit: Decimal
    line_total: Decimal
    points: int = 0

    @property
    def counted(self) -> bool:
        return self.product_id is not None and self.quantity > 0


def compute_line(line: LineInput) -> LineResult:
    """effective_unit = unit * (1 - pct/100); line_total = effective_unit * qty."""
    unit_price = to_decimal(line.unit_price)
    discount_pct = clamp_percent(line.discount_pct)
    effective_unit = unit_price * (1 - discount_pct / HUNDRED)
    return LineResult(
        product_id=line.product_id,
        quantity=line.quantity,
        unit_price=unit_price,
        discount_pct=discount_pct,
        effective_unit=effective_unit,
        line_total=effective_unit * line.quantity,
        points=line.points or 0,
    )


def redeemable_points(requested, balance: int, gross_total: Decimal) -> int:
    """clamp(requested, 0, min(balance, floor(gross_total)))."""
    try:
        wanted = floor_int(to_decimal(requested))
    except ValueError:
        wanted = 0
    cap = min(max(balance or 0, 0), max(floor_int(gross_total), 0))
    return max(0, min(wanted, cap))


def flat_earned_points(total: Decimal, divisor: int = DEFAULT_EARN_DIVISOR) -> int:
    """floor(total / divisor); never negative."""
    if total <= ZERO:
        return 0
    return floor_int(total / Decimal(divisor))


def earned_points(lines: Iterable[LineResult], total: Decimal, divisor: int = DEFAULT_EARN_DIVISOR) -> int:
    """
    Sum of per-product points * quantity. When no counted line carries an
    explicit points rate, fall back to the flat floor(total / divisor) rule.
    """
    counted = [line for line in lines if line.counted]
    if any(line.points > 0 for line in counted):
        return sum(line.points * line.quantity for line in counted)
    return flat_earned_points(total, divisor)


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    discount_pct: Decimal
    discount_amount: Decimal
    tax_pct: Decimal
    tax_base: Decimal
    tax_amount: Decimal
    gross_total: Decimal
    usable_points: int
    total: Decimal
    earned_points: int
    lines: Sequence[LineResult] = field(default_factory=tuple)


def compute_totals(
    lines: Sequence[LineResult],
    *,
    discount_pct=0,
    tax_pct=0,
    redeem_points=0,
    loyalty_points: int = 0,
    earn_divisor: int = DEFAULT_EARN_DIVISOR,
) -> InvoiceTotals:
    """
    subtotal -> invoice discount -> tax -> loyalty redemption -> total.

    Rows without a product or with quantity <= 0 are skipped, not rejected.
    total is floored at 0.
    """
    subtotal = sum((line.line_total for line in lines if line.counted), ZERO)

    discount = clamp_percent(discount_pct)
    tax = clamp_percent(tax_pct, upper=None)

    discount_amount = subtotal * discount / HUNDRED
    tax_base = max(ZERO, subtotal - discount_amount)
    tax_amount = tax_base * tax / HUNDRED
    gross_total = tax_base + tax_amount

    usable = redeemable_points(redeem_points, loyalty_points, gross_total)
    total = max(ZERO, gross_total - usable)

    return InvoiceTotals(
        subtotal=subtotal,
        discount_pct=discount,
        discount_amount=discount_amount,
        tax_pct=tax,
        tax_base=tax_base,
        tax_amount=tax_amount,
        gross_total=gross_total,
        usable_points=usable,
        total=total,
        earned_points=earned_points(lines, total, earn_divisor),
        lines=tuple(lines),
    )
