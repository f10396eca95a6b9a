"""
Invoice arithmetic tests.

Verifies:
- Line totals with tier prices and line discounts
- Discount -> tax -> redemption ordering of invoice totals
- Clamping of quantities, percentages and redeemed points
- Earned points (per-product rate vs flat rate)
"""

import math
from decimal import Decimal
from types import SimpleNamespace

import pytest

from counterpos.services.invoice_math import (
    LineInput,
    clamp_percent,
    clamp_quantity,
    compute_line,
    compute_totals,
    earned_points,
    flat_earned_points,
    redeemable_points,
)
from counterpos.services.pricing_service import resolve_tier_price


def _line(price, qty=1, pct=0, product_id=1, points=0):
    return compute_line(LineInput(
        product_id=product_id,
        quantity=qty,
        unit_price=Decimal(str(price)),
        discount_pct=Decimal(str(pct)),
        points=points,
    ))


# =============================================================================
# LINE ITEMS
# =============================================================================


class TestLineItems:

    def test_wholesale_customer_line_total(self):
        """Retail $10, wholesale $8, Wholesale customer, qty 3 -> $8 unit, $24 line."""
        product = SimpleNamespace(retail_price=Decimal("10"), wholesale_price=Decimal("8"), vip_price=None)
        price = resolve_tier_price(product, "Wholesale").price

        line = _line(price, qty=3)

        assert line.effective_unit == Decimal("8")
        assert line.line_total == Decimal("24")

    def test_line_discount_applies_to_unit_price(self):
        line = _line("20.00", qty=2, pct=25)
        assert line.effective_unit == Decimal("15")
        assert line.line_total == Decimal("30")

    def test_line_discount_is_clamped(self):
        assert _line("10", pct=150).line_total == Decimal("0")
        assert _line("10", pct=-20).line_total == Decimal("10")

    def test_clamp_quantity_to_stock(self):
        assert clamp_quantity(5, 3) == 3
        assert clamp_quantity(0, 10) == 1
        assert clamp_quantity(-4, 10) == 1

    def test_clamp_quantity_allows_one_when_out_of_stock(self):
        assert clamp_quantity(2, 0) == 1
        assert clamp_quantity(2, -3) == 1

    def test_clamp_quantity_garbage_becomes_one(self):
        assert clamp_quantity("abc", 10) == 1
        assert clamp_quantity(None) == 1

    def test_clamp_percent(self):
        assert clamp_percent(-5) == Decimal("0")
        assert clamp_percent(250) == Decimal("100")
        assert clamp_percent(250, upper=None) == Decimal("250")


# =============================================================================
# TOTALS
# =============================================================================


class TestTotals:

    def test_discount_tax_and_redemption(self):
        """Subtotal $100, 10% off, 5% tax, 30 points held, 50 requested -> $64.50."""
        totals = compute_totals(
            [_line("100.00")],
            discount_pct=10,
            tax_pct=5,
            redeem_points=50,
            loyalty_points=30,
        )

        assert totals.subtotal == Decimal("100")
        assert totals.discount_amount == Decimal("10")
        assert totals.tax_base == Decimal("90")
        assert totals.tax_amount == Decimal("4.50")
        assert totals.gross_total == Decimal("94.50")
        assert totals.usable_points == 30
        assert totals.total == Decimal("64.50")

    def test_rows_without_product_are_skipped(self):
        lines = [
            _line("12.50", qty=2),
            _line("99.00", product_id=None),
            _line("5.00", qty=0),
        ]
        totals = compute_totals(lines)
        assert totals.subtotal == Decimal("25")

    def test_full_discount_floors_total_at_zero(self):
        totals = compute_totals([_line("40")], discount_pct=100, tax_pct=8, redeem_points=10, loyalty_points=10)
        assert totals.gross_total == Decimal("0")
        assert totals.usable_points == 0
        assert totals.total == Decimal("0")

    def test_redemption_bounded_by_floor_of_gross_total(self):
        totals = compute_totals([_line("12.99")], redeem_points=500, loyalty_points=500)
        assert totals.usable_points == 12
        assert totals.total == Decimal("0.99")

    def test_redemption_bounded_by_balance(self):
        totals = compute_totals([_line("50")], redeem_points=40, loyalty_points=15)
        assert totals.usable_points == 15
        assert totals.total == Decimal("35")

    def test_negative_redeem_request_is_zero(self):
        assert redeemable_points(-10, 100, Decimal("50")) == 0

    @pytest.mark.parametrize("discount_pct", [-20, 0, 33.3, 100, 150])
    @pytest.mark.parametrize("tax_pct", [-5, 0, 7.25, 250])
    @pytest.mark.parametrize("redeem", [-10, 0, 7, 10 ** 6])
    @pytest.mark.parametrize("balance", [0, 25, 10 ** 4])
    def test_total_never_negative_and_redemption_bounded(self, discount_pct, tax_pct, redeem, balance):
        lines = [_line("12.99", qty=3), _line("0.37")]
        totals = compute_totals(lines, discount_pct=discount_pct, tax_pct=tax_pct,
                                redeem_points=redeem, loyalty_points=balance)

        cap = min(balance, math.floor(totals.gross_total))
        assert totals.total >= 0
        assert 0 <= totals.usable_points <= cap
        assert totals.total == max(Decimal("0"), totals.gross_total - totals.usable_points)
        if redeem >= max(balance, totals.gross_total):
            assert totals.usable_points == cap

    def test_same_inputs_same_totals(self):
        lines = [_line("19.99", qty=3, pct=5, points=2), _line("4.25", qty=7)]
        first = compute_totals(lines, discount_pct=7, tax_pct=8.25, redeem_points=3, loyalty_points=9)
        second = compute_totals(lines, discount_pct=7, tax_pct=8.25, redeem_points=3, loyalty_points=9)
        assert first == second


# =============================================================================
# EARNED POINTS
# =============================================================================


class TestEarnedPoints:

    def test_flat_rate_when_no_product_points(self):
        """No per-product rate, total $47 -> floor(47 / 10) = 4."""
        assert earned_points([_line("47")], Decimal("47")) == 4

    def test_per_product_rate_wins(self):
        lines = [_line("10", qty=2, points=3), _line("5", qty=1, points=0)]
        assert earned_points(lines, Decimal("25")) == 6

    def test_flat_rate_never_negative(self):
        assert flat_earned_points(Decimal("0")) == 0
        assert flat_earned_points(Decimal("9.99")) == 0

    def test_custom_divisor(self):
        assert flat_earned_points(Decimal("47"), divisor=5) == 9
