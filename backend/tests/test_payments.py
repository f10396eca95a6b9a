"""
Payment reconciliation tests.

Both cap policies for several "Points" rows are covered: PER_ROW (each row
capped on its own, rows can double count) and SHARED (one cap for all rows).
"""

from decimal import Decimal

import pytest

from counterpos.services.payment_service import (
    PAYMENT_STATUS_OVERPAID,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_UNPAID,
    POLICY_PER_ROW,
    POLICY_SHARED,
    PaymentError,
    PaymentInput,
    parse_payments,
    reconcile_payments,
)


def _pay(method, amount):
    return PaymentInput(method=method, amount=Decimal(str(amount)))


class TestParsePayments:

    def test_method_is_case_insensitive(self):
        parsed = parse_payments([{"method": "cash", "amount": "10"}, {"method": "POINTS", "amount": 5}])
        assert [p.method for p in parsed] == ["Cash", "Points"]

    def test_negative_amount_rejected(self):
        with pytest.raises(PaymentError):
            parse_payments([{"method": "Cash", "amount": -1}])

    def test_unknown_method_rejected(self):
        with pytest.raises(PaymentError) as exc:
            parse_payments([{"method": "Cheque", "amount": 1}])
        assert exc.value.details == {"method": "Cheque"}

    def test_missing_payments_is_empty(self):
        assert parse_payments(None) == []


class TestReconcile:

    def test_exact_payment(self):
        summary = reconcile_payments([_pay("Cash", "64.50")], total=Decimal("64.50"), gross_total=Decimal("64.50"))
        assert summary.balance == Decimal("0")
        assert summary.change == Decimal("0")
        assert summary.payment_status == PAYMENT_STATUS_PAID

    def test_split_partial_payment_leaves_balance(self):
        summary = reconcile_payments(
            [_pay("Cash", "20"), _pay("Card", "15.25")],
            total=Decimal("50"),
            gross_total=Decimal("50"),
        )
        assert summary.total_payments == Decimal("35.25")
        assert summary.balance == Decimal("14.75")
        assert summary.change == Decimal("0")
        assert summary.payment_status == PAYMENT_STATUS_PARTIAL

    def test_overpayment_becomes_change(self):
        summary = reconcile_payments([_pay("Cash", "100")], total=Decimal("64.50"), gross_total=Decimal("64.50"))
        assert summary.balance == Decimal("0")
        assert summary.change == Decimal("35.50")
        assert summary.payment_status == PAYMENT_STATUS_OVERPAID

    def test_no_payments_is_unpaid(self):
        summary = reconcile_payments([], total=Decimal("10"), gross_total=Decimal("10"))
        assert summary.balance == Decimal("10")
        assert summary.payment_status == PAYMENT_STATUS_UNPAID

    def test_points_row_capped_by_balance(self):
        summary = reconcile_payments(
            [_pay("Points", "40")],
            total=Decimal("50"),
            gross_total=Decimal("50"),
            loyalty_points=25,
        )
        assert summary.points_used == 25
        assert summary.payments[0].amount == Decimal("25")

    def test_points_row_capped_by_gross_total(self):
        summary = reconcile_payments(
            [_pay("Points", "40")],
            total=Decimal("12.99"),
            gross_total=Decimal("12.99"),
            loyalty_points=100,
        )
        assert summary.points_used == 12

    def test_fractional_points_are_floored(self):
        summary = reconcile_payments(
            [_pay("Points", "7.9")],
            total=Decimal("50"),
            gross_total=Decimal("50"),
            loyalty_points=100,
        )
        assert summary.points_used == 7


class TestPointsCapPolicy:
    """Two Points rows of 20 each, customer holds 30, gross total $50."""

    ROWS = [_pay("Points", "20"), _pay("Points", "20")]

    def test_per_row_caps_each_row_independently(self):
        summary = reconcile_payments(
            self.ROWS,
            total=Decimal("50"),
            gross_total=Decimal("50"),
            loyalty_points=30,
            policy=POLICY_PER_ROW,
        )
        # Each row fits under the 30 cap on its own, so 40 points are counted
        assert summary.points_used == 40
        assert summary.total_payments == Decimal("40")

    def test_shared_cap_across_rows(self):
        summary = reconcile_payments(
            self.ROWS,
            total=Decimal("50"),
            gross_total=Decimal("50"),
            loyalty_points=30,
            policy=POLICY_SHARED,
        )
        assert [p.amount for p in summary.payments] == [Decimal("20"), Decimal("10")]
        assert summary.points_used == 30
        assert summary.balance == Decimal("20")

    def test_unknown_policy_rejected(self):
        with pytest.raises(PaymentError):
            reconcile_payments(self.ROWS, total=Decimal("1"), gross_total=Decimal("1"), policy="GREEDY")
