# Overview: Payment reconciliation for invoices; pure functions over declared payments.

"""
Payment Reconciliation

WHY: An invoice can be settled with several declared instruments (split
payment). Payments are recorded, not processed, so reconciliation only
derives paid / balance / change and caps loyalty point usage.

DESIGN PRINCIPLES:
- Partial payment is allowed: balance is informational, never blocking
- Over-payment becomes change
- "Points" redeems loyalty points 1:1 against currency and is capped at
  min(entered, floor(gross_total), customer balance)
- Cap policy for several "Points" rows is configurable:
    PER_ROW  each row gets its own cap (rows can double count)
    SHARED   all rows draw from a single cap
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence

from ..models import PAYMENT_METHODS
from ..money_utils import ZERO, to_decimal
from .invoice_math import floor_int


class PaymentError(Exception):
    """Raised for malformed payment rows."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


# =============================================================================
# METHODS / POLICIES (CONSTANTS)
# =============================================================================

METHOD_POINTS = "Points"

POLICY_PER_ROW = "PER_ROW"
POLICY_SHARED = "SHARED"
VALID_POINTS_POLICIES = (POLICY_PER_ROW, POLICY_SHARED)

PAYMENT_STATUS_UNPAID = "UNPAID"
PAYMENT_STATUS_PARTIAL = "PARTIAL"
PAYMENT_STATUS_PAID = "PAID"
PAYMENT_STATUS_OVERPAID = "OVERPAID"


@dataclass(frozen=True)
class PaymentInput:
    method: str
    amount: Decimal


@dataclass(frozen=True)
class PaymentSummary:
    payments: Sequence[PaymentInput]
    total_payments: Decimal
    balance: Decimal
    change: Decimal
    points_used: int
    payment_status: str


def normalize_method(method) -> str:
    """Case-insensitive match against PAYMENT_METHODS, returning canonical casing."""
    if not isinstance(method, str) or not method.strip():
        raise PaymentError("Payment method is required")
    wanted = method.strip().lower()
    for candidate in PAYMENT_METHODS:
        if candidate.lower() == wanted:
            return candidate
    raise PaymentError(
        f"Invalid payment method: {method}. Must be one of {list(PAYMENT_METHODS)}",
        details={"method": method},
    )


def parse_payments(rows: Iterable[dict] | None) -> list[PaymentInput]:
    """Turn raw {method, amount} dicts into PaymentInput rows; negative amounts are rejected."""
    if rows is None:
        return []
    if not isinstance(rows, (list, tuple)):
        raise PaymentError("payments must be a list")

    parsed: list[PaymentInput] = []
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            raise PaymentError(f"payments[{index}] must be an object")
        method = normalize_method(row.get("method"))
        try:
            amount = to_decimal(row.get("amount"))
        except ValueError:
            raise PaymentError(f"payments[{index}].amount must be a number")
        if amount < ZERO:
            raise PaymentError(f"payments[{index}].amount must be >= 0")
        parsed.append(PaymentInput(method=method, amount=amount))
    return parsed


def points_cap(gross_total: Decimal, loyalty_points: int) -> int:
    return max(0, min(floor_int(gross_total), loyalty_points or 0))


def cap_points_rows(
    payments: Sequence[PaymentInput],
    *,
    gross_total: Decimal,
    loyalty_points: int,
    policy: str = POLICY_PER_ROW,
) -> list[PaymentInput]:
    """
    Apply the redemption cap to every "Points" row.

    Points are whole units, so entered amounts are floored first.
    """
    if policy not in VALID_POINTS_POLICIES:
        raise PaymentError(f"Unknown points cap policy: {policy}")

    cap = points_cap(gross_total, loyalty_points)
    remaining = cap

    capped: list[PaymentInput] = []
    for payment in payments:
        if payment.method != METHOD_POINTS:
            capped.append(payment)
            continue

        entered = max(0, floor_int(payment.amount))
        if policy == POLICY_SHARED:
            used = min(entered, remaining)
            remaining -= used
        else:
            used = min(entered, cap)
        capped.append(PaymentInput(method=METHOD_POINTS, amount=Decimal(used)))
    return capped


def payment_status_for(total: Decimal, paid: Decimal) -> str:
    if paid == total:
        return PAYMENT_STATUS_PAID
    if paid > total:
        return PAYMENT_STATUS_OVERPAID
    if paid == ZERO:
        return PAYMENT_STATUS_UNPAID
    return PAYMENT_STATUS_PARTIAL


def reconcile_payments(
    payments: Sequence[PaymentInput],
    *,
    total: Decimal,
    gross_total: Decimal,
    loyalty_points: int = 0,
    policy: str = POLICY_PER_ROW,
) -> PaymentSummary:
    """
    totalPayments = sum(amount); balance = max(0, total - paid);
    change = max(0, paid - total).
    """
    capped = cap_points_rows(
        payments,
        gross_total=gross_total,
        loyalty_points=loyalty_points,
        policy=policy,
    )
    paid = sum((p.amount for p in capped), ZERO)
    points_used = sum(int(p.amount) for p in capped if p.method == METHOD_POINTS)

    return PaymentSummary(
        payments=tuple(capped),
        total_payments=paid,
        balance=max(ZERO, total - paid),
        change=max(ZERO, paid - total),
        points_used=points_used,
        payment_status=payment_status_for(total, paid),
    )
