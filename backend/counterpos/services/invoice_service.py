# Overview: Invoice preview and commit transaction (stock, customer balance, invoice insert).

"""
Invoice Service - cart preview and the invoice commit transaction

WHY: Committing an invoice touches three entities at once: product stock,
the customer's spend/loyalty balance, and the invoice document itself.
They have to agree with each other.

COMMIT MODES (INVOICE_COMMIT_MODE):
- ATOMIC (default): one transaction. Stock is reserved with a conditional
  decrement (UPDATE ... WHERE current_stock >= :qty). Redeemed points are
  clamped to the loyalty balance and taken with a conditional update
  (WHERE loyalty_points >= :redeemed). Any failure rolls the whole invoice
  back and surfaces a machine-readable error kind.
- LEGACY: per-entity read-modify-write, each step committed on its own.
  Concurrent sales of the last unit both succeed and drive stock negative;
  a failing step leaves earlier steps applied. Earned points use the flat
  floor(total / 10) rule only.

Submitted totals are trusted and stored as-is; preview and commit share the
pure arithmetic in invoice_math.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import Sequence

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product, Customer, Invoice, InvoiceLine, InvoicePayment, User, INVOICE_STATUSES
from ..money_utils import ZERO, to_decimal, quantize_money, money_str
from counterpos.time_utils import utcnow, parse_iso_datetime
from .concurrency import conditional_decrement, run_with_retry
from .invoice_math import (
    LineInput,
    clamp_quantity,
    compute_line,
    compute_totals,
    earned_points,
    flat_earned_points,
    redeemable_points,
)
from .payment_service import (
    PaymentError,
    PaymentInput,
    POLICY_PER_ROW,
    parse_payments,
    reconcile_payments,
)
from .pricing_service import resolve_unit_price


COMMIT_MODE_ATOMIC = "ATOMIC"
COMMIT_MODE_LEGACY = "LEGACY"
COMMIT_MODES = (COMMIT_MODE_ATOMIC, COMMIT_MODE_LEGACY)

LOYALTY_DEBIT_ATTEMPTS = 3


# =============================================================================
# ERRORS
# =============================================================================

class InvoiceError(Exception):
    """Raised for invoice operation errors."""
    kind = "invoice-error"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "kind": self.kind, "details": self.details}


class InvoiceValidationError(InvoiceError):
    kind = "validation"
    http_status = 400


class InvoiceNotFoundError(InvoiceError):
    kind = "invoice-not-found"
    http_status = 404


class ProductNotFoundError(InvoiceError):
    kind = "product-not-found"
    http_status = 404


class CustomerNotFoundError(InvoiceError):
    kind = "customer-not-found"
    http_status = 404


class InsufficientStockError(InvoiceError):
    kind = "insufficient-stock"
    http_status = 409


class InsufficientPointsError(InvoiceError):
    kind = "insufficient-points"
    http_status = 409


class DuplicateInvoiceNumberError(InvoiceError):
    kind = "duplicate-invoice-number"
    http_status = 409


# =============================================================================
# PAYLOAD PARSING
# =============================================================================

@dataclass(frozen=True)
class CommitItem:
    product_id: int
    quantity: int
    unit_price: Decimal
    discount_pct: Decimal = ZERO
    product_name: str | None = None
    cost_price: Decimal | None = None
    line_total: Decimal | None = None
    points: int | None = None


@dataclass(frozen=True)
class InvoiceDraft:
    items: Sequence[CommitItem]
    subtotal: Decimal
    total: Decimal
    tax_rate: Decimal = ZERO
    tax_amount: Decimal = ZERO
    discount_amount: Decimal = ZERO
    points_redeemed: int = 0
    payments: Sequence[PaymentInput] = field(default_factory=tuple)
    customer_id: int | None = None
    customer_name: str | None = None
    invoice_number: str | None = None
    status: str = "Completed"

    @property
    def gross_total(self) -> Decimal:
        return max(ZERO, self.subtotal - self.discount_amount) + self.tax_amount


def _require_int(value, field_name: str, *, minimum: int | None = None) -> int:
    if isinstance(value, bool):
        raise InvoiceValidationError(f"{field_name} must be an integer")
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        value = int(value.strip())
    if not isinstance(value, int):
        raise InvoiceValidationError(f"{field_name} must be an integer")
    if minimum is not None and value < minimum:
        raise InvoiceValidationError(f"{field_name} must be >= {minimum}")
    return value


def _money(value, field_name: str, *, required: bool = False, default=ZERO) -> Decimal | None:
    if required and value in (None, ""):
        raise InvoiceValidationError(f"{field_name} is required")
    try:
        amount = to_decimal(value, default=default)
    except ValueError:
        raise InvoiceValidationError(f"{field_name} must be a number")
    if amount is not None and amount < ZERO:
        raise InvoiceValidationError(f"{field_name} must be >= 0")
    return amount


def _parse_item(index: int, row) -> CommitItem:
    if not isinstance(row, dict):
        raise InvoiceValidationError(f"items[{index}] must be an object")
    prefix = f"items[{index}]"

    if row.get("productId") is None:
        raise InvoiceValidationError(f"{prefix}.productId is required")
    if row.get("quantity") is None:
        raise InvoiceValidationError(f"{prefix}.quantity is required")

    points = row.get("points")
    return CommitItem(
        product_id=_require_int(row.get("productId"), f"{prefix}.productId", minimum=1),
        quantity=_require_int(row.get("quantity"), f"{prefix}.quantity", minimum=1),
        unit_price=_money(row.get("price"), f"{prefix}.price", required=True),
        discount_pct=_money(row.get("discountPct"), f"{prefix}.discountPct"),
        product_name=(row.get("productName") or None),
        cost_price=_money(row.get("costPrice"), f"{prefix}.costPrice", default=None),
        line_total=_money(row.get("lineTotal"), f"{prefix}.lineTotal", default=None),
        points=_require_int(points, f"{prefix}.points", minimum=0) if points is not None else None,
    )


def parse_invoice_payload(payload) -> InvoiceDraft:
    """
    Validate the submitted invoice shape. Nothing is mutated here; every
    validation failure is raised before the commit touches the database.
    """
    if not isinstance(payload, dict):
        raise InvoiceValidationError("Invalid JSON payload")

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise InvoiceValidationError("items must be a non-empty list")

    status = payload.get("status") or "Completed"
    if status not in INVOICE_STATUSES:
        raise InvoiceValidationError(f"status must be one of {list(INVOICE_STATUSES)}")

    customer_id = payload.get("customerId")
    if customer_id is not None:
        customer_id = _require_int(customer_id, "customerId", minimum=1)

    invoice_number = payload.get("invoiceNumber")
    if invoice_number is not None and not isinstance(invoice_number, str):
        raise InvoiceValidationError("invoiceNumber must be a string")

    points_redeemed = payload.get("pointsRedeemed") or 0
    points_redeemed = _require_int(points_redeemed, "pointsRedeemed", minimum=0)

    try:
        payments = parse_payments(payload.get("payments"))
    except PaymentError as e:
        raise InvoiceValidationError(str(e), details=e.details)

    return InvoiceDraft(
        items=tuple(_parse_item(i, row) for i, row in enumerate(items)),
        subtotal=_money(payload.get("subtotal"), "subtotal", required=True),
        total=_money(payload.get("total"), "total", required=True),
        tax_rate=_money(payload.get("taxRate"), "taxRate"),
        tax_amount=_money(payload.get("taxAmount"), "taxAmount"),
        discount_amount=_money(payload.get("discountAmount"), "discountAmount"),
        points_redeemed=points_redeemed,
        payments=tuple(payments),
        customer_id=customer_id,
        customer_name=payload.get("customerName") or None,
        invoice_number=(invoice_number or "").strip() or None,
        status=status,
    )


# =============================================================================
# INVOICE NUMBERS
# =============================================================================

def next_invoice_number(prefix: str | None = None) -> str:
    """Timestamp-derived number with a random suffix, e.g. INV-20240131-154502-9F3A1C."""
    if prefix is None:
        prefix = current_app.config.get("INVOICE_NUMBER_PREFIX", "INV")
    stamp = utcnow().strftime("%Y%m%d-%H%M%S")
    return f"{prefix}-{stamp}-{secrets.token_hex(3).upper()}"


def _resolve_invoice_number(draft: InvoiceDraft) -> str:
    if draft.invoice_number:
        exists = db.session.query(Invoice.id).filter_by(invoice_number=draft.invoice_number).first()
        if exists:
            raise DuplicateInvoiceNumberError(
                f"Invoice number {draft.invoice_number} already exists",
                details={"invoiceNumber": draft.invoice_number},
            )
        return draft.invoice_number
    return next_invoice_number()


# =============================================================================
# COMMIT
# =============================================================================

def _commit_mode() -> str:
    mode = (current_app.config.get("INVOICE_COMMIT_MODE") or COMMIT_MODE_ATOMIC).upper()
    if mode not in COMMIT_MODES:
        raise ValueError(f"Unknown INVOICE_COMMIT_MODE: {mode}")
    return mode


def _quantities_by_product(items: Sequence[CommitItem]) -> dict[int, int]:
    totals: dict[int, int] = {}
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    return totals


def _line_rows(draft: InvoiceDraft, products: dict[int, Product]) -> list[InvoiceLine]:
    """Freeze unit price, cost price and points rate onto each line."""
    rows = []
    for position, item in enumerate(draft.items, start=1):
        product = products[item.product_id]
        line_total = item.line_total
        if line_total is None:
            line_total = compute_line(LineInput(
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                discount_pct=item.discount_pct,
            )).line_total
        rows.append(InvoiceLine(
            position=position,
            product_id=item.product_id,
            product_name=item.product_name or product.name,
            unit_price=quantize_money(item.unit_price),
            cost_price=quantize_money(to_decimal(
                item.cost_price if item.cost_price is not None else product.cost_price
            )),
            quantity=item.quantity,
            discount_pct=quantize_money(item.discount_pct),
            line_total=quantize_money(line_total),
            points=item.points if item.points is not None else (product.points or 0),
        ))
    return rows


def _build_invoice(
    draft: InvoiceDraft,
    *,
    number: str,
    staff: User,
    customer: Customer | None,
    lines: list[InvoiceLine],
    summary,
    points_redeemed: int,
    points_earned: int,
) -> Invoice:
    invoice = Invoice(
        invoice_number=number,
        customer_id=customer.id if customer else None,
        customer_name=(customer.name if customer else draft.customer_name),
        staff_id=staff.id,
        staff_name=staff.full_name,
        subtotal=quantize_money(draft.subtotal),
        tax_rate=quantize_money(draft.tax_rate),
        tax_amount=quantize_money(draft.tax_amount),
        discount_amount=quantize_money(draft.discount_amount),
        total=quantize_money(draft.total),
        points_redeemed=points_redeemed,
        points_earned=points_earned,
        payment_status=summary.payment_status,
        total_paid=quantize_money(summary.total_payments),
        balance_due=quantize_money(summary.balance),
        change_due=quantize_money(summary.change),
        status=draft.status,
        created_at=utcnow(),
    )
    invoice.lines = lines
    invoice.payments = [
        InvoicePayment(position=i, method=p.method, amount=quantize_money(p.amount))
        for i, p in enumerate(summary.payments, start=1)
    ]
    return invoice


def _load_customer(customer_id: int | None) -> Customer | None:
    if customer_id is None:
        return None
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise CustomerNotFoundError("Customer not found", details={"customerId": customer_id})
    return customer


def _commit_atomic_locked(draft: InvoiceDraft, staff: User) -> Invoice:
    number = _resolve_invoice_number(draft)
    customer = _load_customer(draft.customer_id)

    wanted = _quantities_by_product(draft.items)
    products = {
        p.id: p for p in db.session.query(Product).filter(Product.id.in_(list(wanted))).all()
    }
    missing = sorted(pid for pid in wanted if pid not in products)
    if missing:
        raise ProductNotFoundError("Product not found", details={"productIds": missing})

    insufficient = [
        {"productId": pid, "requestedQuantity": qty, "currentStock": products[pid].current_stock}
        for pid, qty in wanted.items()
        if products[pid].current_stock < qty
    ]
    if insufficient:
        raise InsufficientStockError("Insufficient stock to commit invoice", details={"items": insufficient})

    # Reserve stock; a concurrent commit that got there first makes rowcount 0
    for pid, qty in wanted.items():
        if not conditional_decrement(Product, Product.current_stock, row_id=pid, amount=qty):
            db.session.expire(products[pid])
            raise InsufficientStockError(
                "Insufficient stock to commit invoice",
                details={"items": [{
                    "productId": pid,
                    "requestedQuantity": qty,
                    "currentStock": products[pid].current_stock,
                }]},
            )
        db.session.expire(products[pid], ["current_stock"])

    loyalty = customer.loyalty_points if customer else 0
    summary = reconcile_payments(
        draft.payments,
        total=draft.total,
        gross_total=draft.gross_total,
        loyalty_points=loyalty,
        policy=current_app.config.get("POINTS_CAP_POLICY", POLICY_PER_ROW),
    )

    lines = _line_rows(draft, products)
    points_redeemed = 0
    points_earned = 0

    if customer is not None:
        divisor = current_app.config.get("POINTS_EARN_DIVISOR", 10)
        results = [
            compute_line(LineInput(
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                discount_pct=line.discount_pct,
                points=line.points,
            ))
            for line in lines
        ]
        points_earned = earned_points(results, draft.total, divisor)
        requested = (
            redeemable_points(draft.points_redeemed, loyalty, draft.gross_total)
            + summary.points_used
        )
        points_redeemed = _debit_loyalty(
            customer, requested, balance=loyalty, credit=points_earned, spent=draft.total,
        )

    invoice = _build_invoice(
        draft,
        number=number,
        staff=staff,
        customer=customer,
        lines=lines,
        summary=summary,
        points_redeemed=points_redeemed,
        points_earned=points_earned,
    )
    db.session.add(invoice)
    db.session.flush()
    return invoice


def _debit_loyalty(customer: Customer, requested: int, *, balance: int, credit: int, spent: Decimal) -> int:
    """
    Take up to `requested` points from the customer, never more than the
    balance holds, and credit the earned points and spend in the same UPDATE.

    Returns the points actually taken. When a concurrent commit spends from
    the same balance first, the balance is re-read and the debit clamped again.
    """
    for _ in range(LOYALTY_DEBIT_ATTEMPTS):
        debit = min(requested, max(balance, 0))
        updated = conditional_decrement(
            Customer,
            Customer.loyalty_points,
            row_id=customer.id,
            amount=debit,
            credit=credit,
            extra_values={
                "total_spent": Customer.total_spent + quantize_money(spent),
                "last_visit": utcnow(),
            },
        )
        if updated:
            db.session.expire(customer, ["loyalty_points", "total_spent", "last_visit"])
            return debit
        balance = db.session.query(Customer.loyalty_points).filter(Customer.id == customer.id).scalar() or 0

    db.session.expire(customer)
    raise InsufficientPointsError(
        "Loyalty balance kept changing during commit",
        details={"customerId": customer.id, "pointsRequested": requested, "loyaltyPoints": balance},
    )


def _is_invoice_number_conflict(exc: IntegrityError) -> bool:
    message = str(exc.orig).lower()
    return "uq_invoices_number" in message or "invoices.invoice_number" in message


def _commit_atomic(draft: InvoiceDraft, staff: User) -> Invoice:
    def _op():
        try:
            invoice = _commit_atomic_locked(draft, staff)
            db.session.commit()
        except InvoiceError:
            db.session.rollback()
            raise
        except IntegrityError as exc:
            db.session.rollback()
            if not _is_invoice_number_conflict(exc):
                raise
            raise DuplicateInvoiceNumberError(
                "Invoice number already exists",
                details={"invoiceNumber": draft.invoice_number},
            )
        return invoice

    invoice = run_with_retry(_op)
    current_app.logger.info(
        "Committed invoice %s total=%s staff_id=%s",
        invoice.invoice_number, money_str(invoice.total), invoice.staff_id,
    )
    return invoice


def _commit_legacy(draft: InvoiceDraft, staff: User) -> Invoice:
    """
    Sequential read-modify-write. Each step commits on its own, so a failure
    part-way leaves the earlier steps applied.
    """
    products: dict[int, Product] = {}
    for item in draft.items:
        product = db.session.get(Product, item.product_id)
        if not product:
            raise ProductNotFoundError("Product not found", details={"productIds": [item.product_id]})
        product.current_stock = product.current_stock - item.quantity
        db.session.commit()
        if product.current_stock < 0:
            current_app.logger.warning(
                "Legacy commit drove product %s stock negative (%s)",
                product.id, product.current_stock,
            )
        products[product.id] = product

    customer = _load_customer(draft.customer_id)
    summary = reconcile_payments(
        draft.payments,
        total=draft.total,
        gross_total=draft.gross_total,
        loyalty_points=customer.loyalty_points if customer else 0,
        policy=current_app.config.get("POINTS_CAP_POLICY", POLICY_PER_ROW),
    )

    points_redeemed = 0
    points_earned = 0
    if customer is not None:
        points_earned = flat_earned_points(draft.total, current_app.config.get("POINTS_EARN_DIVISOR", 10))
        balance = max(customer.loyalty_points, 0)
        points_redeemed = min(
            redeemable_points(draft.points_redeemed, balance, draft.gross_total) + summary.points_used,
            balance,
        )
        customer.total_spent = to_decimal(customer.total_spent) + quantize_money(draft.total)
        customer.loyalty_points = balance + points_earned - points_redeemed
        customer.last_visit = utcnow()
        db.session.commit()

    number = _resolve_invoice_number(draft)
    invoice = _build_invoice(
        draft,
        number=number,
        staff=staff,
        customer=customer,
        lines=_line_rows(draft, products),
        summary=summary,
        points_redeemed=points_redeemed,
        points_earned=points_earned,
    )
    db.session.add(invoice)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if not _is_invoice_number_conflict(exc):
            raise
        raise DuplicateInvoiceNumberError("Invoice number already exists", details={"invoiceNumber": number})

    current_app.logger.info(
        "Committed invoice %s (legacy) total=%s staff_id=%s",
        invoice.invoice_number, money_str(invoice.total), invoice.staff_id,
    )
    return invoice


def commit_invoice(payload, *, staff: User) -> Invoice:
    """
    Validate the payload and commit it in the configured mode.

    Returns the persisted Invoice. Raises an InvoiceError subclass whose
    `kind` tells the caller what went wrong.
    """
    draft = parse_invoice_payload(payload)
    if _commit_mode() == COMMIT_MODE_LEGACY:
        return _commit_legacy(draft, staff)
    return _commit_atomic(draft, staff)


# =============================================================================
# PREVIEW
# =============================================================================

@dataclass(frozen=True)
class CartRow:
    product_id: int | None
    quantity: int = 1
    unit_price: Decimal | None = None
    discount_pct: Decimal = ZERO


@dataclass(frozen=True)
class CartState:
    """Explicit client cart state; the preview reads nothing else."""
    rows: Sequence[CartRow] = field(default_factory=tuple)
    customer_id: int | None = None
    discount_pct: Decimal | None = None
    tax_pct: Decimal = ZERO
    redeem_points: int = 0
    payments: Sequence[PaymentInput] = field(default_factory=tuple)


def parse_cart_state(payload) -> CartState:
    if not isinstance(payload, dict):
        raise InvoiceValidationError("Invalid JSON payload")

    raw_rows = payload.get("items") or []
    if not isinstance(raw_rows, list):
        raise InvoiceValidationError("items must be a list")

    rows = []
    for index, row in enumerate(raw_rows):
        if not isinstance(row, dict):
            raise InvoiceValidationError(f"items[{index}] must be an object")
        product_id = row.get("productId")
        if product_id is not None:
            product_id = _require_int(product_id, f"items[{index}].productId", minimum=1)
        try:
            price = to_decimal(row.get("price"), default=None)
            discount = to_decimal(row.get("discountPct"))
        except ValueError:
            raise InvoiceValidationError(f"items[{index}] has a non-numeric price or discount")
        rows.append(CartRow(
            product_id=product_id,
            quantity=row.get("quantity", 1),
            unit_price=price,
            discount_pct=discount,
        ))

    customer_id = payload.get("customerId")
    if customer_id is not None:
        customer_id = _require_int(customer_id, "customerId", minimum=1)

    try:
        discount_pct = to_decimal(payload.get("discountPct"), default=None)
        tax_pct = to_decimal(payload.get("taxPct"))
        redeem = to_decimal(payload.get("redeemPoints"))
    except ValueError:
        raise InvoiceValidationError("discountPct, taxPct and redeemPoints must be numbers")

    try:
        payments = parse_payments(payload.get("payments"))
    except PaymentError as e:
        raise InvoiceValidationError(str(e), details=e.details)

    return CartState(
        rows=tuple(rows),
        customer_id=customer_id,
        discount_pct=discount_pct,
        tax_pct=tax_pct,
        redeem_points=redeem,
        payments=tuple(payments),
    )


def preview_invoice(state: CartState) -> dict:
    """
    Price, total and reconcile a cart without touching any data.

    Same cart state in, same figures out.
    """
    customer = _load_customer(state.customer_id)

    wanted_ids = {row.product_id for row in state.rows if row.product_id is not None}
    products = {}
    if wanted_ids:
        products = {
            p.id: p for p in db.session.query(Product).filter(Product.id.in_(list(wanted_ids))).all()
        }
    missing = sorted(pid for pid in wanted_ids if pid not in products)
    if missing:
        raise ProductNotFoundError("Product not found", details={"productIds": missing})

    inputs = []
    sources = []
    for row in state.rows:
        if row.product_id is None:
            inputs.append(LineInput(product_id=None, quantity=0, unit_price=ZERO))
            sources.append(None)
            continue
        product = products[row.product_id]
        if row.unit_price is not None:
            price, source = row.unit_price, "manual"
        else:
            resolved = resolve_unit_price(product, customer)
            price, source = resolved.price, resolved.source
        inputs.append(LineInput(
            product_id=product.id,
            quantity=clamp_quantity(row.quantity, product.current_stock),
            unit_price=price,
            discount_pct=row.discount_pct,
            points=product.points or 0,
        ))
        sources.append(source)

    discount_pct = state.discount_pct
    if discount_pct is None:
        defaults = current_app.config.get("CUSTOMER_TYPE_DEFAULT_DISCOUNTS") or {}
        discount_pct = defaults.get(customer.type if customer else "Retail", 0)

    loyalty = customer.loyalty_points if customer else 0
    lines = [compute_line(line) for line in inputs]
    totals = compute_totals(
        lines,
        discount_pct=discount_pct,
        tax_pct=state.tax_pct,
        redeem_points=state.redeem_points,
        loyalty_points=loyalty,
        earn_divisor=current_app.config.get("POINTS_EARN_DIVISOR", 10),
    )
    summary = reconcile_payments(
        state.payments,
        total=totals.total,
        gross_total=totals.gross_total,
        loyalty_points=loyalty,
        policy=current_app.config.get("POINTS_CAP_POLICY", POLICY_PER_ROW),
    )

    return {
        "customerId": customer.id if customer else None,
        "customerType": customer.type if customer else "Retail",
        "items": [
            {
                "productId": line.product_id,
                "quantity": line.quantity,
                "price": money_str(line.unit_price),
                "priceSource": source,
                "discountPct": money_str(line.discount_pct),
                "effectiveUnit": money_str(line.effective_unit),
                "lineTotal": money_str(line.line_total),
                "points": line.points,
                "counted": line.counted,
            }
            for line, source in zip(lines, sources)
        ],
        "subtotal": money_str(totals.subtotal),
        "discountPct": money_str(totals.discount_pct),
        "discountAmount": money_str(totals.discount_amount),
        "taxPct": money_str(totals.tax_pct),
        "taxBase": money_str(totals.tax_base),
        "taxAmount": money_str(totals.tax_amount),
        "grossTotal": money_str(totals.gross_total),
        "usablePoints": totals.usable_points,
        "total": money_str(totals.total),
        "earnedPoints": totals.earned_points,
        "payments": [{"method": p.method, "amount": money_str(p.amount)} for p in summary.payments],
        "totalPayments": money_str(summary.total_payments),
        "balance": money_str(summary.balance),
        "change": money_str(summary.change),
        "pointsUsed": summary.points_used,
        "paymentStatus": summary.payment_status,
    }


# =============================================================================
# READ SIDE
# =============================================================================

def _parse_window_bound(value: str | None, field_name: str, *, end: bool):
    if not value:
        return None, False
    try:
        parsed = parse_iso_datetime(value)
    except ValueError:
        raise InvoiceValidationError(f"{field_name} must be an ISO-8601 date or datetime")
    # Date-only end bound covers the whole day
    date_only = end and len(value.strip()) == 10
    if date_only:
        parsed = parsed + timedelta(days=1)
    return parsed, date_only


def list_invoices(
    *,
    start_date: str | None = None,
    end_date: str | None = None,
    staff_id: int | None = None,
    customer_id: int | None = None,
) -> list[Invoice]:
    """Invoices newest first, filtered by an inclusive createdAt window."""
    query = db.session.query(Invoice)

    start, _ = _parse_window_bound(start_date, "startDate", end=False)
    end, end_exclusive = _parse_window_bound(end_date, "endDate", end=True)
    if start is not None:
        query = query.filter(Invoice.created_at >= start)
    if end is not None:
        query = query.filter(Invoice.created_at < end if end_exclusive else Invoice.created_at <= end)
    if staff_id is not None:
        query = query.filter(Invoice.staff_id == staff_id)
    if customer_id is not None:
        query = query.filter(Invoice.customer_id == customer_id)

    return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()


def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        raise InvoiceNotFoundError("Invoice not found", details={"invoiceId": invoice_id})
    return invoice


def get_invoice_by_number(invoice_number: str) -> Invoice | None:
    return db.session.query(Invoice).filter_by(invoice_number=invoice_number).first()
