# Overview: Manual stock adjustments and the append-only adjustment ledger.

"""
Inventory Adjustment Ledger

Stock model:
- Product.current_stock is a stored integer. Only two writers exist: the
  invoice commit transaction and adjust_stock() below.
- Stock may go negative (Stock Out beyond stock, legacy commits). Readers
  treat current_stock <= 0 as out of stock.

Adjustment types:
- Stock In:  new = previous + quantity
- Stock Out: new = previous - quantity (no floor at zero)
- Adjust:    caller supplies new; quantity = abs(new - previous)

Audit:
- Every adjustment appends exactly one InventoryAdjustment row in the same DB
  transaction as the stock write.
- Ledger rows are never updated or deleted; corrections are new, opposite
  adjustments.
"""

from __future__ import annotations

import re

from flask import current_app

from ..extensions import db
from ..models import Product, InventoryAdjustment, User, ADJUSTMENT_TYPES
from counterpos.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry


TYPE_STOCK_IN = "Stock In"
TYPE_STOCK_OUT = "Stock Out"
TYPE_ADJUST = "Adjust"

STOCK_STATUS_OUT = "out-of-stock"
STOCK_STATUS_LOW = "low-stock"
STOCK_STATUS_OK = "in-stock"


class AdjustmentError(Exception):
    """Raised for inventory adjustment errors."""
    kind = "adjustment-error"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "kind": self.kind, "details": self.details}


class AdjustmentNotFoundError(AdjustmentError):
    kind = "not-found"
    http_status = 404


def normalize_adjustment_type(value) -> str:
    if not isinstance(value, str):
        raise AdjustmentError(f"type must be one of {list(ADJUSTMENT_TYPES)}")
    wanted = value.strip().lower()
    for candidate in ADJUSTMENT_TYPES:
        if candidate.lower() == wanted:
            return candidate
    raise AdjustmentError(f"type must be one of {list(ADJUSTMENT_TYPES)}", details={"type": value})


def as_int(value, field_name: str) -> int:
    if isinstance(value, bool) or value is None:
        raise AdjustmentError(f"{field_name} must be an integer")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped.lstrip("-").isdigit():
            raise AdjustmentError(f"{field_name} must be an integer")
        return int(stripped)
    if not isinstance(value, int):
        raise AdjustmentError(f"{field_name} must be an integer")
    return value


def stock_status(current_stock: int, min_stock: int) -> str:
    if current_stock <= 0:
        return STOCK_STATUS_OUT
    if current_stock < min_stock:
        return STOCK_STATUS_LOW
    return STOCK_STATUS_OK


def adjust_stock(
    *,
    product_id: int,
    adjustment_type: str,
    actor: User,
    quantity=None,
    new_stock=None,
    reason: str | None = None,
) -> InventoryAdjustment:
    """
    Apply one manual stock change and append its ledger row.

    Stock In / Stock Out require a positive quantity; Adjust requires
    new_stock (>= 0). Nothing is clamped: a Stock Out larger than the current
    stock produces a negative stock value.
    """
    adj_type = normalize_adjustment_type(adjustment_type)

    if adj_type == TYPE_ADJUST:
        if new_stock is None:
            raise AdjustmentError("newStock is required for Adjust")
        target = as_int(new_stock, "newStock")
        if target < 0:
            raise AdjustmentError("newStock must be >= 0")
        delta = None
    else:
        if quantity is None:
            raise AdjustmentError(f"quantity is required for {adj_type}")
        magnitude = as_int(quantity, "quantity")
        if magnitude <= 0:
            raise AdjustmentError("quantity must be > 0")
        delta = magnitude if adj_type == TYPE_STOCK_IN else -magnitude

    if reason is not None:
        reason = str(reason).strip() or None
        if reason and len(reason) > 500:
            raise AdjustmentError("reason exceeds max length 500")

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise AdjustmentNotFoundError("Product not found", details={"productId": product_id})

        if delta is None:
            previous = product.current_stock
            product.current_stock = target
            db.session.flush()
            new_value = target
        else:
            # Relative write so the previous value is read under the write lock
            product.current_stock = Product.current_stock + delta
            db.session.flush()
            new_value = product.current_stock
            previous = new_value - delta

        entry = InventoryAdjustment(
            product_id=product.id,
            product_name=product.name,
            type=adj_type,
            quantity=abs(new_value - previous),
            previous_stock=previous,
            new_stock=new_value,
            reason=reason,
            adjusted_by=actor.id,
            adjusted_by_name=actor.full_name,
            created_at=utcnow(),
        )
        db.session.add(entry)
        db.session.commit()
        return entry

    try:
        entry = run_with_retry(_op)
    except AdjustmentError:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Inventory adjustment %s product_id=%s %s -> %s by user_id=%s",
        entry.type, entry.product_id, entry.previous_stock, entry.new_stock, entry.adjusted_by,
    )
    if entry.new_stock < 0:
        current_app.logger.warning("Product %s stock is negative (%s)", entry.product_id, entry.new_stock)
    return entry


def list_adjustments(*, product_id: int | None = None, limit: int | None = None) -> list[InventoryAdjustment]:
    """Ledger rows, newest first."""
    q = db.session.query(InventoryAdjustment)
    if product_id is not None:
        q = q.filter(InventoryAdjustment.product_id == product_id)
    q = q.order_by(InventoryAdjustment.created_at.desc(), InventoryAdjustment.id.desc())
    if limit:
        q = q.limit(limit)
    return q.all()


def get_adjustment(adjustment_id: int) -> InventoryAdjustment:
    entry = db.session.get(InventoryAdjustment, adjustment_id)
    if entry is None:
        raise AdjustmentNotFoundError("Adjustment not found", details={"adjustmentId": adjustment_id})
    return entry


def _invoice_reference_pattern(prefix: str) -> re.Pattern:
    return re.compile(rf"\b{re.escape(prefix)}-[A-Za-z0-9]+(?:-[A-Za-z0-9]+)*")


def find_invoice_references(text: str | None, prefix: str | None = None) -> list[str]:
    """Invoice numbers mentioned in free text, e.g. 'Damaged, see INV-20240131-101500-AB12CD'."""
    if not text:
        return []
    if prefix is None:
        prefix = current_app.config.get("INVOICE_NUMBER_PREFIX", "INV")
    return _invoice_reference_pattern(prefix).findall(text)


def adjustments_for_invoice(invoice_number: str) -> list[InventoryAdjustment]:
    """Adjustments whose reason references this exact invoice number."""
    candidates = (
        db.session.query(InventoryAdjustment)
        .filter(InventoryAdjustment.reason.contains(invoice_number))
        .order_by(InventoryAdjustment.created_at.desc(), InventoryAdjustment.id.desc())
        .all()
    )
    return [a for a in candidates if invoice_number in find_invoice_references(a.reason)]
