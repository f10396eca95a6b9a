# backend/counterpos/services/products_service.py
"""
Products Service

Catalog CRUD. current_stock is set once on create; afterwards it moves only
through the invoice commit and the inventory adjustment ledger.
"""
from __future__ import annotations
from flask import current_app
from ..extensions import db
from ..models import Product, InvoiceLine, InventoryAdjustment
from ..validation import ConflictError
from .repository import Repository

PRODUCT_MUTABLE_FIELDS = {
    "name",
    "sku",
    "barcode",
    "category",
    "description",
    "retail_price",
    "wholesale_price",
    "vip_price",
    "cost_price",
    "min_stock",
    "points",
    "expiry_date",
}

products = Repository(Product, search_fields=("name", "sku", "barcode"))


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_unique(*, sku: str | None, barcode: str | None, exclude_id: int | None = None) -> None:
    if sku:
        q = db.session.query(Product.id).filter(Product.sku == sku)
        if exclude_id is not None:
            q = q.filter(Product.id != exclude_id)
        if q.first():
            raise ConflictError("SKU already exists.")
    if barcode:
        q = db.session.query(Product.id).filter(Product.barcode == barcode)
        if exclude_id is not None:
            q = q.filter(Product.id != exclude_id)
        if q.first():
            raise ConflictError("Barcode already exists.")


def list_products(search: str | None = None) -> list[Product]:
    return products.search(search)


def get_product(product_id: int) -> Product | None:
    return products.get(product_id)


def get_product_by_barcode(barcode: str) -> Product | None:
    return products.find_by(barcode=barcode)


def create_product(*, patch: dict) -> Product:
    """
    Create product using a validated patch dict.

    Raises:
        ConflictError: If SKU or barcode already exists
    """
    _ensure_unique(sku=patch.get("sku"), barcode=patch.get("barcode"))

    p = Product(current_stock=patch.get("current_stock") or 0)
    apply_product_patch(p, patch)
    db.session.add(p)
    db.session.commit()

    current_app.logger.info("Created product id=%s sku=%s", p.id, p.sku)
    return p


def update_product(*, product_id: int, patch: dict) -> Product | None:
    """
    Update catalog fields of a product.

    Returns None if not found. Raises ConflictError on SKU/barcode clash.
    """
    p = products.get(product_id)
    if not p:
        return None

    _ensure_unique(
        sku=patch.get("sku") if patch.get("sku") != p.sku else None,
        barcode=patch.get("barcode") if patch.get("barcode") != p.barcode else None,
        exclude_id=p.id,
    )

    apply_product_patch(p, patch)
    db.session.commit()
    return p


def delete_product(*, product_id: int) -> bool:
    """
    Delete a product that no invoice line or adjustment references.

    Returns False if not found. Raises ConflictError while referenced, so
    historical invoices keep resolving their products.
    """
    p = products.get(product_id)
    if not p:
        return False

    referenced = (
        db.session.query(InvoiceLine.id).filter(InvoiceLine.product_id == product_id).first()
        or db.session.query(InventoryAdjustment.id).filter(InventoryAdjustment.product_id == product_id).first()
    )
    if referenced:
        raise ConflictError("Product is referenced by invoices or adjustments and cannot be deleted.")

    return products.delete(product_id)
