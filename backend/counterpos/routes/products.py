# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/counterpos/routes/products.py
"""
Product catalog routes.

SECURITY: All routes require authentication.
- Read operations require Products.view
- Create / update / delete require Products.add / edit / delete

currentStock can be set on create only. After that stock moves through
invoice commits and /api/inventory/adjustments.
"""
from flask import Blueprint, request
from ..models import Product
from ..permissions import Module
from ..services import products_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_permission

PRODUCT_ALIASES = {
    "retailPrice": "retail_price",
    "wholesalePrice": "wholesale_price",
    "vipPrice": "vip_price",
    "costPrice": "cost_price",
    "currentStock": "current_stock",
    "minStock": "min_stock",
    "expiryDate": "expiry_date",
}

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=products_service.PRODUCT_MUTABLE_FIELDS | {"current_stock"},
    required_on_create={"name", "sku", "category", "retail_price", "cost_price"},
    aliases=PRODUCT_ALIASES,
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=set(products_service.PRODUCT_MUTABLE_FIELDS),
    aliases=PRODUCT_ALIASES,
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission(Module.PRODUCTS, "view")
def list_products():
    """
    List products, newest first.

    Query params:
    - search: str (optional) - substring of name, sku or barcode
    """
    items = products_service.list_products(request.args.get("search"))
    return {"items": [p.to_dict() for p in items], "count": len(items)}


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission(Module.PRODUCTS, "view")
def get_product(product_id: int):
    p = products_service.get_product(product_id)
    if not p:
        return {"error": "Product not found", "kind": "not-found"}, 404
    return p.to_dict()


@products_bp.get("/barcode/<barcode>")
@require_auth
@require_permission(Module.PRODUCTS, "view")
def get_product_by_barcode(barcode: str):
    p = products_service.get_product_by_barcode(barcode)
    if not p:
        return {"error": "Product not found", "kind": "not-found"}, 404
    return p.to_dict()


@products_bp.post("")
@require_auth
@require_permission(Module.PRODUCTS, "add")
def create_product_route():
    """Create a new product. Requires Products.add."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e), "kind": "validation"}, 400

    try:
        created = products_service.create_product(patch=patch)
    except ConflictError as e:
        return {"error": str(e), "kind": "conflict"}, 409

    return created.to_dict(), 201


@products_bp.patch("/<int:product_id>")
@require_auth
@require_permission(Module.PRODUCTS, "edit")
def update_product_route(product_id: int):
    """
    Update catalog fields. Requires Products.edit.

    currentStock is rejected here (400).
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e), "kind": "validation"}, 400

    try:
        updated = products_service.update_product(product_id=product_id, patch=patch)
    except ConflictError as e:
        return {"error": str(e), "kind": "conflict"}, 409

    if not updated:
        return {"error": "Product not found", "kind": "not-found"}, 404

    return updated.to_dict(), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission(Module.PRODUCTS, "delete")
def delete_product_route(product_id: int):
    """Delete a product nobody references. Requires Products.delete."""
    try:
        deleted = products_service.delete_product(product_id=product_id)
    except ConflictError as e:
        return {"error": str(e), "kind": "conflict"}, 409

    if not deleted:
        return {"error": "Product not found", "kind": "not-found"}, 404

    return {"ok": True}, 200
