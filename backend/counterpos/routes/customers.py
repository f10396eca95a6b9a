# Overview: Flask API routes for customer operations; parses input and returns JSON responses.

# backend/counterpos/routes/customers.py
"""
Customer routes.

loyaltyPoints and totalSpent are read-only here; only invoice commits move them.
"""
from flask import Blueprint, request
from ..models import Customer
from ..permissions import Module
from ..services import customers_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_customer,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_permission

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields=set(customers_service.CUSTOMER_MUTABLE_FIELDS),
    required_on_create={"name", "phone"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_permission(Module.CUSTOMERS, "view")
def list_customers():
    """
    Query params:
    - search: str (optional) - substring of name, phone, email or username
    """
    items = customers_service.list_customers(request.args.get("search"))
    return {"items": [c.to_dict() for c in items], "count": len(items)}


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_permission(Module.CUSTOMERS, "view")
def get_customer(customer_id: int):
    c = customers_service.get_customer(customer_id)
    if not c:
        return {"error": "Customer not found", "kind": "customer-not-found"}, 404
    return c.to_dict()


@customers_bp.post("")
@require_auth
@require_permission(Module.CUSTOMERS, "add")
def create_customer_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        enforce_rules_customer(patch)
    except ValidationError as e:
        return {"error": str(e), "kind": "validation"}, 400

    try:
        created = customers_service.create_customer(patch=patch)
    except ConflictError as e:
        return {"error": str(e), "kind": "conflict"}, 409

    return created.to_dict(), 201


@customers_bp.patch("/<int:customer_id>")
@require_auth
@require_permission(Module.CUSTOMERS, "edit")
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        enforce_rules_customer(patch)
    except ValidationError as e:
        return {"error": str(e), "kind": "validation"}, 400

    try:
        updated = customers_service.update_customer(customer_id=customer_id, patch=patch)
    except ConflictError as e:
        return {"error": str(e), "kind": "conflict"}, 409

    if not updated:
        return {"error": "Customer not found", "kind": "customer-not-found"}, 404

    return updated.to_dict(), 200


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_permission(Module.CUSTOMERS, "delete")
def delete_customer_route(customer_id: int):
    try:
        deleted = customers_service.delete_customer(customer_id=customer_id)
    except ConflictError as e:
        return {"error": str(e), "kind": "conflict"}, 409

    if not deleted:
        return {"error": "Customer not found", "kind": "customer-not-found"}, 404

    return {"ok": True}, 200
