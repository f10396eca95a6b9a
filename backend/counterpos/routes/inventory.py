# backend/counterpos/routes/inventory.py
"""
Inventory adjustment ledger routes.

SECURITY: All routes require authentication.
- View operations require Inventory.view
- Adjustments require Inventory.add

The ledger is append-only: there is no update or delete route.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..permissions import Module
from ..services import inventory_service
from ..services.inventory_service import AdjustmentError
from ..decorators import require_auth, require_permission


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/adjustments")
@require_auth
@require_permission(Module.INVENTORY, "add")
def create_adjustment_route():
    """
    Apply a Stock In / Stock Out / Adjust change and append its ledger row.

    Body: {productId, type, quantity | newStock, reason?}
    The authenticated staff member is recorded as adjustedBy.
    """
    payload = request.get_json(silent=True) or {}

    if payload.get("productId") is None or not payload.get("type"):
        return jsonify({"error": "productId and type required", "kind": "validation"}), 400

    try:
        product_id = inventory_service.as_int(payload.get("productId"), "productId")
    except AdjustmentError as e:
        return jsonify({"error": str(e), "kind": "validation"}), 400

    try:
        entry = inventory_service.adjust_stock(
            product_id=product_id,
            adjustment_type=payload.get("type"),
            quantity=payload.get("quantity"),
            new_stock=payload.get("newStock"),
            reason=payload.get("reason"),
            actor=g.current_user,
        )
    except AdjustmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record inventory adjustment")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"adjustment": entry.to_dict()}), 201


@inventory_bp.get("/adjustments")
@require_auth
@require_permission(Module.INVENTORY, "view")
def list_adjustments_route():
    """
    Query params:
    - productId: int (optional)
    - invoiceNumber: str (optional) - only rows whose reason references it
    - limit: int (optional)
    """
    invoice_number = request.args.get("invoiceNumber")
    if invoice_number:
        items = inventory_service.adjustments_for_invoice(invoice_number)
    else:
        items = inventory_service.list_adjustments(
            product_id=request.args.get("productId", type=int),
            limit=request.args.get("limit", type=int),
        )
    return jsonify({"items": [a.to_dict() for a in items], "count": len(items)}), 200


@inventory_bp.get("/adjustments/<int:adjustment_id>")
@require_auth
@require_permission(Module.INVENTORY, "view")
def get_adjustment_route(adjustment_id: int):
    try:
        entry = inventory_service.get_adjustment(adjustment_id)
    except AdjustmentError as e:
        return jsonify(e.to_dict()), e.http_status

    data = entry.to_dict()
    data["invoiceReferences"] = inventory_service.find_invoice_references(entry.reason)
    return jsonify({"adjustment": data}), 200
