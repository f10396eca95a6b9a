# Overview: Flask API routes for invoice operations; parses input and returns JSON responses.

# backend/counterpos/routes/invoices.py
"""Invoice API routes with permission enforcement"""

from flask import Blueprint, request, jsonify, g, current_app

from ..permissions import Module
from ..services import invoice_service
from ..services.invoice_service import InvoiceError
from ..decorators import require_auth, require_permission


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("")
@require_auth
@require_permission(Module.INVOICES, "view")
def list_invoices_route():
    """
    List invoices, newest first.

    Query params (all optional):
    - startDate / endDate: inclusive createdAt window (ISO-8601 date or datetime)
    - staffId, customerId
    """
    try:
        invoices = invoice_service.list_invoices(
            start_date=request.args.get("startDate"),
            end_date=request.args.get("endDate"),
            staff_id=request.args.get("staffId", type=int),
            customer_id=request.args.get("customerId", type=int),
        )
    except InvoiceError as e:
        return jsonify(e.to_dict()), e.http_status

    return jsonify({"items": [inv.to_dict() for inv in invoices], "count": len(invoices)}), 200


@invoices_bp.get("/<int:invoice_id>")
@require_auth
@require_permission(Module.INVOICES, "view")
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(invoice_id)
    except InvoiceError as e:
        return jsonify(e.to_dict()), e.http_status
    return jsonify({"invoice": invoice.to_dict()}), 200


@invoices_bp.get("/number/<invoice_number>")
@require_auth
@require_permission(Module.INVOICES, "view")
def get_invoice_by_number_route(invoice_number: str):
    """Lookup used when an adjustment reason references an invoice."""
    invoice = invoice_service.get_invoice_by_number(invoice_number)
    if not invoice:
        return jsonify({
            "error": "Invoice not found",
            "kind": "invoice-not-found",
            "details": {"invoiceNumber": invoice_number},
        }), 404
    return jsonify({"invoice": invoice.to_dict()}), 200


@invoices_bp.post("")
@require_auth
@require_permission(Module.INVOICES, "add")
def create_invoice_route():
    """
    Commit an invoice: decrement stock, update the customer, persist the document.

    Requires: Invoices.add
    Error bodies carry a machine-readable `kind`
    (validation, product-not-found, customer-not-found, insufficient-stock,
    insufficient-points, duplicate-invoice-number).
    """
    try:
        data = request.get_json(silent=True)
        invoice = invoice_service.commit_invoice(data, staff=g.current_user)
        return jsonify({"invoice": invoice.to_dict()}), 201

    except InvoiceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to commit invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("/preview")
@require_auth
@require_permission(Module.INVOICES, "add")
def preview_invoice_route():
    """
    Price and total a cart without saving anything.

    Body: {customerId?, items: [{productId, quantity, price?, discountPct?}],
           discountPct?, taxPct?, redeemPoints?, payments?}
    """
    try:
        state = invoice_service.parse_cart_state(request.get_json(silent=True))
        return jsonify(invoice_service.preview_invoice(state)), 200

    except InvoiceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to preview invoice")
        return jsonify({"error": "Internal server error"}), 500
