from flask import Blueprint, jsonify, request

from counterpos.decorators import require_auth, require_permission
from counterpos.permissions import Module
from counterpos.services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/dashboard")
@require_auth
@require_permission(Module.REPORTS, "view")
def dashboard_report():
    return jsonify(reporting_service.dashboard_summary()), 200


@reports_bp.get("/low-stock")
@require_auth
@require_permission(Module.INVENTORY, "view")
def low_stock_report():
    limit = request.args.get("limit", type=int)
    return jsonify(reporting_service.low_stock_report(limit=limit)), 200


@reports_bp.get("/sales")
@require_auth
@require_permission(Module.REPORTS, "view")
def sales_report():
    try:
        report = reporting_service.sales_report(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc), "kind": "validation"}), 400
