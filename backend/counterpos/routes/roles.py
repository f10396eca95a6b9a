# backend/counterpos/routes/roles.py
"""
Role permission matrix routes.

Matrices are read at request time by every permission check, so edits
take effect on the next request.
"""

from flask import Blueprint, request, jsonify

from ..permissions import Module, MODULES, ACTIONS
from ..services import permission_service
from ..decorators import require_auth, require_permission

roles_bp = Blueprint("roles", __name__, url_prefix="/api/roles")


@roles_bp.get("")
@require_auth
@require_permission(Module.SETTINGS, "view")
def list_roles_route():
    roles = permission_service.list_roles()
    return jsonify({
        "items": [r.to_dict() for r in roles],
        "modules": list(MODULES),
        "actions": list(ACTIONS),
    }), 200


@roles_bp.get("/<role>")
@require_auth
@require_permission(Module.SETTINGS, "view")
def get_role_route(role: str):
    row = permission_service.get_role(role)
    if not row:
        return jsonify({"error": "Role not found", "kind": "not-found"}), 404
    return jsonify(row.to_dict()), 200


@roles_bp.post("")
@require_auth
@require_permission(Module.SETTINGS, "add")
def create_role_route():
    """Body: {role, permissions: {Module: {view, add, edit, delete}}}"""
    data = request.get_json(silent=True) or {}
    try:
        row = permission_service.create_role(data.get("role"), data.get("permissions"))
    except ValueError as e:
        return jsonify({"error": str(e), "kind": "validation"}), 400
    return jsonify(row.to_dict()), 201


@roles_bp.patch("/<role>")
@require_auth
@require_permission(Module.SETTINGS, "edit")
def update_role_route(role: str):
    """Body: {permissions: {...}} merged into the stored matrix."""
    data = request.get_json(silent=True) or {}
    try:
        row = permission_service.update_role(role, data.get("permissions") or {})
    except LookupError as e:
        return jsonify({"error": str(e), "kind": "not-found"}), 404
    except ValueError as e:
        return jsonify({"error": str(e), "kind": "validation"}), 400
    return jsonify(row.to_dict()), 200
