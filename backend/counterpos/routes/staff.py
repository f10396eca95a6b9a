# Overview: Flask API routes for staff administration; parses input and returns JSON responses.

# backend/counterpos/routes/staff.py
"""
Staff admin routes.

Passwords are accepted on create/update and never returned.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..models import User
from ..permissions import Module
from ..services import staff_service
from ..services.auth_service import PasswordValidationError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_staff,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_permission

STAFF_POLICY = ModelValidationPolicy(
    writable_fields=set(staff_service.STAFF_MUTABLE_FIELDS),
    required_on_create={"username", "full_name", "role"},
    aliases={"fullName": "full_name"},
)

staff_bp = Blueprint("staff", __name__, url_prefix="/api/staff")


@staff_bp.get("")
@require_auth
@require_permission(Module.STAFF, "view")
def list_staff_route():
    users = staff_service.list_staff(request.args.get("search"))
    return jsonify({"items": [u.to_dict() for u in users], "count": len(users)}), 200


@staff_bp.get("/<int:user_id>")
@require_auth
@require_permission(Module.STAFF, "view")
def get_staff_route(user_id: int):
    user = staff_service.get_staff(user_id)
    if not user:
        return jsonify({"error": "Staff member not found", "kind": "not-found"}), 404
    return jsonify({"user": user.to_dict()}), 200


@staff_bp.post("")
@require_auth
@require_permission(Module.STAFF, "add")
def create_staff_route():
    """
    Request body:
    - username, fullName, role, password: required
    - email, phone, status, salary: optional
    """
    payload = dict(request.get_json(silent=True) or {})
    password = payload.pop("password", None)
    if not password:
        return jsonify({"error": "password required", "kind": "validation"}), 400

    try:
        patch = validate_payload(model=User, payload=payload, policy=STAFF_POLICY, partial=False)
        enforce_rules_staff(patch)
        user = staff_service.create_staff(patch=patch, password=password)
    except (ValidationError, PasswordValidationError) as e:
        return jsonify({"error": str(e), "kind": "validation"}), 400
    except ConflictError as e:
        return jsonify({"error": str(e), "kind": "conflict"}), 409
    except Exception:
        current_app.logger.exception("Failed to create staff member")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"user": user.to_dict()}), 201


@staff_bp.patch("/<int:user_id>")
@require_auth
@require_permission(Module.STAFF, "edit")
def update_staff_route(user_id: int):
    payload = dict(request.get_json(silent=True) or {})
    password = payload.pop("password", None)

    try:
        patch = validate_payload(model=User, payload=payload, policy=STAFF_POLICY, partial=True)
        enforce_rules_staff(patch)
        user = staff_service.update_staff(user_id=user_id, patch=patch, password=password)
    except (ValidationError, PasswordValidationError) as e:
        return jsonify({"error": str(e), "kind": "validation"}), 400
    except ConflictError as e:
        return jsonify({"error": str(e), "kind": "conflict"}), 409

    if not user:
        return jsonify({"error": "Staff member not found", "kind": "not-found"}), 404
    return jsonify({"user": user.to_dict()}), 200


@staff_bp.delete("/<int:user_id>")
@require_auth
@require_permission(Module.STAFF, "delete")
def delete_staff_route(user_id: int):
    try:
        deleted = staff_service.delete_staff(user_id=user_id, actor_id=g.current_user.id)
    except ConflictError as e:
        return jsonify({"error": str(e), "kind": "conflict"}), 409

    if not deleted:
        return jsonify({"error": "Staff member not found", "kind": "not-found"}), 404
    return jsonify({"ok": True}), 200
