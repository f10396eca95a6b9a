# Overview: Service-layer operations for role permissions; the hasPermission capability check.

"""
Permission Checking

WHY: Routes consult the role matrix before allowing commit, adjustment or
admin calls. The invoice and inventory services never check permissions
themselves; they trust their caller.

DESIGN PRINCIPLES:
- Fail closed: unknown role, module or action -> denied
- Log denials only: permission grants are not logged
"""

from flask import current_app

from ..extensions import db
from ..models import RolePermission, User, STAFF_ROLES
from ..permissions import ACTIONS, MODULES, DEFAULT_ROLE_PERMISSIONS, normalize_matrix


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def get_role_matrix(role: str | None) -> dict | None:
    if not role:
        return None
    row = db.session.query(RolePermission).filter_by(role=role).first()
    if row is None:
        return None
    return row.permissions or {}


def has_permission(role: str | None, module: str, action: str) -> bool:
    """
    hasPermission(role, module, action) -> bool

    Returns True only when the role's stored matrix grants the action.
    """
    if module not in MODULES or action not in ACTIONS:
        return False
    matrix = get_role_matrix(role)
    if not matrix:
        return False
    return bool((matrix.get(module) or {}).get(action, False))


def require_permission(user: User, module: str, action: str) -> None:
    """Raise PermissionDeniedError unless the user's role grants module.action."""
    if not has_permission(user.role, module, action):
        current_app.logger.warning(
            "Permission denied: user_id=%s role=%s %s.%s", user.id, user.role, module, action,
        )
        raise PermissionDeniedError(f"Permission denied: {module}.{action}")


def list_roles() -> list[RolePermission]:
    return db.session.query(RolePermission).order_by(RolePermission.id.asc()).all()


def get_role(role: str) -> RolePermission | None:
    return db.session.query(RolePermission).filter_by(role=role).first()


def create_role(role: str, permissions) -> RolePermission:
    if not isinstance(role, str) or not role.strip():
        raise ValueError("role is required")
    role = role.strip()
    if get_role(role) is not None:
        raise ValueError(f"Role '{role}' already exists")

    row = RolePermission(role=role, permissions=normalize_matrix(permissions or {}))
    db.session.add(row)
    db.session.commit()
    return row


def update_role(role: str, permissions) -> RolePermission:
    """Merge the given module/action flags into the stored matrix."""
    row = get_role(role)
    if row is None:
        raise LookupError(f"Role '{role}' not found")

    merged = normalize_matrix(row.permissions or {})
    patch = normalize_matrix(permissions)
    for module, actions in (permissions or {}).items():
        for action in actions:
            merged[module][action] = patch[module][action]

    # Assign a new dict so the JSON column is flagged dirty
    row.permissions = merged
    db.session.commit()
    return row


def initialize_role_permissions() -> int:
    """
    Create RolePermission rows for every default role.

    Idempotent: Safe to run multiple times (skips existing).
    """
    created_count = 0
    for role_name in STAFF_ROLES:
        if get_role(role_name) is not None:
            continue
        matrix = DEFAULT_ROLE_PERMISSIONS.get(role_name)
        if matrix is None:
            continue
        db.session.add(RolePermission(role=role_name, permissions=normalize_matrix(matrix)))
        created_count += 1

    db.session.commit()
    return created_count
