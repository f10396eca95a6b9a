# backend/counterpos/services/staff_service.py
"""
Staff Service

Staff accounts are the actors recorded on invoices and ledger rows.
Passwords go through auth_service (bcrypt + strength rules); deactivating
or deleting an account revokes its sessions.
"""
from __future__ import annotations
from ..extensions import db
from ..models import User, Invoice, InventoryAdjustment
from ..validation import ConflictError
from . import auth_service, session_service
from .repository import Repository

STAFF_MUTABLE_FIELDS = {"username", "full_name", "email", "phone", "role", "status", "salary"}

staff = Repository(User, search_fields=("username", "full_name"))


def list_staff(search: str | None = None) -> list[User]:
    return staff.search(search)


def get_staff(user_id: int) -> User | None:
    return staff.get(user_id)


def create_staff(*, patch: dict, password: str) -> User:
    """
    Raises:
        ConflictError: If the username exists
        PasswordValidationError: If password doesn't meet requirements
    """
    if staff.find_by(username=patch["username"]):
        raise ConflictError("Username already exists.")

    return auth_service.create_user(
        patch["username"],
        password,
        patch["full_name"],
        patch.get("role") or "Cashier",
        email=patch.get("email"),
        phone=patch.get("phone"),
        status=patch.get("status") or "Active",
        salary=patch.get("salary"),
    )


def update_staff(*, user_id: int, patch: dict, password: str | None = None) -> User | None:
    user = staff.get(user_id)
    if not user:
        return None

    if "username" in patch and patch["username"] != user.username:
        if staff.find_by(username=patch["username"]):
            raise ConflictError("Username already exists.")

    for k, v in patch.items():
        if k in STAFF_MUTABLE_FIELDS:
            setattr(user, k, v)

    if password:
        user.password_hash = auth_service.hash_password(password)

    db.session.commit()

    if not user.is_active:
        session_service.revoke_all_user_sessions(user.id, reason="User account deactivated")
    return user


def delete_staff(*, user_id: int, actor_id: int | None = None) -> bool:
    """
    Delete a staff account with no attributed invoices or adjustments.

    Accounts with history should be set Inactive instead.
    """
    user = staff.get(user_id)
    if not user:
        return False
    if actor_id is not None and actor_id == user_id:
        raise ConflictError("You cannot delete your own account.")

    has_history = (
        db.session.query(Invoice.id).filter(Invoice.staff_id == user_id).first()
        or db.session.query(InventoryAdjustment.id).filter(InventoryAdjustment.adjusted_by == user_id).first()
    )
    if has_history:
        raise ConflictError("Staff member has invoices or adjustments; set status to Inactive instead.")

    session_service.revoke_all_user_sessions(user.id, reason="User account deleted")
    for token in list(user.session_tokens):
        db.session.delete(token)
    return staff.delete(user_id)
