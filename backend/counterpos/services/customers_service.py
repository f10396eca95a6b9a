# backend/counterpos/services/customers_service.py
"""
Customers Service

Customer master data. loyalty_points and total_spent are not writable here;
only the invoice commit moves them.
"""
from __future__ import annotations
from ..extensions import db
from ..models import Customer, Invoice
from ..validation import ConflictError
from .repository import Repository

CUSTOMER_MUTABLE_FIELDS = {"name", "email", "phone", "username", "type"}

customers = Repository(Customer, search_fields=("name", "phone", "email", "username"))


def _writable(patch: dict) -> dict:
    return {k: v for k, v in patch.items() if k in CUSTOMER_MUTABLE_FIELDS}


def _ensure_username_free(username: str | None, exclude_id: int | None = None) -> None:
    if not username:
        return
    q = db.session.query(Customer.id).filter(Customer.username == username)
    if exclude_id is not None:
        q = q.filter(Customer.id != exclude_id)
    if q.first():
        raise ConflictError("Username already exists.")


def list_customers(search: str | None = None) -> list[Customer]:
    return customers.search(search)


def get_customer(customer_id: int) -> Customer | None:
    return customers.get(customer_id)


def create_customer(*, patch: dict) -> Customer:
    _ensure_username_free(patch.get("username"))
    values = {"loyalty_points": 0, "total_spent": 0, **_writable(patch)}
    values["type"] = values.get("type") or "Retail"
    return customers.create(values)


def update_customer(*, customer_id: int, patch: dict) -> Customer | None:
    c = customers.get(customer_id)
    if not c:
        return None
    if "username" in patch and patch["username"] != c.username:
        _ensure_username_free(patch["username"], exclude_id=c.id)
    return customers.update(customer_id, _writable(patch))


def delete_customer(*, customer_id: int) -> bool:
    """Refuses (ConflictError) while invoices reference the customer."""
    c = customers.get(customer_id)
    if not c:
        return False
    if db.session.query(Invoice.id).filter(Invoice.customer_id == customer_id).first():
        raise ConflictError("Customer has invoices and cannot be deleted.")
    return customers.delete(customer_id)
