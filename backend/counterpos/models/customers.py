from __future__ import annotations

from ..extensions import db
from ..money_utils import money_str
from counterpos.time_utils import to_utc_z


CUSTOMER_TYPES = ("Retail", "Member", "VIP", "Wholesale", "Dealer", "Depo")


class Customer(db.Model):
    """
    Customer master data for pricing tier and loyalty tracking.

    type drives the pricing tier (Wholesale / VIP) and the default invoice
    discount. loyalty_points and total_spent are denormalized aggregates,
    mutated only by the invoice commit transaction.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("username", name="uq_customers_username"),
        db.Index("ix_customers_name", "name"),
        db.Index("ix_customers_phone", "phone"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=False)
    username = db.Column(db.String(64), nullable=True)

    type = db.Column(db.String(16), nullable=False, default="Retail")

    loyalty_points = db.Column(db.Integer, nullable=False, default=0)
    total_spent = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_visit = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "username": self.username,
            "type": self.type,
            "loyaltyPoints": self.loyalty_points,
            "totalSpent": money_str(self.total_spent),
            "createdAt": to_utc_z(self.created_at),
            "lastVisit": to_utc_z(self.last_visit) if self.last_visit else None,
        }
