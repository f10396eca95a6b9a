from __future__ import annotations

from ..extensions import db
from counterpos.time_utils import to_utc_z


ADJUSTMENT_TYPES = ("Stock In", "Stock Out", "Adjust")


class InventoryAdjustment(db.Model):
    """
    Manual stock change ledger row.

    IMMUTABLE: rows are appended and never updated or deleted. Correcting a
    mistake means appending an opposite adjustment. Ordered by creation.

    product_name and adjusted_by_name are denormalized snapshots so the audit
    trail reads correctly after renames.
    """
    __tablename__ = "inventory_adjustments"
    __table_args__ = (
        db.Index("ix_invadj_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    type = db.Column(db.String(16), nullable=False, index=True)  # Stock In, Stock Out, Adjust

    # Magnitude of the change (always >= 0)
    quantity = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(500), nullable=True)

    adjusted_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    adjusted_by_name = db.Column(db.String(255), nullable=False)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "productName": self.product_name,
            "type": self.type,
            "quantity": self.quantity,
            "previousStock": self.previous_stock,
            "newStock": self.new_stock,
            "reason": self.reason,
            "adjustedBy": self.adjusted_by,
            "adjustedByName": self.adjusted_by_name,
            "createdAt": to_utc_z(self.created_at),
        }
