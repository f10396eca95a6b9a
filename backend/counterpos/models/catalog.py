from __future__ import annotations

from ..extensions import db
from ..money_utils import money_str
from counterpos.time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data.

    PRICING: retail_price is the base price. wholesale_price and vip_price are
    optional tier prices; a missing tier price falls back to retail (see
    services/pricing_service.py).

    STOCK: current_stock is a plain integer mutated ONLY by the invoice commit
    transaction and the inventory adjustment ledger. It is allowed to go
    negative (stock-out adjustments, legacy commits); reports treat any value
    <= 0 as out of stock.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.UniqueConstraint("barcode", name="uq_products_barcode"),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_category", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=False)
    barcode = db.Column(db.String(64), nullable=True)
    category = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)

    retail_price = db.Column(db.Numeric(10, 2), nullable=False)
    wholesale_price = db.Column(db.Numeric(10, 2), nullable=True)
    vip_price = db.Column(db.Numeric(10, 2), nullable=True)
    cost_price = db.Column(db.Numeric(10, 2), nullable=False)

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)

    # Loyalty accrual per unit sold (0 = no explicit rate)
    points = db.Column(db.Integer, nullable=False, default=0)

    expiry_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} stock={self.current_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "barcode": self.barcode,
            "category": self.category,
            "description": self.description,
            "retailPrice": money_str(self.retail_price),
            "wholesalePrice": money_str(self.wholesale_price),
            "vipPrice": money_str(self.vip_price),
            "costPrice": money_str(self.cost_price),
            "currentStock": self.current_stock,
            "minStock": self.min_stock,
            "points": self.points,
            "expiryDate": to_utc_z(self.expiry_date) if self.expiry_date else None,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
