from __future__ import annotations

from ..extensions import db
from ..money_utils import money_str
from counterpos.time_utils import to_utc_z


INVOICE_STATUSES = ("Draft", "Completed")
PAYMENT_METHODS = ("Cash", "Bank", "Card", "Mobile", "Points")


class Invoice(db.Model):
    """
    Finalized invoice document.

    FROZEN FIGURES: subtotal, discount_amount, tax_amount and total are each
    stored as submitted and never re-derived on read. total is authoritative.

    created_at is immutable and is the only time key used by period reports.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_invoices_number"),
        db.Index("ix_invoices_created", "created_at"),
        db.Index("ix_invoices_staff_created", "staff_id", "created_at"),
        db.Index("ix_invoices_customer_created", "customer_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(64), nullable=False)

    # Walk-in sales have no customer
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)

    staff_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    staff_name = db.Column(db.String(255), nullable=False)

    subtotal = db.Column(db.Numeric(10, 2), nullable=False)
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(10, 2), nullable=False)

    points_redeemed = db.Column(db.Integer, nullable=False, default=0)
    points_earned = db.Column(db.Integer, nullable=False, default=0)

    # Payment tracking, informational only (partial payment is allowed)
    payment_status = db.Column(db.String(16), nullable=False, default="UNPAID")  # UNPAID, PARTIAL, PAID, OVERPAID
    total_paid = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    balance_due = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    change_due = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="Completed", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("invoices", lazy=True))
    staff = db.relationship("User", backref=db.backref("invoices", lazy=True))
    lines = db.relationship(
        "InvoiceLine",
        backref="invoice",
        lazy=True,
        order_by="InvoiceLine.position",
        cascade="all, delete-orphan",
    )
    payments = db.relationship(
        "InvoicePayment",
        backref="invoice",
        lazy=True,
        order_by="InvoicePayment.position",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoiceNumber": self.invoice_number,
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "staffId": self.staff_id,
            "staffName": self.staff_name,
            "items": [line.to_dict() for line in self.lines],
            "subtotal": money_str(self.subtotal),
            "taxRate": money_str(self.tax_rate),
            "taxAmount": money_str(self.tax_amount),
            "discountAmount": money_str(self.discount_amount),
            "total": money_str(self.total),
            "pointsRedeemed": self.points_redeemed,
            "pointsEarned": self.points_earned,
            "payments": [p.to_dict() for p in self.payments],
            "paymentStatus": self.payment_status,
            "totalPaid": money_str(self.total_paid),
            "balance": money_str(self.balance_due),
            "change": money_str(self.change_due),
            "status": self.status,
            "createdAt": to_utc_z(self.created_at),
        }


class InvoiceLine(db.Model):
    """Line item with the unit price and cost price frozen at time of sale."""
    __tablename__ = "invoice_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    # Soft reference: historical lines keep pointing at the product row
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    cost_price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    quantity = db.Column(db.Integer, nullable=False)
    discount_pct = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    line_total = db.Column(db.Numeric(10, 2), nullable=False)

    # Points-per-unit rate at time of sale
    points = db.Column(db.Integer, nullable=False, default=0)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "productName": self.product_name,
            "price": money_str(self.unit_price),
            "costPrice": money_str(self.cost_price),
            "quantity": self.quantity,
            "discountPct": money_str(self.discount_pct),
            "lineTotal": money_str(self.line_total),
            "points": self.points,
        }


class InvoicePayment(db.Model):
    """
    Declared payment instrument on an invoice.

    Payments are recorded, not processed. "Points" is a pseudo-method that
    redeems loyalty points 1:1 against currency.
    """
    __tablename__ = "invoice_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    method = db.Column(db.String(16), nullable=False, index=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "method": self.method,
            "amount": money_str(self.amount),
        }
