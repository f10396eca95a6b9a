# Overview: Service-layer operations for reporting; dashboard figures, low stock and sales by day.

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timedelta
from decimal import Decimal

from flask import current_app
from sqlalchemy import func, or_

from ..extensions import db
from ..models import Product, Customer, Invoice, InvoicePayment, User
from ..money_utils import ZERO, to_decimal, money_str
from counterpos.time_utils import parse_iso_datetime, to_utc_z
from .inventory_service import stock_status


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end) if end else None
    except ValueError:
        raise ReportError("start and end must be ISO-8601 dates or datetimes")
    # Date-only end covers the whole day
    if end_dt is not None and len(end.strip()) == 10:
        end_dt = end_dt + timedelta(days=1) - timedelta(microseconds=1)
    if start_dt and end_dt and start_dt > end_dt:
        raise ReportError("start must be before end")
    return start_dt, end_dt


def _invoice_profit(invoice: Invoice) -> Decimal:
    """Stored invoice total minus the cost frozen on each line."""
    cost = sum((to_decimal(line.cost_price) * line.quantity for line in invoice.lines), ZERO)
    return to_decimal(invoice.total) - cost


def dashboard_summary() -> dict:
    """
    Headline numbers over all stored invoices.

    Revenue sums the stored invoice totals. Profit is each total minus the
    cost frozen on its lines, never the current catalog cost.
    """
    invoices = db.session.query(Invoice).all()
    total_revenue = sum((to_decimal(inv.total) for inv in invoices), ZERO)
    total_profit = sum((_invoice_profit(inv) for inv in invoices), ZERO)

    low_stock = db.session.query(func.count(Product.id)).filter(
        Product.current_stock < Product.min_stock
    ).scalar()
    out_of_stock = db.session.query(func.count(Product.id)).filter(
        Product.current_stock <= 0
    ).scalar()

    return {
        "totalProducts": db.session.query(func.count(Product.id)).scalar() or 0,
        "totalCustomers": db.session.query(func.count(Customer.id)).scalar() or 0,
        "totalInvoices": len(invoices),
        "totalStaff": db.session.query(func.count(User.id)).scalar() or 0,
        "totalRevenue": money_str(total_revenue),
        "totalProfit": money_str(total_profit),
        "lowStockCount": int(low_stock or 0),
        "outOfStockCount": int(out_of_stock or 0),
    }


def low_stock_report(limit: int | None = None) -> dict:
    """Products below their reorder threshold or out of stock, emptiest first."""
    if limit is None:
        limit = current_app.config.get("LOW_STOCK_REPORT_LIMIT", 50)

    products = (
        db.session.query(Product)
        .filter(or_(Product.current_stock < Product.min_stock, Product.current_stock <= 0))
        .order_by(Product.current_stock.asc(), Product.name.asc())
        .limit(limit)
        .all()
    )
    return {
        "items": [
            {
                "productId": p.id,
                "name": p.name,
                "sku": p.sku,
                "currentStock": p.current_stock,
                "minStock": p.min_stock,
                "status": stock_status(p.current_stock, p.min_stock),
            }
            for p in products
        ],
        "count": len(products),
    }


def sales_report(*, start: str | None, end: str | None) -> dict:
    """
    Per-day invoice totals and a payment-method breakdown.

    Invoices are bucketed by created_at only.
    """
    start_dt, end_dt = _parse_range(start, end)

    query = db.session.query(Invoice)
    if start_dt:
        query = query.filter(Invoice.created_at >= start_dt)
    if end_dt:
        query = query.filter(Invoice.created_at <= end_dt)
    invoices = query.order_by(Invoice.created_at.asc(), Invoice.id.asc()).all()

    days: "OrderedDict[str, dict]" = OrderedDict()
    for inv in invoices:
        period = inv.created_at.strftime("%Y-%m-%d")
        row = days.setdefault(period, {"invoices": 0, "total": ZERO, "profit": ZERO})
        row["invoices"] += 1
        row["total"] += to_decimal(inv.total)
        row["profit"] += _invoice_profit(inv)

    methods: dict[str, Decimal] = {}
    invoice_ids = [inv.id for inv in invoices]
    if invoice_ids:
        payments = db.session.query(InvoicePayment).filter(InvoicePayment.invoice_id.in_(invoice_ids)).all()
        for payment in payments:
            methods[payment.method] = methods.get(payment.method, ZERO) + to_decimal(payment.amount)

    return {
        "start": to_utc_z(start_dt) if start_dt else None,
        "end": to_utc_z(end_dt) if end_dt else None,
        "rows": [
            {
                "period": period,
                "invoiceCount": row["invoices"],
                "total": money_str(row["total"]),
                "profit": money_str(row["profit"]),
            }
            for period, row in days.items()
        ],
        "paymentMethods": [
            {"method": method, "amount": money_str(amount)}
            for method, amount in sorted(methods.items())
        ],
        "totalRevenue": money_str(sum((to_decimal(inv.total) for inv in invoices), ZERO)),
        "invoiceCount": len(invoices),
    }
