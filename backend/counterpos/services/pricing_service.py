# Overview: Unit price resolution (last purchase price, then customer tier, then zero).

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..extensions import db
from ..models import Invoice, InvoiceLine
from ..money_utils import ZERO, to_decimal


DEFAULT_CUSTOMER_TYPE = "Retail"

SOURCE_LAST_PURCHASE = "last-purchase"
SOURCE_WHOLESALE = "wholesale"
SOURCE_VIP = "vip"
SOURCE_RETAIL = "retail"
SOURCE_NONE = "none"


@dataclass(frozen=True)
class PriceResolution:
    price: Decimal
    source: str


def resolve_tier_price(product, customer_type: str | None = None) -> PriceResolution:
    """
    Tier price for a product, silently falling back when a tier is missing.

    - "wholesale" + wholesale_price set -> wholesale
    - "vip" + vip_price set             -> vip
    - otherwise retail, or 0 when retail is absent
    """
    tier = (customer_type or DEFAULT_CUSTOMER_TYPE).strip().lower()

    wholesale = to_decimal(getattr(product, "wholesale_price", None), default=None)
    vip = to_decimal(getattr(product, "vip_price", None), default=None)
    retail = to_decimal(getattr(product, "retail_price", None), default=None)

    if tier == "wholesale" and wholesale is not None:
        return PriceResolution(wholesale, SOURCE_WHOLESALE)
    if tier == "vip" and vip is not None:
        return PriceResolution(vip, SOURCE_VIP)
    if retail is not None:
        return PriceResolution(retail, SOURCE_RETAIL)
    return PriceResolution(ZERO, SOURCE_NONE)


def last_purchase_price(customer_id: int | None, product_id: int | None) -> Decimal | None:
    """
    Frozen unit price from the customer's most recent Completed invoice that
    contains this product, or None.
    """
    if customer_id is None or product_id is None:
        return None

    row = (
        db.session.query(InvoiceLine.unit_price)
        .join(Invoice, Invoice.id == InvoiceLine.invoice_id)
        .filter(
            Invoice.customer_id == customer_id,
            Invoice.status == "Completed",
            InvoiceLine.product_id == product_id,
        )
        .order_by(Invoice.created_at.desc(), Invoice.id.desc(), InvoiceLine.position.desc())
        .first()
    )
    if row is None:
        return None
    return to_decimal(row[0])


def resolve_unit_price(product, customer=None) -> PriceResolution:
    """
    Precedence: last purchase price > tier price > zero.

    customer may be None (walk-in sale -> Retail tier, no price memory).
    """
    if customer is not None:
        remembered = last_purchase_price(customer.id, product.id)
        if remembered is not None:
            return PriceResolution(remembered, SOURCE_LAST_PURCHASE)
        return resolve_tier_price(product, customer.type)
    return resolve_tier_price(product, None)
