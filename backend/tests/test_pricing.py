"""
Pricing resolver tests.

Verifies:
- Tier prices by customer type, case-insensitively
- Silent fallback to retail (then zero) when a tier price is missing
- A customer's last Completed purchase price beats the tier price
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from counterpos.services import invoice_service
from counterpos.services.pricing_service import (
    SOURCE_LAST_PURCHASE,
    SOURCE_NONE,
    SOURCE_RETAIL,
    SOURCE_VIP,
    SOURCE_WHOLESALE,
    last_purchase_price,
    resolve_tier_price,
    resolve_unit_price,
)


def _product(retail="10.00", wholesale="8.00", vip="9.00"):
    return SimpleNamespace(
        retail_price=Decimal(retail) if retail is not None else None,
        wholesale_price=Decimal(wholesale) if wholesale is not None else None,
        vip_price=Decimal(vip) if vip is not None else None,
    )


class TestTierPrice:

    @pytest.mark.parametrize(
        "customer_type,expected,source",
        [
            ("Wholesale", "8.00", SOURCE_WHOLESALE),
            ("wholesale", "8.00", SOURCE_WHOLESALE),
            ("VIP", "9.00", SOURCE_VIP),
            ("vip", "9.00", SOURCE_VIP),
            ("Retail", "10.00", SOURCE_RETAIL),
            ("Member", "10.00", SOURCE_RETAIL),
            ("Dealer", "10.00", SOURCE_RETAIL),
            ("Depo", "10.00", SOURCE_RETAIL),
            (None, "10.00", SOURCE_RETAIL),
        ],
    )
    def test_price_by_customer_type(self, customer_type, expected, source):
        resolved = resolve_tier_price(_product(), customer_type)
        assert resolved.price == Decimal(expected)
        assert resolved.source == source

    def test_missing_tier_falls_back_to_retail(self):
        resolved = resolve_tier_price(_product(wholesale=None, vip=None), "Wholesale")
        assert resolved.price == Decimal("10.00")
        assert resolved.source == SOURCE_RETAIL

    def test_missing_retail_resolves_to_zero(self):
        resolved = resolve_tier_price(_product(retail=None, wholesale=None, vip=None), "VIP")
        assert resolved.price == Decimal("0")
        assert resolved.source == SOURCE_NONE


def _sell(staff, customer, product, price, status="Completed"):
    return invoice_service.commit_invoice({
        "customerId": customer.id,
        "items": [{"productId": product.id, "quantity": 1, "price": price}],
        "subtotal": price,
        "total": price,
        "status": status,
    }, staff=staff)


class TestLastPurchasePrice:

    def test_no_history_uses_tier(self, product, loyal_customer):
        resolved = resolve_unit_price(product, loyal_customer)
        assert resolved.price == Decimal("9.00")
        assert resolved.source == SOURCE_VIP

    def test_walk_in_uses_retail(self, product):
        resolved = resolve_unit_price(product, None)
        assert resolved.price == Decimal("10.00")
        assert resolved.source == SOURCE_RETAIL

    def test_last_purchase_wins_over_tier(self, admin_user, product, loyal_customer):
        _sell(admin_user, loyal_customer, product, "7.50")

        resolved = resolve_unit_price(product, loyal_customer)

        assert resolved.price == Decimal("7.50")
        assert resolved.source == SOURCE_LAST_PURCHASE

    def test_most_recent_purchase_is_used(self, admin_user, product, customer):
        _sell(admin_user, customer, product, "7.50")
        _sell(admin_user, customer, product, "6.25")

        assert last_purchase_price(customer.id, product.id) == Decimal("6.25")

    def test_draft_invoices_are_ignored(self, admin_user, product, customer):
        _sell(admin_user, customer, product, "3.00", status="Draft")
        assert last_purchase_price(customer.id, product.id) is None

    def test_history_is_per_customer(self, admin_user, product, customer, loyal_customer):
        _sell(admin_user, customer, product, "7.50")
        assert last_purchase_price(loyal_customer.id, product.id) is None
