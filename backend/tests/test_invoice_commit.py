"""
Invoice commit tests.

Verifies:
- Stored figures, payments and loyalty updates for a committed invoice
- Last-unit race: LEGACY mode oversells, ATOMIC mode rejects the second sale
- All-or-nothing rollback on failure
- Frozen unit and cost prices survive catalog edits
"""

import threading
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from counterpos import create_app
from counterpos.extensions import db
from counterpos.models import Product, Invoice, User
from counterpos.services import invoice_service
from counterpos.services.invoice_service import InsufficientStockError

from conftest import reload


def _payload(product, *, qty=1, price="10.00", customer=None, **extra):
    price = Decimal(price)
    subtotal = price * qty
    body = {
        "items": [{"productId": product.id, "quantity": qty, "price": str(price)}],
        "subtotal": str(subtotal),
        "total": str(subtotal),
    }
    if customer is not None:
        body["customerId"] = customer.id
    body.update(extra)
    return body


def _invoice_count():
    return db.session.query(Invoice).count()


# =============================================================================
# HAPPY PATH
# =============================================================================


class TestCommit:

    def test_discount_tax_and_redemption_stored_as_submitted(self, client, cashier_headers, db_session, loyal_customer):
        p = Product(name="Monitor", sku="MON-1", category="Electronics",
                    retail_price="100.00", cost_price="70.00", current_stock=5)
        db_session.add(p)
        db_session.commit()

        resp = client.post("/api/invoices", headers=cashier_headers, json={
            "customerId": loyal_customer.id,
            "items": [{"productId": p.id, "quantity": 1, "price": "100.00"}],
            "subtotal": "100.00",
            "discountAmount": "10.00",
            "taxRate": "5",
            "taxAmount": "4.50",
            "total": "64.50",
            "pointsRedeemed": 50,
            "payments": [{"method": "Cash", "amount": "70.00"}],
        })

        assert resp.status_code == 201, resp.get_json()
        invoice = resp.get_json()["invoice"]
        assert invoice["total"] == "64.50"
        assert invoice["taxAmount"] == "4.50"
        assert invoice["pointsRedeemed"] == 30
        assert invoice["pointsEarned"] == 6
        assert invoice["change"] == "5.50"
        assert invoice["paymentStatus"] == "OVERPAID"
        assert invoice["invoiceNumber"].startswith("INV-")

        c = reload(loyal_customer)
        assert c.loyalty_points == 6
        assert c.total_spent == Decimal("64.50")
        assert c.last_visit is not None
        assert reload(p).current_stock == 4

    def test_flat_points_for_new_customer(self, client, cashier_headers, product, customer):
        """No history, no per-product rate, total $47 -> 4 points."""
        resp = client.post("/api/invoices", headers=cashier_headers,
                           json=_payload(product, price="47.00", customer=customer))

        assert resp.status_code == 201
        assert resp.get_json()["invoice"]["pointsEarned"] == 4
        assert reload(customer).loyalty_points == 4

    def test_per_product_points_rate(self, client, cashier_headers, db_session, customer):
        p = Product(name="Gift Card", sku="GC-1", category="Gifts",
                    retail_price="5.00", cost_price="5.00", current_stock=50, points=2)
        db_session.add(p)
        db_session.commit()

        resp = client.post("/api/invoices", headers=cashier_headers,
                           json=_payload(p, qty=3, price="5.00", customer=customer))

        assert resp.status_code == 201
        assert resp.get_json()["invoice"]["pointsEarned"] == 6

    def test_walk_in_sale_has_no_points(self, client, cashier_headers, product):
        resp = client.post("/api/invoices", headers=cashier_headers,
                           json=_payload(product, qty=2, customerName="Walk-in"))

        assert resp.status_code == 201
        invoice = resp.get_json()["invoice"]
        assert invoice["customerId"] is None
        assert invoice["customerName"] == "Walk-in"
        assert invoice["pointsEarned"] == 0
        assert invoice["pointsRedeemed"] == 0
        assert reload(product).current_stock == 8

    def test_staff_is_recorded(self, client, cashier_headers, cashier_user, product):
        resp = client.post("/api/invoices", headers=cashier_headers, json=_payload(product))
        invoice = resp.get_json()["invoice"]
        assert invoice["staffId"] == cashier_user.id
        assert invoice["staffName"] == "Casey Cashier"

    def test_same_product_on_two_rows_is_aggregated(self, client, cashier_headers, product):
        body = _payload(product, qty=4)
        body["items"].append({"productId": product.id, "quantity": 6, "price": "10.00"})
        body["subtotal"] = body["total"] = "100.00"

        resp = client.post("/api/invoices", headers=cashier_headers, json=body)

        assert resp.status_code == 201
        assert reload(product).current_stock == 0

    def test_frozen_prices_survive_catalog_edit(self, client, admin_headers, product):
        resp = client.post("/api/invoices", headers=admin_headers, json=_payload(product, qty=2))
        invoice_id = resp.get_json()["invoice"]["id"]

        edit = client.patch(f"/api/products/{product.id}", headers=admin_headers,
                            json={"retailPrice": "15.00", "costPrice": "9.00"})
        assert edit.status_code == 200

        stored = client.get(f"/api/invoices/{invoice_id}", headers=admin_headers).get_json()["invoice"]
        line = stored["items"][0]
        assert line["price"] == "10.00"
        assert line["costPrice"] == "6.00"
        assert line["productName"] == "Wireless Mouse"


# =============================================================================
# VALIDATION / NOT FOUND
# =============================================================================


class TestCommitRejected:

    @pytest.mark.parametrize(
        "body",
        [
            {"items": [], "subtotal": "0", "total": "0"},
            {"items": [{"productId": 1, "quantity": 0, "price": "1"}], "subtotal": "1", "total": "1"},
            {"items": [{"productId": 1, "quantity": 1}], "subtotal": "1", "total": "1"},
            {"items": [{"productId": 1, "quantity": 1, "price": "1"}], "total": "1"},
            {"items": [{"productId": 1, "quantity": 1, "price": "1"}], "subtotal": "1", "total": "-1"},
            {"items": [{"productId": 1, "quantity": 1, "price": "1"}], "subtotal": "1", "total": "1",
             "payments": [{"method": "Cash", "amount": "-5"}]},
        ],
    )
    def test_invalid_payload(self, client, cashier_headers, product, body):
        resp = client.post("/api/invoices", headers=cashier_headers, json=body)
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "validation"
        assert reload(product).current_stock == 10

    def test_unknown_product(self, client, cashier_headers, product):
        body = _payload(product)
        body["items"].append({"productId": 9999, "quantity": 1, "price": "1.00"})

        resp = client.post("/api/invoices", headers=cashier_headers, json=body)

        assert resp.status_code == 404
        data = resp.get_json()
        assert data["kind"] == "product-not-found"
        assert data["details"]["productIds"] == [9999]
        assert reload(product).current_stock == 10
        assert _invoice_count() == 0

    def test_unknown_customer(self, client, cashier_headers, product):
        body = _payload(product, customerId=4242)
        resp = client.post("/api/invoices", headers=cashier_headers, json=body)
        assert resp.status_code == 404
        assert resp.get_json()["kind"] == "customer-not-found"
        assert reload(product).current_stock == 10

    def test_duplicate_invoice_number(self, client, cashier_headers, product):
        first = client.post("/api/invoices", headers=cashier_headers,
                            json=_payload(product, invoiceNumber="INV-TEST-0001"))
        assert first.status_code == 201

        second = client.post("/api/invoices", headers=cashier_headers,
                             json=_payload(product, invoiceNumber="INV-TEST-0001"))
        assert second.status_code == 409
        assert second.get_json()["kind"] == "duplicate-invoice-number"
        assert reload(product).current_stock == 9

    def test_accountant_cannot_commit(self, client, accountant_headers, product):
        resp = client.post("/api/invoices", headers=accountant_headers, json=_payload(product))
        assert resp.status_code == 403
        assert reload(product).current_stock == 10

    def test_other_integrity_errors_are_not_duplicates(self, client, cashier_headers, product, monkeypatch):
        def _fail(draft, staff):
            raise IntegrityError("INSERT INTO invoice_lines", {}, Exception("FOREIGN KEY constraint failed"))

        monkeypatch.setattr(invoice_service, "_commit_atomic_locked", _fail)

        resp = client.post("/api/invoices", headers=cashier_headers, json=_payload(product))

        assert resp.status_code == 500
        assert _invoice_count() == 0

    @pytest.mark.parametrize(
        "message, expected",
        [
            ("UNIQUE constraint failed: invoices.invoice_number", True),
            ('duplicate key value violates unique constraint "uq_invoices_number"', True),
            ("FOREIGN KEY constraint failed", False),
            ("NOT NULL constraint failed: invoice_lines.product_id", False),
        ],
    )
    def test_invoice_number_conflict_detection(self, message, expected):
        exc = IntegrityError("INSERT INTO invoices", {}, Exception(message))
        assert invoice_service._is_invoice_number_conflict(exc) is expected


# =============================================================================
# ROLLBACK
# =============================================================================


class TestAtomicRollback:
    """Two Points rows of 20 on a $50 sale for a customer holding 30 points."""

    def _body(self, product, customer):
        return _payload(product, qty=5, customer=customer, payments=[
            {"method": "Points", "amount": "20"},
            {"method": "Points", "amount": "20"},
        ])

    def test_per_row_rows_debit_at_most_the_balance(self, app, client, cashier_headers, product, loyal_customer, monkeypatch):
        monkeypatch.setitem(app.config, "POINTS_CAP_POLICY", "PER_ROW")

        resp = client.post("/api/invoices", headers=cashier_headers, json=self._body(product, loyal_customer))

        assert resp.status_code == 201
        invoice = resp.get_json()["invoice"]
        assert [p["amount"] for p in invoice["payments"]] == ["20.00", "20.00"]
        assert invoice["pointsRedeemed"] == 30
        assert invoice["pointsEarned"] == 5
        assert reload(loyal_customer).loyalty_points == 5
        assert reload(product).current_stock == 5

    def test_shared_cap_commits(self, app, client, cashier_headers, product, loyal_customer, monkeypatch):
        monkeypatch.setitem(app.config, "POINTS_CAP_POLICY", "SHARED")

        resp = client.post("/api/invoices", headers=cashier_headers, json=self._body(product, loyal_customer))

        assert resp.status_code == 201
        invoice = resp.get_json()["invoice"]
        assert [p["amount"] for p in invoice["payments"]] == ["20.00", "10.00"]
        assert invoice["pointsRedeemed"] == 30
        assert invoice["balance"] == "20.00"
        assert reload(loyal_customer).loyalty_points == 5
        assert reload(product).current_stock == 5

    def test_redeemed_points_and_points_row_share_the_balance(self, client, cashier_headers, product, loyal_customer):
        body = _payload(product, qty=5, customer=loyal_customer, pointsRedeemed=30,
                        payments=[{"method": "Points", "amount": "30"}])
        body["total"] = "20.00"

        resp = client.post("/api/invoices", headers=cashier_headers, json=body)

        assert resp.status_code == 201
        invoice = resp.get_json()["invoice"]
        assert invoice["pointsRedeemed"] == 30
        assert invoice["pointsEarned"] == 2
        assert reload(loyal_customer).loyalty_points == 2

    def test_stale_balance_is_reread(self, product, loyal_customer):
        """A balance read before another commit spent from it is re-read and clamped again."""
        taken = invoice_service._debit_loyalty(
            loyal_customer, 40, balance=50, credit=0, spent=Decimal("0"),
        )
        db.session.commit()

        assert taken == 30
        assert reload(loyal_customer).loyalty_points == 0

    def test_insufficient_stock_touches_nothing(self, client, cashier_headers, product, last_unit_product, loyal_customer):
        body = _payload(product, qty=2, customer=loyal_customer)
        body["items"].append({"productId": last_unit_product.id, "quantity": 3, "price": "40.00"})
        body["subtotal"] = body["total"] = "140.00"

        resp = client.post("/api/invoices", headers=cashier_headers, json=body)

        assert resp.status_code == 409
        data = resp.get_json()
        assert data["kind"] == "insufficient-stock"
        assert data["details"]["items"] == [
            {"productId": last_unit_product.id, "requestedQuantity": 3, "currentStock": 1},
        ]
        assert reload(product).current_stock == 10
        assert reload(loyal_customer).total_spent == Decimal("0")


# =============================================================================
# LAST-UNIT RACE
# =============================================================================


class TestLastUnitRaceLegacy:
    """Sequential read-modify-write: both sales succeed and stock goes to -1."""

    def test_two_sales_of_last_unit_oversell(self, app, client, cashier_headers, last_unit_product, monkeypatch):
        monkeypatch.setitem(app.config, "INVOICE_COMMIT_MODE", "LEGACY")

        first = client.post("/api/invoices", headers=cashier_headers, json=_payload(last_unit_product, price="40.00"))
        second = client.post("/api/invoices", headers=cashier_headers, json=_payload(last_unit_product, price="40.00"))

        assert first.status_code == 201
        assert second.status_code == 201
        assert reload(last_unit_product).current_stock == -1
        assert _invoice_count() == 2

    def test_legacy_uses_flat_points_only(self, app, client, cashier_headers, db_session, customer, monkeypatch):
        monkeypatch.setitem(app.config, "INVOICE_COMMIT_MODE", "LEGACY")
        p = Product(name="Gift Card", sku="GC-2", category="Gifts",
                    retail_price="5.00", cost_price="5.00", current_stock=50, points=2)
        db_session.add(p)
        db_session.commit()

        resp = client.post("/api/invoices", headers=cashier_headers,
                           json=_payload(p, qty=3, price="5.00", customer=customer))

        assert resp.status_code == 201
        assert resp.get_json()["invoice"]["pointsEarned"] == 1

    def test_legacy_redemption_is_clamped_to_balance(self, app, client, cashier_headers, product, loyal_customer, monkeypatch):
        monkeypatch.setitem(app.config, "INVOICE_COMMIT_MODE", "LEGACY")

        resp = client.post("/api/invoices", headers=cashier_headers,
                           json=_payload(product, qty=5, customer=loyal_customer, pointsRedeemed=500))

        assert resp.status_code == 201
        assert resp.get_json()["invoice"]["pointsRedeemed"] == 30
        assert reload(loyal_customer).loyalty_points == 5


class TestLastUnitRaceAtomic:
    """Conditional decrement: the second sale of the last unit is rejected."""

    def test_second_sale_rejected(self, client, cashier_headers, last_unit_product):
        first = client.post("/api/invoices", headers=cashier_headers, json=_payload(last_unit_product, price="40.00"))
        second = client.post("/api/invoices", headers=cashier_headers, json=_payload(last_unit_product, price="40.00"))

        assert first.status_code == 201
        assert second.status_code == 409
        assert second.get_json()["kind"] == "insufficient-stock"
        assert reload(last_unit_product).current_stock == 0
        assert _invoice_count() == 1

    def test_concurrent_sales_never_oversell(self, tmp_path, password_hash):
        file_app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'race.db'}",
            "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"check_same_thread": False, "timeout": 15}},
            "INVOICE_COMMIT_MODE": "ATOMIC",
        })

        with file_app.app_context():
            db.create_all()
            staff = User(username="racer", password_hash=password_hash, full_name="Race Runner", role="Cashier")
            lamp = Product(name="Desk Lamp LED", sku="DL-004", category="Furniture",
                           retail_price="40.00", cost_price="20.00", current_stock=1)
            db.session.add_all([staff, lamp])
            db.session.commit()
            staff_id, product_id = staff.id, lamp.id

        workers = 4
        barrier = threading.Barrier(workers, timeout=30)
        outcomes = []

        def sell():
            with file_app.app_context():
                cashier = db.session.get(User, staff_id)
                barrier.wait()
                try:
                    invoice_service.commit_invoice({
                        "items": [{"productId": product_id, "quantity": 1, "price": "40.00"}],
                        "subtotal": "40.00",
                        "total": "40.00",
                    }, staff=cashier)
                    outcomes.append("committed")
                except InsufficientStockError:
                    outcomes.append("insufficient-stock")
                except OperationalError:
                    outcomes.append("locked")
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=sell) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)

        with file_app.app_context():
            assert outcomes.count("committed") == 1
            assert len(outcomes) == workers
            assert db.session.get(Product, product_id).current_stock == 0
            assert db.session.query(Invoice).count() == 1
            db.session.remove()
            db.engine.dispose()


# =============================================================================
# READ SIDE
# =============================================================================


class TestInvoiceQueries:

    def test_list_newest_first_and_filter_by_customer(self, client, cashier_headers, product, customer):
        client.post("/api/invoices", headers=cashier_headers, json=_payload(product))
        client.post("/api/invoices", headers=cashier_headers, json=_payload(product, customer=customer))

        everything = client.get("/api/invoices", headers=cashier_headers).get_json()
        assert everything["count"] == 2
        assert everything["items"][0]["customerId"] == customer.id

        mine = client.get(f"/api/invoices?customerId={customer.id}", headers=cashier_headers).get_json()
        assert mine["count"] == 1

    def test_date_window(self, client, cashier_headers, product):
        client.post("/api/invoices", headers=cashier_headers, json=_payload(product))

        future = client.get("/api/invoices?startDate=2999-01-01", headers=cashier_headers).get_json()
        assert future["count"] == 0

        bad = client.get("/api/invoices?startDate=yesterday", headers=cashier_headers)
        assert bad.status_code == 400

    def test_missing_invoice(self, client, cashier_headers, db_session):
        resp = client.get("/api/invoices/12345", headers=cashier_headers)
        assert resp.status_code == 404
        assert resp.get_json()["kind"] == "invoice-not-found"

    def test_lookup_by_number(self, client, cashier_headers, cashier_user, product):
        invoice = invoice_service.commit_invoice(_payload(product, invoiceNumber="INV-LOOKUP-1"), staff=cashier_user)

        found = client.get("/api/invoices/number/INV-LOOKUP-1", headers=cashier_headers)
        assert found.status_code == 200
        assert found.get_json()["invoice"]["id"] == invoice.id

        missing = client.get("/api/invoices/number/INV-NOPE", headers=cashier_headers)
        assert missing.status_code == 404
        assert missing.get_json()["kind"] == "invoice-not-found"
