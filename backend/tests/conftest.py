"""
Pytest fixtures for CounterPOS backend tests.

Provides test database setup, one staff account per role, auth headers,
and a small catalog.
"""

import pytest

from counterpos import create_app
from counterpos.extensions import db
from counterpos.models import User, Product, Customer
from counterpos.services.auth_service import hash_password
from counterpos.services import permission_service, session_service


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash once per run."""
    return hash_password(TEST_PASSWORD)


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    # Clear all data but keep schema
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    permission_service.initialize_role_permissions()

    yield db.session

    # Cleanup after test
    db.session.rollback()


def _make_user(password_hash, username: str, role: str, full_name: str) -> User:
    user = User(
        username=username,
        email=f"{username}@counterpos.test",
        password_hash=password_hash,
        full_name=full_name,
        role=role,
        status="Active",
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session, password_hash):
    return _make_user(password_hash, "admin", "Admin", "Ada Admin")


@pytest.fixture(scope='function')
def manager_user(db_session, password_hash):
    return _make_user(password_hash, "manager", "Manager", "Morgan Manager")


@pytest.fixture(scope='function')
def cashier_user(db_session, password_hash):
    return _make_user(password_hash, "cashier", "Cashier", "Casey Cashier")


@pytest.fixture(scope='function')
def accountant_user(db_session, password_hash):
    return _make_user(password_hash, "accountant", "Accountant", "Alex Accountant")


def auth_headers(user: User) -> dict:
    """Helper to create Authorization headers for a user."""
    _, token = session_service.create_session(user.id)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest.fixture(scope='function')
def manager_headers(manager_user):
    return auth_headers(manager_user)


@pytest.fixture(scope='function')
def cashier_headers(cashier_user):
    return auth_headers(cashier_user)


@pytest.fixture(scope='function')
def accountant_headers(accountant_user):
    return auth_headers(accountant_user)


@pytest.fixture(scope='function')
def product(db_session):
    """Retail $10, wholesale $8, VIP $9, cost $6, 10 in stock."""
    p = Product(
        name="Wireless Mouse",
        sku="WM-001",
        barcode="1234567890123",
        category="Electronics",
        retail_price="10.00",
        wholesale_price="8.00",
        vip_price="9.00",
        cost_price="6.00",
        current_stock=10,
        min_stock=5,
    )
    db_session.add(p)
    db_session.commit()
    return p


@pytest.fixture(scope='function')
def last_unit_product(db_session):
    """Exactly one unit left."""
    p = Product(
        name="Desk Lamp LED",
        sku="DL-004",
        category="Furniture",
        retail_price="40.00",
        cost_price="20.00",
        current_stock=1,
        min_stock=2,
    )
    db_session.add(p)
    db_session.commit()
    return p


@pytest.fixture(scope='function')
def customer(db_session):
    """Retail customer with no invoices and no points."""
    c = Customer(name="Sarah Johnson", phone="+1-555-0123", email="sarah.j@email.com", type="Retail")
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def loyal_customer(db_session):
    """VIP customer holding 30 loyalty points."""
    c = Customer(name="Mike Chen", phone="+1-555-0124", type="VIP", loyalty_points=30)
    db_session.add(c)
    db_session.commit()
    return c


def reload(instance):
    """Re-read a row after a request changed it behind the identity map."""
    db.session.expire_all()
    return db.session.get(type(instance), instance.id)
