"""
Pytest fixtures for karat backend tests.

Provides the test app and database, one shop with a user per role, a
priced catalogue (GOLD 22K at 6000.00/g) and tagged stock items.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from karat import create_app
from karat.config import TestConfig
from karat.extensions import db
from karat.models import Customer, Product, Shop, StockItem, User
from karat.models.auth import ROLE_ACCOUNTS, ROLE_OWNER, ROLE_SALES
from karat.services import rate_service, session_service
from karat.services.auth_service import hash_password
from karat.services.metrics import InMemoryMetrics
from karat.time_utils import utcnow


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig, metrics=InMemoryMetrics())

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash():
    # bcrypt at cost 12 is slow; hash once per run
    return hash_password(PASSWORD)


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def metrics(app):
    """Fresh in-memory sink for the app, so route tests can assert on it."""
    sink = InMemoryMetrics()
    app.extensions["karat.metrics"] = sink
    return sink


@pytest.fixture(scope='function')
def shop(db_session):
    shop = Shop(name="Main Showroom", code="MAIN", is_active=True)
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def other_shop(db_session):
    shop = Shop(name="Branch Showroom", code="BRANCH", is_active=True)
    db_session.add(shop)
    db_session.commit()
    return shop


def _make_user(db_session, shop, username, role, password_hash):
    user = User(
        shop_id=shop.id,
        username=username,
        email=f"{username}@main.local",
        password_hash=password_hash,
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def owner(db_session, shop, password_hash):
    return _make_user(db_session, shop, "owner", ROLE_OWNER, password_hash)


@pytest.fixture(scope='function')
def sales_user(db_session, shop, password_hash):
    return _make_user(db_session, shop, "sales", ROLE_SALES, password_hash)


@pytest.fixture(scope='function')
def accounts_user(db_session, shop, password_hash):
    return _make_user(db_session, shop, "accounts", ROLE_ACCOUNTS, password_hash)


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def _headers_for(user) -> dict:
    _, token = session_service.create_session(user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def login_headers(db_session):
    """Callable: user -> Authorization headers for a fresh session."""
    return _headers_for


@pytest.fixture(scope='function')
def owner_headers(owner):
    return _headers_for(owner)


@pytest.fixture(scope='function')
def sales_headers(sales_user):
    return _headers_for(sales_user)


@pytest.fixture(scope='function')
def accounts_headers(accounts_user):
    return _headers_for(accounts_user)


@pytest.fixture(scope='function')
def customer(db_session, shop):
    customer = Customer(shop_id=shop.id, name="Asha Rao", phone="9800000001")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def product(db_session, shop):
    """22K gold chain: 10.000 g net, 2% wastage, 500.00 making."""
    product = Product(
        shop_id=shop.id,
        sku="CHAIN-22K-001",
        name="Gold Chain",
        metal_type="GOLD",
        purity="22K",
        gross_weight=Decimal("10.250"),
        net_weight=Decimal("10.000"),
        wastage_percent=Decimal("2.00"),
        making_charges=Decimal("500.00"),
        stone_value=Decimal("0.00"),
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def gold_rate(db_session, shop, owner):
    return rate_service.create_rate(
        shop.id,
        "GOLD",
        "22K",
        "6000.00",
        effective_date=utcnow() - timedelta(days=1),
        user_id=owner.id,
    )


def _make_stock_items(db_session, shop, product, count, prefix="TAG"):
    base = utcnow() - timedelta(days=30)
    items = []
    for i in range(count):
        item = StockItem(
            shop_id=shop.id,
            product_id=product.id,
            tag_id=f"{prefix}-{i + 1:04d}",
            barcode=f"BC-{prefix}-{i + 1:04d}",
            purchase_cost=Decimal("55000.00"),
            purchase_date=base + timedelta(days=i),
        )
        db_session.add(item)
        items.append(item)
    db_session.commit()
    return items


@pytest.fixture(scope='function')
def stock_items(db_session, shop, product):
    """Three AVAILABLE items, oldest purchase first."""
    return _make_stock_items(db_session, shop, product, 3)


@pytest.fixture(scope='function')
def priced_stock(gold_rate, stock_items):
    """Stock items with a current rate, so they can be sold (61700.00 each)."""
    return stock_items


@pytest.fixture(scope='function')
def make_stock(db_session, shop):
    """Callable: (product, count, prefix) -> committed AVAILABLE items."""
    def _make(product, count, prefix="ITEM"):
        return _make_stock_items(db_session, shop, product, count, prefix=prefix)
    return _make
