"""
Pytest fixtures for shoptally backend tests.

Provides an in-memory database, a scoped owner with catalog items, and an
authenticated test client.
"""

from datetime import datetime

import pytest
from shoptally import create_app
from shoptally.config import Config
from shoptally.extensions import db
from shoptally.models import BusinessProfile, Product, Sale, Service, User, SALE_SHAPE_LEGACY
from shoptally.services import session_service
from shoptally.services.scope_service import Scope


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    LOW_STOCK_THRESHOLD = 3


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


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
def owner(db_session):
    """User with a default business profile."""
    user = User(email="owner@shop.test", company_name="Corner Shop")
    db_session.add(user)
    db_session.flush()
    db_session.add(BusinessProfile(user_id=user.id, business_id="default", name="Corner Shop"))
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def other_owner(db_session):
    user = User(email="rival@shop.test", company_name="Rival Shop")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def scope(owner):
    return Scope(user_id=owner.id)


def make_product(db_session, owner, *, name="Mug", category="Kitchen", cost_cents=400,
                 price_cents=1000, stock=10, business_id=None):
    product = Product(
        user_id=owner.id,
        business_id=business_id,
        name=name,
        category=category,
        sku=f"SKU-{name.upper()}",
        cost_price_cents=cost_cents,
        sale_price_cents=price_cents,
        current_stock=stock,
    )
    db_session.add(product)
    db_session.commit()
    return product


def make_legacy_sale(db_session, owner, product, *, quantity, unit_price_cents, sale_date=None,
                     sale_expenses_cents=0):
    """Shape-1 row as written before line items existed; totals left NULL."""
    sale = Sale(
        user_id=owner.id,
        business_id=None,
        shape=SALE_SHAPE_LEGACY,
        sale_date=sale_date or datetime(2026, 3, 10, 12, 0, 0),
        product_id=product.id,
        product_name=product.name,
        quantity=quantity,
        unit_sale_price_cents=unit_price_cents,
        unit_cost_price_cents=product.cost_price_cents,
        sale_expenses_cents=sale_expenses_cents,
    )
    db_session.add(sale)
    db_session.commit()
    return sale


@pytest.fixture(scope='function')
def product(db_session, owner):
    """Mug: cost 4.00, price 10.00, 10 in stock."""
    return make_product(db_session, owner)


@pytest.fixture(scope='function')
def second_product(db_session, owner):
    """Pen: cost 2.00, price 5.00, 20 in stock."""
    return make_product(db_session, owner, name="Pen", category="Stationery", cost_cents=200,
                        price_cents=500, stock=20)


@pytest.fixture(scope='function')
def service(db_session, owner):
    svc = Service(
        user_id=owner.id,
        name="Gift wrapping",
        price_cents=300,
        category="Extras",
        custom_fields={"duration": "5m"},
    )
    db_session.add(svc)
    db_session.commit()
    return svc


@pytest.fixture(scope='function')
def auth_token(owner):
    _session, token = session_service.issue_session(owner.id)
    return token


def auth_headers(token: str, business_id: str | None = None) -> dict:
    """Helper to create Authorization headers."""
    headers = {'Authorization': f'Bearer {token}'}
    if business_id:
        headers['X-Business-Id'] = business_id
    return headers
