"""
Pytest fixtures for back office tests.

Provides an in-memory database, model fixtures and a test client.
"""

import pytest

from backoffice import create_app
from backoffice.config import Config
from backoffice.extensions import db
from backoffice.models import Customer, Product, Settings, User
from backoffice.services import products_service
from backoffice.services.token_service import hash_token


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    ORDER_TAX_MODE = "legacy"
    LOCK_RETRY_BACKOFF = 0


ADMIN_TOKEN = "admin-token"
WAITRESS_TOKEN = "waitress-token"
KITCHEN_TOKEN = "kitchen-token"


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

        # Per-test config changes (tax mode) must not leak
        saved_tax_mode = app.config["ORDER_TAX_MODE"]

        yield db.session

        # Cleanup after test
        db.session.rollback()
        app.config["ORDER_TAX_MODE"] = saved_tax_mode


@pytest.fixture(scope='function')
def settings(db_session):
    """Settings row with a 10% tax rate."""
    row = Settings(business_name="Test Cafe", tax_rate_bps=1000, currency="USD")
    db_session.add(row)
    db_session.commit()
    return row


def _make_user(db_session, name, email, role, token, is_active=True):
    user = User(name=name, email=email, role=role, is_active=is_active, api_token_hash=hash_token(token))
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user(db_session, "Admin", "admin@test.local", "admin", ADMIN_TOKEN)


@pytest.fixture(scope='function')
def waitress(db_session):
    return _make_user(db_session, "Wendy", "wendy@test.local", "waitress", WAITRESS_TOKEN)


@pytest.fixture(scope='function')
def kitchen_user(db_session):
    """A user whose role may not cancel or override orders."""
    return _make_user(db_session, "Kit", "kit@test.local", "kitchen", KITCHEN_TOKEN)


@pytest.fixture(scope='function')
def customer(db_session):
    row = Customer(name="Carla Customer", email="carla@test.local", phone="555-0100")
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: products are created through the service so stock has an initial transaction."""
    counter = {"n": 0}

    def _make(name=None, price_cents=500, stock=10, **extra):
        counter["n"] += 1
        patch = {
            "name": name or f"Product {counter['n']}",
            "sku": f"SKU-{counter['n']:03d}",
            "price_cents": price_cents,
        }
        patch.update(extra)
        return products_service.create_product(patch=patch, initial_stock=stock)

    return _make


@pytest.fixture(scope='function')
def product(make_product):
    """Stock 10, price 5.00."""
    return make_product(name="Espresso", price_cents=500, stock=10)


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
