"""
Concurrent engine operations against a file-backed SQLite database.

Each worker runs in its own thread with its own app context (and so its own
session and connection), the way parallel requests would.
"""

import threading

import pytest

from backoffice import create_app
from backoffice.errors import EngineError, InsufficientStockError, OverpaymentError
from backoffice.extensions import db
from backoffice.models import Order, Product, User
from backoffice.services import order_service, products_service
from backoffice.services.order_service import LineItemRequest
from backoffice.services.payment_service import get_total_paid_cents
from backoffice.services.stock_service import get_ledger_quantity

from .conftest import TestConfig


@pytest.fixture
def file_app(tmp_path):
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'concurrency.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 30, "check_same_thread": False}}
        LOCK_RETRY_ATTEMPTS = 10

    app = create_app(FileConfig)
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def seeded(file_app):
    """User and a product with 10 units, created before any thread starts."""
    with file_app.app_context():
        user = User(name="Thread", email="thread@test.local", role="waitress", is_active=True)
        db.session.add(user)
        db.session.commit()
        product = products_service.create_product(
            patch={"name": "Bagel", "sku": "BAGEL", "price_cents": 300},
            initial_stock=10,
        )
        ids = {"user_id": user.id, "product_id": product.id}
        db.session.remove()
    return ids


def _run_threads(app, target, count):
    results = []
    lock = threading.Lock()

    def worker(index):
        with app.app_context():
            try:
                outcome = target(index)
            except EngineError as exc:
                outcome = exc
            finally:
                db.session.remove()
            with lock:
                results.append(outcome)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def test_concurrent_orders_never_oversell(file_app, seeded):
    def create(_index):
        order = order_service.create_order(
            user_id=seeded["user_id"],
            items=[LineItemRequest(product_id=seeded["product_id"], quantity=3)],
        )
        return order.id

    results = _run_threads(file_app, create, 6)

    created = [r for r in results if isinstance(r, int)]
    rejected = [r for r in results if isinstance(r, InsufficientStockError)]
    assert len(created) == 3
    assert len(rejected) == 3
    assert len(created) + len(rejected) == len(results)

    with file_app.app_context():
        product = db.session.get(Product, seeded["product_id"])
        assert product.stock == 1
        assert get_ledger_quantity(product.id) == product.stock
        assert db.session.query(Order).count() == 3
        db.session.remove()


def test_concurrent_payments_never_exceed_total(file_app, seeded):
    with file_app.app_context():
        order = order_service.create_order(
            user_id=seeded["user_id"],
            items=[LineItemRequest(product_id=seeded["product_id"], quantity=2)],
        )
        order_id = order.id
        assert order.total_cents == 600
        db.session.remove()

    def pay(_index):
        result = order_service.add_payment(
            order_id, amount_cents=200, method="cash", user_id=seeded["user_id"],
        )
        return result.total_paid_cents

    results = _run_threads(file_app, pay, 5)

    accepted = [r for r in results if isinstance(r, int)]
    rejected = [r for r in results if isinstance(r, OverpaymentError)]
    assert len(accepted) == 3
    assert len(rejected) == 2
    assert sorted(accepted) == [200, 400, 600]

    with file_app.app_context():
        order = db.session.get(Order, order_id)
        assert get_total_paid_cents(order_id) == 600
        assert order.payment_status == "paid"
        assert order.status == "completed"
        db.session.remove()
