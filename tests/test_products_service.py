import pytest

from backoffice.errors import ValidationError
from backoffice.services import products_service
from backoffice.services.stock_service import get_ledger_quantity
from backoffice.validation import ConflictError


def test_create_product_without_stock_has_no_transactions(db_session):
    product = products_service.create_product(patch={"name": "Water", "price_cents": 150}, initial_stock=0)
    assert product.stock == 0
    assert product.inventory_transactions.count() == 0


def test_create_product_with_initial_stock(db_session):
    product = products_service.create_product(patch={"name": "Juice", "price_cents": 350}, initial_stock=12)
    assert product.stock == 12
    assert get_ledger_quantity(product.id) == 12


def test_duplicate_sku_conflicts(db_session, make_product):
    make_product(sku="DUP-1")
    with pytest.raises(ConflictError) as exc:
        products_service.create_product(patch={"name": "Other", "price_cents": 100, "sku": "DUP-1"})
    assert exc.value.status_code == 409


def test_negative_initial_stock_rejected(db_session):
    with pytest.raises(ValidationError):
        products_service.create_product(patch={"name": "Bad", "price_cents": 100}, initial_stock=-5)


def test_list_products_filters(db_session, make_product):
    make_product(name="Americano", stock=2, low_stock_alert=5)
    make_product(name="Brownie", stock=20, low_stock_alert=5)
    make_product(name="Chai", stock=1, is_active=False)

    result = products_service.list_products()
    assert result["count"] == 3

    low = products_service.list_products(low_stock=True)
    assert [p["name"] for p in low["items"]] == ["Americano"]
    assert low["items"][0]["is_low_stock"] is True

    active = products_service.list_products(active=True, search="ie")
    assert [p["name"] for p in active["items"]] == ["Brownie"]


def test_list_products_paginated(db_session, make_product):
    for _ in range(3):
        make_product()

    result = products_service.list_products(page=2, per_page=2)
    assert result["count"] == 1
    assert result["pagination"]["total"] == 3
    assert result["pagination"]["total_pages"] == 2
    assert result["pagination"]["has_prev"] is True
    assert result["pagination"]["has_next"] is False
