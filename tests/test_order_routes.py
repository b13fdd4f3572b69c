"""
HTTP tests: envelopes, status codes, authentication and roles.
"""

from backoffice.models import Order

from .conftest import ADMIN_TOKEN, KITCHEN_TOKEN, WAITRESS_TOKEN, auth_headers


def _create(client, product, quantity=1, **extra):
    body = {"items": [{"product_id": product.id, "quantity": quantity}]}
    body.update(extra)
    return client.post("/api/orders", json=body, headers=auth_headers(WAITRESS_TOKEN))


class TestAuthentication:
    def test_missing_token(self, client, db_session):
        response = client.get("/api/orders")
        assert response.status_code == 401
        assert response.json == {"success": False, "message": "Authentication required"}

    def test_unknown_token(self, client, db_session, waitress):
        response = client.get("/api/orders", headers=auth_headers("nope"))
        assert response.status_code == 401

    def test_inactive_user(self, client, db_session, waitress):
        waitress.is_active = False
        db_session.commit()
        response = client.get("/api/orders", headers=auth_headers(WAITRESS_TOKEN))
        assert response.status_code == 401

    def test_role_required_for_cancel(self, client, db_session, waitress, kitchen_user, product):
        order_id = _create(client, product).json["data"]["id"]

        response = client.put(f"/api/orders/{order_id}/cancel", json={}, headers=auth_headers(KITCHEN_TOKEN))
        assert response.status_code == 403
        assert response.json["success"] is False


class TestOrderRoutes:
    def test_create_returns_201_with_detail(self, client, db_session, waitress, product):
        response = _create(
            client, product, quantity=3,
            discount={"type": "fixed", "value": 500},
            payment={"amount_cents": 400, "method": "cash"},
            notes="Table 2",
        )

        assert response.status_code == 201
        body = response.json
        assert body["success"] is True
        data = body["data"]
        assert data["subtotal_cents"] == 1_500
        assert data["discount_cents"] == 500
        assert data["total_cents"] == 1_000
        assert data["payment_status"] == "partial"
        assert data["total_paid_cents"] == 400
        assert data["remaining_cents"] == 600
        assert data["user_id"] == waitress.id
        assert len(data["items"]) == 1
        assert data["items"][0]["product_name"] == "Espresso"

    def test_create_validation_error(self, client, db_session, waitress):
        response = client.post("/api/orders", json={"items": []}, headers=auth_headers(WAITRESS_TOKEN))
        assert response.status_code == 400
        assert response.json == {
            "success": False,
            "message": "Order must have at least one item",
            "details": {"field": "items"},
        }

    def test_create_insufficient_stock(self, client, db_session, waitress, product):
        response = _create(client, product, quantity=11)

        assert response.status_code == 400
        assert response.json["message"] == "Insufficient stock for Espresso (requested: 11, available: 10)"
        assert response.json["details"]["available"] == 10
        assert db_session.query(Order).count() == 0

    def test_create_unknown_product(self, client, db_session, waitress):
        response = client.post(
            "/api/orders",
            json={"items": [{"product_id": 9999, "quantity": 1}]},
            headers=auth_headers(WAITRESS_TOKEN),
        )
        assert response.status_code == 404

    def test_get_and_list(self, client, db_session, waitress, product):
        order_id = _create(client, product).json["data"]["id"]

        response = client.get(f"/api/orders/{order_id}", headers=auth_headers(WAITRESS_TOKEN))
        assert response.status_code == 200
        assert response.json["data"]["id"] == order_id

        response = client.get("/api/orders?status=pending&limit=5", headers=auth_headers(WAITRESS_TOKEN))
        assert response.status_code == 200
        data = response.json["data"]
        assert [o["id"] for o in data["orders"]] == [order_id]
        assert data["pagination"] == {"page": 1, "limit": 5, "total": 1, "total_pages": 1}

        assert client.get("/api/orders/999", headers=auth_headers(WAITRESS_TOKEN)).status_code == 404

    def test_list_bad_filter(self, client, db_session, waitress):
        response = client.get("/api/orders?start_date=yesterday", headers=auth_headers(WAITRESS_TOKEN))
        assert response.status_code == 400

    def test_add_items(self, client, db_session, waitress, product):
        order_id = _create(client, product).json["data"]["id"]

        response = client.post(
            f"/api/orders/{order_id}/items",
            json={"items": [{"product_id": product.id, "quantity": 2}]},
            headers=auth_headers(WAITRESS_TOKEN),
        )
        assert response.status_code == 200
        data = response.json["data"]
        assert data["order"]["subtotal_cents"] == 1_500
        assert len(data["added_items"]) == 1

    def test_update_discount_percentage(self, client, db_session, waitress, product):
        order_id = _create(client, product, quantity=4).json["data"]["id"]

        response = client.put(
            f"/api/orders/{order_id}/discount",
            json={"discount": {"type": "percentage", "value": 25}},
            headers=auth_headers(WAITRESS_TOKEN),
        )
        assert response.status_code == 200
        assert response.json["data"]["discount_cents"] == 500
        assert response.json["data"]["total_cents"] == 1_500

    def test_huge_discounts_clamped(self, client, db_session, waitress, product):
        response = _create(client, product, quantity=2, discount={"type": "fixed", "value": 10**20})
        assert response.status_code == 201
        data = response.json["data"]
        assert data["discount_cents"] == 1_000
        assert data["discount_value"] == 1_000
        assert data["total_cents"] == 0

        response = client.put(
            f"/api/orders/{data['id']}/discount",
            json={"discount": {"type": "percentage", "value": 1e20}},
            headers=auth_headers(WAITRESS_TOKEN),
        )
        assert response.status_code == 200
        assert response.json["data"]["discount_value"] == 10_000
        assert response.json["data"]["discount_cents"] == 1_000

    def test_payment_flow_and_overpayment(self, client, db_session, waitress, product):
        order_id = _create(client, product, quantity=2).json["data"]["id"]
        url = f"/api/orders/{order_id}/payment"

        response = client.post(url, json={"amount_cents": 1_000, "method": "cash"}, headers=auth_headers(WAITRESS_TOKEN))
        assert response.status_code == 200
        data = response.json["data"]
        assert data["total_paid_cents"] == 1_000
        assert data["remaining_cents"] == 0
        assert data["order"]["status"] == "completed"
        assert data["payment"]["method"] == "cash"

        response = client.post(url, json={"amount_cents": 1, "method": "cash"}, headers=auth_headers(WAITRESS_TOKEN))
        assert response.status_code == 400
        assert response.json["details"]["remaining_cents"] == 0

    def test_payment_requires_fields(self, client, db_session, waitress, product):
        order_id = _create(client, product).json["data"]["id"]
        response = client.post(f"/api/orders/{order_id}/payment", json={"method": "cash"},
                               headers=auth_headers(WAITRESS_TOKEN))
        assert response.status_code == 400

    def test_cancel_restocks(self, client, db_session, waitress, product):
        order_id = _create(client, product, quantity=4).json["data"]["id"]

        response = client.put(
            f"/api/orders/{order_id}/cancel",
            json={"reason": "Duplicate"},
            headers=auth_headers(WAITRESS_TOKEN),
        )
        assert response.status_code == 200
        assert response.json["data"]["status"] == "cancelled"
        assert response.json["data"]["notes"] == "Cancelled: Duplicate"

        db_session.expire_all()
        assert product.stock == 10

        response = client.put(f"/api/orders/{order_id}/cancel", json={}, headers=auth_headers(WAITRESS_TOKEN))
        assert response.status_code == 400
        assert response.json["message"] == "Order is already cancelled"

    def test_status_override(self, client, db_session, admin_user, waitress, product):
        order_id = _create(client, product).json["data"]["id"]

        response = client.put(
            f"/api/orders/{order_id}/status",
            json={"status": "completed"},
            headers=auth_headers(ADMIN_TOKEN),
        )
        assert response.status_code == 200
        assert response.json["data"]["status"] == "completed"

        response = client.put(
            f"/api/orders/{order_id}/status",
            json={"status": "archived"},
            headers=auth_headers(ADMIN_TOKEN),
        )
        assert response.status_code == 400


class TestProductRoutes:
    def test_create_product_and_history(self, client, db_session, admin_user):
        response = client.post(
            "/api/products",
            json={"name": "Flat White", "price_cents": 480, "sku": "FW-1", "stock": 6},
            headers=auth_headers(ADMIN_TOKEN),
        )
        assert response.status_code == 201
        product_id = response.json["data"]["id"]
        assert response.json["data"]["stock"] == 6

        response = client.put(
            f"/api/products/{product_id}/stock",
            json={"stock": 9, "notes": "Delivery"},
            headers=auth_headers(ADMIN_TOKEN),
        )
        assert response.status_code == 200
        assert response.json["data"]["stock"] == 9

        response = client.get(f"/api/products/{product_id}/inventory", headers=auth_headers(ADMIN_TOKEN))
        assert response.status_code == 200
        data = response.json["data"]
        assert [tx["type"] for tx in data["transactions"]] == ["adjustment", "initial"]
        assert data["ledger_quantity"] == 9

    def test_duplicate_sku(self, client, db_session, admin_user, make_product):
        make_product(sku="SAME")
        response = client.post(
            "/api/products",
            json={"name": "Copy", "price_cents": 100, "sku": "SAME"},
            headers=auth_headers(ADMIN_TOKEN),
        )
        assert response.status_code == 409

    def test_waitress_cannot_create_products(self, client, db_session, waitress):
        response = client.post(
            "/api/products",
            json={"name": "Nope", "price_cents": 100},
            headers=auth_headers(WAITRESS_TOKEN),
        )
        assert response.status_code == 403

    def test_list_products(self, client, db_session, waitress, product):
        response = client.get("/api/products?active=true", headers=auth_headers(WAITRESS_TOKEN))
        assert response.status_code == 200
        assert response.json["data"]["count"] == 1


def test_health(client, db_session, settings):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json["status"] == "healthy"
    assert response.json["checks"]["settings"]["details"]["tax_rate_bps"] == 1000
