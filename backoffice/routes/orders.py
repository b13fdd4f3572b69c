# Overview: Flask API routes for order operations; parses input and returns JSON responses.

"""
Order API Routes

WHY: Thin HTTP layer over order_service. Routes parse and validate the JSON
body, call exactly one engine operation, and wrap the result in the
{"success": true, "data": ...} envelope.

ERRORS:
- EngineError subclasses -> {"success": false, "message", "details"} with
  the error's status_code (400 / 404)
- anything else -> logged with traceback, 500

SECURITY:
- every route requires a bearer token; the token's user is the acting user
- cancel and status override are limited to admin, manager, waitress
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import EngineError, ValidationError
from ..services import order_service, order_query_service
from ..services.token_service import ROLE_ADMIN, ROLE_MANAGER, ROLE_WAITRESS
from ..decorators import require_auth, require_role
from ..validation import coerce_int, parse_discount, parse_line_items, parse_payment


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

ORDER_STAFF_ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_WAITRESS)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


def _ok(data, status: int = 200):
    return jsonify({"success": True, "data": data}), status


def _optional_int_arg(name: str) -> int | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    return coerce_int(raw, name)


# =============================================================================
# QUERIES
# =============================================================================

@orders_bp.get("")
@require_auth
def list_orders_route():
    """
    List orders with filters and pagination.

    Query params:
    - status, payment_status, payment_method: exact match
    - customer_id, user_id: int
    - start_date, end_date: ISO-8601 (date-only end_date includes that whole day)
    - search: order number or notes substring
    - sort_by: created_at | order_number | total_cents | status | payment_status
    - sort_order: asc | desc (default desc)
    - page (default 1), limit (default 20, capped by ORDERS_PAGE_SIZE_MAX)
    """
    try:
        page = _optional_int_arg("page") or 1
        limit = min(_optional_int_arg("limit") or 20, current_app.config["ORDERS_PAGE_SIZE_MAX"])

        orders, total = order_query_service.list_orders(
            status=request.args.get("status"),
            payment_status=request.args.get("payment_status"),
            payment_method=request.args.get("payment_method"),
            customer_id=_optional_int_arg("customer_id"),
            user_id=_optional_int_arg("user_id"),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            search=request.args.get("search"),
            sort_by=request.args.get("sort_by", "created_at"),
            sort_order=request.args.get("sort_order", "desc"),
            page=page,
            limit=limit,
        )

        return _ok({
            "orders": [order.to_dict() for order in orders],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": (total + limit - 1) // limit if total else 0,
            },
        })

    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"success": False, "message": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    """Order with items, payments, customer, staff user and payment summary."""
    try:
        return _ok(order_query_service.get_order_detail(order_id))
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get order")
        return jsonify({"success": False, "message": "Internal server error"}), 500


# =============================================================================
# ENGINE OPERATIONS
# =============================================================================

@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Create an order.

    Request body:
    {
        "items": [{"product_id": 1, "quantity": 2, "variant": "Large", "notes": "..."}],
        "customer_id": 3,                                   (optional)
        "discount": {"type": "percentage", "value": 10},    (optional)
        "payment": {"amount_cents": 1500, "method": "cash"},(optional)
        "notes": "..."                                      (optional)
    }

    Returns:
        201: order detail
        400: validation, inactive product, insufficient stock, overpayment
        404: product or customer not found
    """
    try:
        data = _json_body()

        customer_id = data.get("customer_id")
        order = order_service.create_order(
            user_id=g.current_user.id,
            items=parse_line_items(data.get("items")),
            customer_id=coerce_int(customer_id, "customer_id") if customer_id is not None else None,
            discount=parse_discount(data.get("discount")),
            payment=parse_payment(data.get("payment")),
            notes=data.get("notes") or None,
        )

        return _ok(order_query_service.get_order_detail(order.id), 201)

    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"success": False, "message": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/items")
@require_auth
def add_items_route(order_id: int):
    """
    Add items to an existing order.

    Request body: {"items": [{"product_id": 1, "quantity": 1}]}
    """
    try:
        data = _json_body()

        order, new_items = order_service.add_items_to_order(
            order_id,
            parse_line_items(data.get("items")),
            user_id=g.current_user.id,
        )

        return _ok({
            "order": order_query_service.get_order_detail(order.id),
            "added_items": [item.to_dict() for item in new_items],
        })

    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add items to order")
        return jsonify({"success": False, "message": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>/discount")
@require_auth
def update_discount_route(order_id: int):
    """
    Replace the order discount.

    Request body: {"discount": {"type": "fixed", "value": 500}} or {"discount": null}
    """
    try:
        data = _json_body()
        if "discount" not in data:
            raise ValidationError("discount is required", details={"field": "discount"})

        order = order_service.update_discount(order_id, parse_discount(data["discount"]))

        return _ok(order_query_service.get_order_detail(order.id))

    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order discount")
        return jsonify({"success": False, "message": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/payment")
@require_auth
def add_payment_route(order_id: int):
    """
    Record a payment.

    Request body:
    {
        "amount_cents": 6000,
        "method": "cash",          (cash | credit_card | debit_card | transfer)
        "reference": "AUTH-123",   (optional)
        "notes": "..."             (optional)
    }
    """
    try:
        data = _json_body()
        if data.get("amount_cents") is None or not data.get("method"):
            raise ValidationError("amount_cents and method required")

        result = order_service.add_payment(
            order_id,
            amount_cents=coerce_int(data["amount_cents"], "amount_cents"),
            method=data["method"],
            user_id=g.current_user.id,
            reference=data.get("reference") or None,
            notes=data.get("notes") or None,
        )

        detail = order_query_service.get_order_detail(result.order.id)
        return _ok({
            "order": detail,
            "payment": result.payment.to_dict(),
            "total_paid_cents": result.total_paid_cents,
            "remaining_cents": detail["remaining_cents"],
        })

    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add payment")
        return jsonify({"success": False, "message": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>/cancel")
@require_auth
@require_role(*ORDER_STAFF_ROLES)
def cancel_order_route(order_id: int):
    """
    Cancel an order, returning stock unless it was completed.

    Request body: {"reason": "Customer left"}  (optional)
    """
    try:
        data = _json_body()

        order = order_service.cancel_order(order_id, user_id=g.current_user.id, reason=data.get("reason") or None)

        return _ok(order_query_service.get_order_detail(order.id))

    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"success": False, "message": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>/status")
@require_auth
@require_role(*ORDER_STAFF_ROLES)
def update_status_route(order_id: int):
    """
    Administrative status override.

    Request body: {"status": "completed"}

    NOTE: setting "cancelled" here does NOT return stock; use /cancel for that.
    """
    try:
        data = _json_body()

        order = order_service.update_order_status(order_id, data.get("status"), user_id=g.current_user.id)

        return _ok(order_query_service.get_order_detail(order.id))

    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"success": False, "message": "Internal server error"}), 500
