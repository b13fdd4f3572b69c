# Overview: Flask API routes for product stock operations; parses input and returns JSON responses.

"""
Product stock routes.

Only the entry points that move stock live here: creating a product with its
opening stock, correcting stock by hand, and reading the inventory log.
Both writes go through stock_service.adjust_stock.

SECURITY: All routes require authentication.
- Write operations require role admin or manager
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..errors import EngineError
from ..models import Product
from ..services import products_service, stock_service
from ..services.token_service import ROLE_ADMIN, ROLE_MANAGER
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    coerce_int,
    ValidationError,
)
from ..decorators import require_auth, require_role

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"sku", "name", "description", "price_cents", "low_stock_alert",
                     "is_active", "has_variants", "variants"},
    required_on_create={"name", "price_cents"},
)

MAX_HISTORY_LIMIT = 500

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    List products with optional pagination.

    Query params:
    - active: true | false (optional)
    - low_stock: true to keep products at or below their alert level
    - search: name or SKU substring
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    active_arg = request.args.get("active")
    active = None if active_arg is None else active_arg.lower() == "true"

    try:
        result = products_service.list_products(
            active=active,
            low_stock=request.args.get("low_stock", "false").lower() == "true",
            search=request.args.get("search") or None,
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
        return jsonify({"success": True, "data": result}), 200
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"success": False, "message": "Internal server error"}), 500


@products_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def create_product_route():
    """
    Create a product with its opening stock.

    Request body:
    {
        "name": "Latte", "price_cents": 450, "sku": "LAT-01",
        "stock": 20,                       (optional, booked as "initial")
        "low_stock_alert": 5,              (optional)
        "has_variants": true, "variants": ["S", "M", "L"]   (optional)
    }
    """
    payload = request.get_json(silent=True) or {}

    try:
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")
        payload = dict(payload)
        raw_stock = payload.pop("stock", 0)
        initial_stock = coerce_int(raw_stock, "stock") if raw_stock is not None else 0
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)  # Handles price validation including max check

        created = products_service.create_product(
            patch=patch,
            initial_stock=initial_stock,
            user_id=g.current_user.id,
        )
        return jsonify({"success": True, "data": created.to_dict()}), 201

    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"success": False, "message": "Internal server error"}), 500


@products_bp.put("/<int:product_id>/stock")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def set_stock_route(product_id: int):
    """
    Set the stock level by hand; the difference is logged as an adjustment.

    Request body: {"stock": 12, "notes": "Recount"}
    """
    data = request.get_json(silent=True) or {}

    try:
        if not isinstance(data, dict) or data.get("stock") is None:
            raise ValidationError("stock required", details={"field": "stock"})

        product = products_service.set_stock(
            product_id,
            coerce_int(data["stock"], "stock"),
            user_id=g.current_user.id,
            notes=data.get("notes") or None,
        )
        return jsonify({"success": True, "data": product.to_dict()}), 200

    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to set product stock")
        return jsonify({"success": False, "message": "Internal server error"}), 500


@products_bp.get("/<int:product_id>/inventory")
@require_auth
def inventory_history_route(product_id: int):
    """
    Inventory transactions for a product, newest first.

    Query params:
    - type: initial | sale | return | adjustment (optional)
    - limit: default 100, max 500
    """
    tx_type = request.args.get("type") or None
    limit = min(request.args.get("limit", 100, type=int), MAX_HISTORY_LIMIT)

    try:
        if tx_type is not None and tx_type not in stock_service.VALID_TRANSACTION_TYPES:
            raise ValidationError(f"Invalid inventory transaction type: {tx_type}", details={"field": "type"})

        transactions = stock_service.get_inventory_history(product_id, tx_type=tx_type, limit=max(limit, 1))
        return jsonify({
            "success": True,
            "data": {
                "product_id": product_id,
                "transactions": [tx.to_dict() for tx in transactions],
                "ledger_quantity": stock_service.get_ledger_quantity(product_id),
            },
        }), 200

    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get inventory history")
        return jsonify({"success": False, "message": "Internal server error"}), 500
