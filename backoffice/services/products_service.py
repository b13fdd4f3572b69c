# backoffice/services/products_service.py
"""
Products Service

Only the stock-related product operations live here: creation (with its
opening stock), manual stock correction and listing. Both stock paths go
through stock_service.adjust_stock so the inventory log stays complete.
"""
from __future__ import annotations

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ValidationError
from ..models import Product
from ..validation import ConflictError
from .concurrency import begin_write_transaction, run_with_retry
from .stock_service import TX_ADJUSTMENT, TX_INITIAL, adjust_stock, lock_product

PRODUCT_CREATE_FIELDS = {
    "name", "description", "sku", "price_cents", "low_stock_alert",
    "is_active", "has_variants", "variants",
}


def list_products(
    *,
    active: bool | None = None,
    low_stock: bool = False,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing with optional pagination.

    low_stock keeps products at or below their low_stock_alert threshold.

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product)

    if active is not None:
        base_query = base_query.filter(Product.is_active == active)
    if low_stock:
        base_query = base_query.filter(
            Product.low_stock_alert.isnot(None),
            Product.stock <= Product.low_stock_alert,
        )
    if search:
        pattern = f"%{search}%"
        base_query = base_query.filter(or_(Product.name.like(pattern), Product.sku.like(pattern)))

    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    # If no pagination requested, return all items
    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)  # Default 20, max 100
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def create_product(*, patch: dict, initial_stock: int = 0, user_id: int | None = None) -> Product:
    """
    Create a product from a validated patch dict.

    The product row starts at stock 0; a positive initial_stock is booked as
    an "initial" inventory transaction in the same unit of work.
    """
    if isinstance(initial_stock, bool) or not isinstance(initial_stock, int) or initial_stock < 0:
        raise ValidationError("stock must be a non-negative integer", details={"field": "stock"})

    def _op():
        begin_write_transaction()

        product = Product(stock=0)
        for k, v in patch.items():
            if k in PRODUCT_CREATE_FIELDS:
                setattr(product, k, v)

        db.session.add(product)
        try:
            db.session.flush()
        except IntegrityError:
            raise ConflictError(f"Product with SKU {patch.get('sku')} already exists")

        if initial_stock > 0:
            adjust_stock(
                product_id=product.id,
                quantity_delta=initial_stock,
                tx_type=TX_INITIAL,
                notes="Initial stock",
                user_id=user_id,
            )

        db.session.commit()
        return product

    return run_with_retry(_op)


def set_stock(product_id: int, new_stock: int, *, user_id: int | None = None, notes: str | None = None) -> Product:
    """
    Manual stock correction to an absolute level.

    Books the difference as an "adjustment" transaction; setting the stock
    it already has is a no-op.
    """
    if isinstance(new_stock, bool) or not isinstance(new_stock, int) or new_stock < 0:
        raise ValidationError("stock must be a non-negative integer", details={"field": "stock"})

    def _op():
        begin_write_transaction()
        product = lock_product(product_id)

        delta = new_stock - product.stock
        if delta:
            adjust_stock(
                product_id=product.id,
                quantity_delta=delta,
                tx_type=TX_ADJUSTMENT,
                notes=notes or "Manual stock adjustment",
                user_id=user_id,
            )

        db.session.commit()
        return product

    return run_with_retry(_op)
