# Overview: Service-layer operations for stock; the single writer of Product.stock.

"""
Stock Adjuster Invariants (authoritative)

- Product.stock is written ONLY here. Every write appends exactly one
  InventoryTransaction with the same signed delta, in the same DB transaction.
- Stock may never go negative; a decrement that would do so fails with
  InsufficientStockError and nothing is applied.
- The product row is locked (SELECT ... FOR UPDATE) before it is read.
- Nothing here commits; callers own the unit of work.

Transaction types and their sign:
- initial: > 0 (opening stock)
- sale: < 0
- return: > 0
- adjustment: != 0
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import func

from ..extensions import db
from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import InventoryTransaction, Product
from .concurrency import lock_for_update


TX_INITIAL = "initial"
TX_SALE = "sale"
TX_RETURN = "return"
TX_ADJUSTMENT = "adjustment"

VALID_TRANSACTION_TYPES = [TX_INITIAL, TX_SALE, TX_RETURN, TX_ADJUSTMENT]


def lock_product(product_id: int) -> Product:
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        raise NotFoundError(f"Product with ID {product_id} not found", details={"product_id": product_id})
    return product


def lock_products(product_ids: Iterable[int]) -> dict[int, Product]:
    """
    Lock several products in ascending id order.

    A fixed lock order keeps two concurrent orders over the same products
    from deadlocking each other.
    """
    locked: dict[int, Product] = {}
    for product_id in sorted(set(product_ids)):
        locked[product_id] = lock_product(product_id)
    return locked


def _validate_delta(tx_type: str, quantity_delta: int) -> None:
    if tx_type not in VALID_TRANSACTION_TYPES:
        raise ValidationError(
            f"Invalid inventory transaction type: {tx_type}. Must be one of {VALID_TRANSACTION_TYPES}"
        )
    if isinstance(quantity_delta, bool) or not isinstance(quantity_delta, int):
        raise ValidationError("quantity delta must be an integer")
    if quantity_delta == 0:
        raise ValidationError("quantity delta must be non-zero")
    if tx_type == TX_SALE and quantity_delta > 0:
        raise ValidationError("sale transactions must decrease stock")
    if tx_type in (TX_RETURN, TX_INITIAL) and quantity_delta < 0:
        raise ValidationError(f"{tx_type} transactions must increase stock")


def adjust_stock(
    *,
    product_id: int,
    quantity_delta: int,
    tx_type: str,
    reference: str | None = None,
    user_id: int | None = None,
    notes: str | None = None,
    order_id: int | None = None,
) -> tuple[Product, InventoryTransaction]:
    """
    Apply a signed quantity delta to a product and log it.

    Returns (product, inventory_transaction).

    Raises:
        ValidationError: unknown type, zero delta, or delta sign wrong for type
        NotFoundError: product does not exist
        InsufficientStockError: stock + delta would be negative
    """
    _validate_delta(tx_type, quantity_delta)

    product = lock_product(product_id)

    if quantity_delta < 0 and product.stock + quantity_delta < 0:
        raise InsufficientStockError(
            product_id=product.id,
            product_name=product.name,
            requested=-quantity_delta,
            available=product.stock,
        )

    product.stock = product.stock + quantity_delta

    tx = InventoryTransaction(
        product_id=product.id,
        quantity=quantity_delta,
        type=tx_type,
        reference=reference,
        notes=notes,
        order_id=order_id,
        user_id=user_id,
    )
    db.session.add(tx)
    db.session.flush()

    return product, tx


def get_ledger_quantity(product_id: int) -> int:
    """SUM(quantity) over the inventory log; equals Product.stock."""
    q = db.session.query(
        func.coalesce(func.sum(InventoryTransaction.quantity), 0)
    ).filter(InventoryTransaction.product_id == product_id)
    return int(q.scalar() or 0)


def get_units_out_for_order(order_id: int) -> dict[int, int]:
    """
    Units an order still holds per product: sold minus already returned.

    Zero or negative entries are dropped.
    """
    rows = db.session.query(
        InventoryTransaction.product_id,
        func.sum(InventoryTransaction.quantity),
    ).filter(
        InventoryTransaction.order_id == order_id,
        InventoryTransaction.type.in_([TX_SALE, TX_RETURN]),
    ).group_by(InventoryTransaction.product_id).all()

    return {product_id: -int(net) for product_id, net in rows if net is not None and net < 0}


def get_inventory_history(product_id: int, *, tx_type: str | None = None, limit: int = 100) -> list[InventoryTransaction]:
    """Most recent inventory transactions for a product, newest first."""
    if db.session.get(Product, product_id) is None:
        raise NotFoundError(f"Product with ID {product_id} not found", details={"product_id": product_id})

    q = db.session.query(InventoryTransaction).filter_by(product_id=product_id)
    if tx_type is not None:
        q = q.filter_by(type=tx_type)

    return q.order_by(
        InventoryTransaction.created_at.desc(),
        InventoryTransaction.id.desc(),
    ).limit(limit).all()
