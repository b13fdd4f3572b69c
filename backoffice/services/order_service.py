# Overview: Service-layer operations for orders; the order and inventory transaction engine.

"""
Order Service

WHY: Every order mutation touches several tables (orders, order_items,
products, inventory_transactions, payments). Each public function here is
ONE unit of work: all of its writes commit together or none do.

UNIT OF WORK:
- begin_write_transaction() (SQLite write lock), then lock the order row
  and the product rows (ascending id) before reading anything we check
- validate everything before the first write
- fixed write order: order row -> item rows -> stock adjustments -> payment row
- commit once; any exception rolls the whole unit back (run_with_retry)

INVARIANTS (hold after every commit):
- total = subtotal - discount + tax, 0 <= discount <= subtotal
- subtotal = SUM(item subtotals)
- product stock >= 0, and every sale/return row matches an item quantity
- payment_status derived from SUM(payments) vs total
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..errors import InactiveProductError, InsufficientStockError, NotFoundError, ValidationError
from ..models import Customer, Order, OrderItem, Payment, Product
from backoffice.time_utils import utcnow
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .order_state import (
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_PENDING,
    OP_ADD_ITEMS,
    OP_ADD_PAYMENT,
    OP_CANCEL,
    OP_CREATE,
    OP_UPDATE_DISCOUNT,
    ensure_operation_allowed,
    next_order_status,
    restocks_on_cancel,
    validate_status,
)
from .payment_service import (
    derive_payment_status,
    record_payment,
    refresh_payment_status,
    validate_amount,
    validate_method,
)
from .sequence_service import next_document_number
from .settings_service import tax_rate_for
from .stock_service import TX_RETURN, TX_SALE, adjust_stock, get_units_out_for_order, lock_products
from .totals_service import DISCOUNT_FIXED, DISCOUNT_PERCENTAGE, DiscountSpec, clamp_discount, recompute_totals


# =============================================================================
# REQUEST TYPES
# =============================================================================

@dataclass(frozen=True)
class LineItemRequest:
    product_id: int
    quantity: int
    variant: str | None = None
    notes: str | None = None

    def __post_init__(self):
        if isinstance(self.product_id, bool) or not isinstance(self.product_id, int):
            raise ValidationError("Each item must have a productId and positive quantity",
                                  details={"field": "product_id"})
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or self.quantity <= 0:
            raise ValidationError("Each item must have a productId and positive quantity",
                                  details={"field": "quantity", "product_id": self.product_id})


@dataclass(frozen=True)
class PaymentRequest:
    amount_cents: int
    method: str
    reference: str | None = None
    notes: str | None = None

    def __post_init__(self):
        validate_amount(self.amount_cents)
        validate_method(self.method)


@dataclass(frozen=True)
class PaymentResult:
    order: Order
    payment: Payment
    total_paid_cents: int


@dataclass(frozen=True)
class _LineSnapshot:
    product: Product
    quantity: int
    variant: str | None
    notes: str | None

    @property
    def subtotal_cents(self) -> int:
        return self.product.price_cents * self.quantity


# =============================================================================
# INTERNAL HELPERS
# =============================================================================

def _lock_order(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if not order:
        raise NotFoundError(f"Order with ID {order_id} not found", details={"order_id": order_id})
    return order


def _require_lines(items) -> list[LineItemRequest]:
    if not items:
        raise ValidationError("Order must have at least one item", details={"field": "items"})
    return list(items)


def _lock_and_validate_lines(lines: list[LineItemRequest]) -> list[_LineSnapshot]:
    """
    Lock every product on the lines and validate them all before any write.

    Quantities are aggregated per product, so two lines of the same product
    cannot each pass the stock check on their own.
    """
    products = lock_products(line.product_id for line in lines)

    requested: dict[int, int] = {}
    snapshots = []
    for line in lines:
        product = products[line.product_id]

        if not product.is_active:
            raise InactiveProductError(product_id=product.id, product_name=product.name)

        if line.variant and product.has_variants and line.variant not in (product.variants or []):
            raise ValidationError(
                f"Variant {line.variant!r} is not available for {product.name}",
                details={"product_id": product.id, "variant": line.variant, "variants": product.variants or []},
            )

        requested[product.id] = requested.get(product.id, 0) + line.quantity
        snapshots.append(_LineSnapshot(product=product, quantity=line.quantity, variant=line.variant, notes=line.notes))

    for product_id, quantity in requested.items():
        product = products[product_id]
        if product.stock < quantity:
            raise InsufficientStockError(
                product_id=product.id,
                product_name=product.name,
                requested=quantity,
                available=product.stock,
            )

    return snapshots


def _add_items(order: Order, snapshots: list[_LineSnapshot], user_id: int | None) -> list[OrderItem]:
    """Insert order items (price snapshot) and take their stock."""
    items = []
    for snap in snapshots:
        item = OrderItem(
            product_id=snap.product.id,
            product_name=snap.product.name,
            variant=snap.variant,
            quantity=snap.quantity,
            unit_price_cents=snap.product.price_cents,
            subtotal_cents=snap.subtotal_cents,
            notes=snap.notes,
        )
        order.items.append(item)
        items.append(item)
    db.session.flush()

    for item in items:
        adjust_stock(
            product_id=item.product_id,
            quantity_delta=-item.quantity,
            tx_type=TX_SALE,
            reference=f"order:{order.id}",
            notes=f"Sale in order #{order.order_number}",
            user_id=user_id,
            order_id=order.id,
        )
    return items


def _current_discount(order: Order) -> DiscountSpec | None:
    """
    Discount to keep when the subtotal changes.

    Percentage discounts keep their rate; fixed discounts keep the amount
    already granted.
    """
    if order.discount_type == DISCOUNT_PERCENTAGE and order.discount_value is not None:
        return DiscountSpec.percentage(order.discount_value)
    if order.discount_type == DISCOUNT_FIXED or order.discount_cents:
        return DiscountSpec.fixed(order.discount_cents or 0)
    return None


def _apply_totals(order: Order, discount: DiscountSpec | None, tax_rate_bps: int) -> None:
    """Write totals and the clamped discount spec they were resolved from."""
    subtotals = [item.subtotal_cents for item in order.items]
    discount = clamp_discount(discount, sum(subtotals))
    totals = recompute_totals(subtotals, discount, tax_rate_bps)
    order.discount_type = discount.type if discount else None
    order.discount_value = discount.value if discount else None
    order.subtotal_cents = totals.subtotal_cents
    order.discount_cents = totals.discount_cents
    order.tax_rate_bps = tax_rate_bps
    order.tax_cents = totals.tax_cents
    order.total_cents = totals.total_cents


def _apply_status_transition(order: Order, trigger: str) -> None:
    new_status = next_order_status(trigger, order.status, order.payment_status)
    if new_status == order.status:
        return
    if new_status == ORDER_STATUS_COMPLETED and order.completed_at is None:
        order.completed_at = utcnow()
    order.status = new_status


def _take_payment(order: Order, payment: PaymentRequest, user_id: int | None) -> tuple[Payment, int]:
    recorded, total_paid = record_payment(
        order,
        amount_cents=payment.amount_cents,
        method=payment.method,
        user_id=user_id,
        reference=payment.reference,
        notes=payment.notes,
    )
    _apply_status_transition(order, OP_ADD_PAYMENT)
    return recorded, total_paid


# =============================================================================
# ENGINE OPERATIONS
# =============================================================================

def create_order(
    *,
    user_id: int | None,
    items: list[LineItemRequest],
    customer_id: int | None = None,
    discount: DiscountSpec | None = None,
    payment: PaymentRequest | None = None,
    notes: str | None = None,
) -> Order:
    """
    Create an order, take its stock, and optionally record a first payment.

    Raises:
        ValidationError: no items, bad quantity/variant, bad payment
        NotFoundError: product or customer missing
        InactiveProductError: product not active
        InsufficientStockError: requested more than on hand
        OverpaymentError: first payment larger than the total
    """
    lines = _require_lines(items)
    requested_discount = discount

    def _op():
        begin_write_transaction()

        if customer_id is not None and db.session.get(Customer, customer_id) is None:
            raise NotFoundError(f"Customer with ID {customer_id} not found", details={"customer_id": customer_id})

        snapshots = _lock_and_validate_lines(lines)

        tax_rate_bps = tax_rate_for(OP_CREATE)
        subtotals = [s.subtotal_cents for s in snapshots]
        discount = clamp_discount(requested_discount, sum(subtotals))
        totals = recompute_totals(subtotals, discount, tax_rate_bps)

        order = Order(
            order_number=next_document_number(),
            status=ORDER_STATUS_PENDING,
            payment_status=derive_payment_status(0, totals.total_cents),
            subtotal_cents=totals.subtotal_cents,
            discount_cents=totals.discount_cents,
            discount_type=discount.type if discount else None,
            discount_value=discount.value if discount else None,
            tax_rate_bps=tax_rate_bps,
            tax_cents=totals.tax_cents,
            total_cents=totals.total_cents,
            notes=notes,
            user_id=user_id,
            customer_id=customer_id,
        )
        db.session.add(order)
        db.session.flush()

        _add_items(order, snapshots, user_id)

        if payment is not None:
            _take_payment(order, payment, user_id)

        db.session.commit()
        current_app.logger.info(
            "Order %s created (id=%s, items=%d, total_cents=%d)",
            order.order_number, order.id, len(snapshots), order.total_cents,
        )
        return order

    return run_with_retry(_op)


def add_items_to_order(order_id: int, items: list[LineItemRequest], user_id: int | None = None) -> tuple[Order, list[OrderItem]]:
    """
    Add lines to an open order.

    Subtotal grows by the new lines, tax is charged at the rate the tax policy
    gives add-items, and payment status is re-derived (a paid order becomes
    partial).

    Returns (order, new_items).
    """
    lines = _require_lines(items)

    def _op():
        begin_write_transaction()
        order = _lock_order(order_id)
        ensure_operation_allowed(order.status, OP_ADD_ITEMS)

        snapshots = _lock_and_validate_lines(lines)
        new_items = _add_items(order, snapshots, user_id)

        _apply_totals(order, _current_discount(order), tax_rate_for(OP_ADD_ITEMS))
        refresh_payment_status(order)
        _apply_status_transition(order, OP_ADD_ITEMS)

        db.session.commit()
        current_app.logger.info(
            "Order %s: added %d item(s), total_cents=%d, payment_status=%s",
            order.order_number, len(new_items), order.total_cents, order.payment_status,
        )
        return order, new_items

    return run_with_retry(_op)


def update_discount(order_id: int, discount: DiscountSpec | None) -> Order:
    """
    Replace the order discount and recompute tax, total and payment status.

    A discount above the subtotal is clamped. Lowering the total can turn a
    partial order paid; raising it can turn a paid order partial.
    """
    def _op():
        begin_write_transaction()
        order = _lock_order(order_id)
        ensure_operation_allowed(order.status, OP_UPDATE_DISCOUNT)

        _apply_totals(order, discount, tax_rate_for(OP_UPDATE_DISCOUNT))

        refresh_payment_status(order)
        _apply_status_transition(order, OP_UPDATE_DISCOUNT)

        db.session.commit()
        current_app.logger.info(
            "Order %s: discount_cents=%d, total_cents=%d, payment_status=%s",
            order.order_number, order.discount_cents, order.total_cents, order.payment_status,
        )
        return order

    return run_with_retry(_op)


def add_payment(
    order_id: int,
    *,
    amount_cents: int,
    method: str,
    user_id: int | None,
    reference: str | None = None,
    notes: str | None = None,
) -> PaymentResult:
    """
    Record a payment against an order.

    The order row is locked before the existing payments are summed, so two
    concurrent payments cannot both see the same balance. A payment that
    leaves the order paid completes a pending order.

    Raises:
        ValidationError: non-positive amount or unknown method
        NotFoundError: order missing
        InvalidStateError: order cancelled
        OverpaymentError: amount larger than the remaining balance
    """
    request = PaymentRequest(amount_cents=amount_cents, method=method, reference=reference, notes=notes)

    def _op():
        begin_write_transaction()
        order = _lock_order(order_id)
        ensure_operation_allowed(order.status, OP_ADD_PAYMENT)

        payment, total_paid = _take_payment(order, request, user_id)

        db.session.commit()
        current_app.logger.info(
            "Order %s: payment %s of %d cents (%s), total_paid_cents=%d, payment_status=%s",
            order.order_number, payment.id, payment.amount_cents, payment.method,
            total_paid, order.payment_status,
        )
        return PaymentResult(order=order, payment=payment, total_paid_cents=total_paid)

    return run_with_retry(_op)


def cancel_order(order_id: int, user_id: int | None = None, reason: str | None = None) -> Order:
    """
    Cancel an order, returning stock unless it was already completed.

    Completed orders are treated as consumed: they are cancelled without
    restocking. Payments are left as recorded.
    """
    def _op():
        begin_write_transaction()
        order = _lock_order(order_id)
        ensure_operation_allowed(order.status, OP_CANCEL)

        if restocks_on_cancel(order.status):
            # an order cancelled before (then overridden back open) has already returned its units
            units_out = get_units_out_for_order(order.id)
            lock_products(units_out)
            for item in order.items:
                if item.product_id is None:
                    current_app.logger.warning(
                        "Order %s: item %s has no product any more; %d unit(s) of %r not restocked",
                        order.order_number, item.id, item.quantity, item.product_name,
                    )
                    continue
                quantity = min(item.quantity, units_out.get(item.product_id, 0))
                if quantity <= 0:
                    continue
                units_out[item.product_id] -= quantity
                adjust_stock(
                    product_id=item.product_id,
                    quantity_delta=quantity,
                    tx_type=TX_RETURN,
                    reference=f"order:{order.id}",
                    notes=f"Return from cancelled order #{order.order_number}",
                    user_id=user_id,
                    order_id=order.id,
                )

        order.status = ORDER_STATUS_CANCELLED
        order.cancelled_at = utcnow()
        if reason:
            order.notes = f"{order.notes}\nCancelled: {reason}" if order.notes else f"Cancelled: {reason}"

        db.session.commit()
        current_app.logger.info("Order %s cancelled", order.order_number)
        return order

    return run_with_retry(_op)


def update_order_status(order_id: int, status: str, user_id: int | None = None) -> Order:
    """
    Administrative status override.

    Overwrites status only: no stock is returned and no payment rule runs,
    even when the new status is "cancelled". Use cancel_order to cancel with
    stock reversal.
    """
    validate_status(status)

    def _op():
        begin_write_transaction()
        order = _lock_order(order_id)
        previous = order.status

        if status == ORDER_STATUS_CANCELLED and previous != ORDER_STATUS_CANCELLED:
            current_app.logger.warning(
                "Order %s set to cancelled by status override (user %s); stock was not returned",
                order.order_number, user_id,
            )

        order.status = status
        if status == ORDER_STATUS_COMPLETED and order.completed_at is None:
            order.completed_at = utcnow()
        if status == ORDER_STATUS_CANCELLED and order.cancelled_at is None:
            order.cancelled_at = utcnow()

        db.session.commit()
        current_app.logger.info("Order %s status %s -> %s", order.order_number, previous, status)
        return order

    return run_with_retry(_op)
