# Overview: Order status machine; which operations each status allows and implicit transitions.

"""
Order State Table

ORDER STATUS:
- pending: open order, stock already taken
- completed: fully paid (or marked completed by an admin); items are consumed
- cancelled: terminal; no further items, discounts, payments or cancellation

IMPLICIT TRANSITIONS (the only ones the services perform on their own):
- a payment that leaves the order "paid" promotes pending -> completed

PAYMENT STATUS is never set here; it is always derived from the payments
(see payment_service.derive_payment_status). Adding items to a paid order
therefore lands on "partial" because the total grows past what was paid.
"""

from __future__ import annotations

from ..errors import InvalidStateError, ValidationError
from .payment_service import PAYMENT_STATUS_PAID


ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_COMPLETED = "completed"
ORDER_STATUS_CANCELLED = "cancelled"

VALID_ORDER_STATUSES = [
    ORDER_STATUS_PENDING,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_CANCELLED,
]

# Operations / transition triggers
OP_CREATE = "create"
OP_ADD_ITEMS = "add_items"
OP_UPDATE_DISCOUNT = "update_discount"
OP_ADD_PAYMENT = "add_payment"
OP_CANCEL = "cancel"
OP_UPDATE_STATUS = "update_status"

# status -> {operation: rejection message}
BLOCKED_OPERATIONS = {
    ORDER_STATUS_CANCELLED: {
        OP_ADD_ITEMS: "Cannot add items to a cancelled order",
        OP_UPDATE_DISCOUNT: "Cannot update discount on a cancelled order",
        OP_ADD_PAYMENT: "Cannot add payment to a cancelled order",
        OP_CANCEL: "Order is already cancelled",
    },
}

# (trigger, current status, payment status after the write) -> new status
STATUS_TRANSITIONS = {
    (OP_ADD_PAYMENT, ORDER_STATUS_PENDING, PAYMENT_STATUS_PAID): ORDER_STATUS_COMPLETED,
}


def ensure_operation_allowed(status: str, operation: str) -> None:
    message = BLOCKED_OPERATIONS.get(status, {}).get(operation)
    if message:
        raise InvalidStateError(message, status=status, operation=operation)


def next_order_status(trigger: str, status: str, payment_status: str) -> str:
    """Order status after a write; unchanged unless the table says otherwise."""
    return STATUS_TRANSITIONS.get((trigger, status, payment_status), status)


def restocks_on_cancel(status: str) -> bool:
    """Completed orders are treated as consumed; only open orders give stock back."""
    return status != ORDER_STATUS_COMPLETED


def validate_status(status) -> str:
    if status not in VALID_ORDER_STATUSES:
        raise ValidationError(
            f"Invalid order status: {status}. Must be one of {VALID_ORDER_STATUSES}",
            details={"field": "status"},
        )
    return status
