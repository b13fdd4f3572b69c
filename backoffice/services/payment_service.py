# Overview: Service-layer operations for payment; payment accumulation and status derivation.

"""
Payment Accumulator

WHY: Orders may be paid in several installments (split/partial payments).
Payments are recorded manually; there is no gateway and no change-making.

DESIGN PRINCIPLES:
- Payments are separate rows (many-to-one with orders), append-only
- Total paid is always SUM(payments.amount_cents); never cached
- Payment status is a pure function of (total paid, order total)
- Strict: total paid may never exceed the order total
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import func

from ..extensions import db
from ..errors import OverpaymentError, ValidationError
from ..models import Order, Payment


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH = "cash"
METHOD_CREDIT_CARD = "credit_card"
METHOD_DEBIT_CARD = "debit_card"
METHOD_TRANSFER = "transfer"

VALID_PAYMENT_METHODS = [
    METHOD_CASH,
    METHOD_CREDIT_CARD,
    METHOD_DEBIT_CARD,
    METHOD_TRANSFER,
]


# =============================================================================
# PAYMENT STATUS (CONSTANTS)
# =============================================================================

PAYMENT_STATUS_UNPAID = "unpaid"
PAYMENT_STATUS_PARTIAL = "partial"
PAYMENT_STATUS_PAID = "paid"

VALID_PAYMENT_STATUSES = [
    PAYMENT_STATUS_UNPAID,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_PAID,
]


# =============================================================================
# PURE ACCUMULATION
# =============================================================================

def derive_payment_status(total_paid_cents: int, order_total_cents: int) -> str:
    """
    PAYMENT STATUS:
    - paid: total_paid >= total
    - partial: 0 < total_paid < total
    - unpaid: otherwise
    """
    if total_paid_cents >= order_total_cents:
        return PAYMENT_STATUS_PAID
    if total_paid_cents > 0:
        return PAYMENT_STATUS_PARTIAL
    return PAYMENT_STATUS_UNPAID


def accumulate_payment(
    existing_amounts: Iterable[int],
    new_amount_cents: int,
    order_total_cents: int,
) -> tuple[int, str]:
    """
    Add a new payment to what was already paid.

    Returns (new_total_paid_cents, derived_status).

    Raises:
        ValidationError: amount is not a positive integer
        OverpaymentError: new total paid would exceed the order total
    """
    validate_amount(new_amount_cents)

    already_paid = sum(existing_amounts)
    new_total_paid = already_paid + new_amount_cents

    if new_total_paid > order_total_cents:
        raise OverpaymentError(order_total_cents=order_total_cents, total_paid_cents=already_paid)

    return new_total_paid, derive_payment_status(new_total_paid, order_total_cents)


def validate_amount(amount_cents) -> None:
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
        raise ValidationError("Payment amount must be an integer number of cents", details={"field": "amount_cents"})
    if amount_cents <= 0:
        raise ValidationError("Payment amount must be positive", details={"field": "amount_cents"})


def validate_method(method) -> None:
    if method not in VALID_PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method: {method}. Must be one of {VALID_PAYMENT_METHODS}",
            details={"field": "method"},
        )


# =============================================================================
# DATABASE HELPERS (caller owns the transaction and the order lock)
# =============================================================================

def get_order_payments(order_id: int) -> list[Payment]:
    """Get all payments for an order, ordered by creation."""
    return (
        db.session.query(Payment)
        .filter_by(order_id=order_id)
        .order_by(Payment.created_at, Payment.id)
        .all()
    )


def get_total_paid_cents(order_id: int) -> int:
    total = db.session.query(
        func.coalesce(func.sum(Payment.amount_cents), 0)
    ).filter(Payment.order_id == order_id).scalar()
    return int(total or 0)


def record_payment(
    order: Order,
    *,
    amount_cents: int,
    method: str,
    user_id: int | None,
    reference: str | None = None,
    notes: str | None = None,
) -> tuple[Payment, int]:
    """
    Accumulate and insert one payment against a locked order.

    Updates order.payment_status (and payment_method for the first payment).
    Does not commit and does not change order.status; the order service
    applies the status transition.

    Returns (payment, new_total_paid_cents).
    """
    validate_method(method)

    existing = [p.amount_cents for p in get_order_payments(order.id)]
    new_total_paid, payment_status = accumulate_payment(existing, amount_cents, order.total_cents)

    payment = Payment(
        order_id=order.id,
        amount_cents=amount_cents,
        method=method,
        reference=reference,
        notes=notes,
        user_id=user_id,
    )
    db.session.add(payment)
    db.session.flush()

    order.payment_status = payment_status
    if order.payment_method is None:
        order.payment_method = method

    return payment, new_total_paid


def refresh_payment_status(order: Order) -> str:
    """Re-derive payment_status from the payment rows against the current total."""
    total_paid = get_total_paid_cents(order.id)
    order.payment_status = derive_payment_status(total_paid, order.total_cents)
    return order.payment_status


# =============================================================================
# REPORTING
# =============================================================================

def get_payment_summary(order: Order) -> dict:
    """
    Payment summary for an order, derived from the payment rows.

    Returns:
        - total_cents: order total
        - total_paid_cents: SUM(payments)
        - remaining_cents: total - paid (never negative while payments are strict)
        - payment_status: derived, not read from the order row
        - payments: list of payment records
    """
    payments = get_order_payments(order.id)
    total_paid = sum(p.amount_cents for p in payments)

    return {
        "total_cents": order.total_cents,
        "total_paid_cents": total_paid,
        "remaining_cents": max(order.total_cents - total_paid, 0),
        "payment_status": derive_payment_status(total_paid, order.total_cents),
        "payments": [p.to_dict() for p in payments],
    }
