# Overview: Error taxonomy raised by the order and inventory services.

"""
Engine errors.

Every error aborts the enclosing database transaction. Routes turn them into
{"success": false, "message": ..., "details": ...} envelopes using
status_code; nothing here is retried automatically.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for order/inventory operation errors."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"success": False, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(EngineError):
    """400-level input problem (missing or malformed field)."""


class NotFoundError(EngineError):
    """Order, product, customer or user does not exist."""
    status_code = 404


class InactiveProductError(EngineError):
    """Product exists but is not available for sale."""

    def __init__(self, product_id: int, product_name: str):
        super().__init__(
            f"Product {product_name} is not active",
            details={"product_id": product_id, "product_name": product_name},
        )


class InsufficientStockError(EngineError):
    """Requested quantity exceeds what is on hand."""

    def __init__(self, product_id: int, product_name: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for {product_name} "
            f"(requested: {requested}, available: {available})",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "requested": requested,
                "available": available,
            },
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class OverpaymentError(EngineError):
    """Payment would push the total paid above the order total."""

    def __init__(self, order_total_cents: int, total_paid_cents: int):
        remaining = order_total_cents - total_paid_cents
        super().__init__(
            "Payment amount exceeds remaining balance. "
            f"Order total: {format_cents(order_total_cents)}, "
            f"already paid: {format_cents(total_paid_cents)}, "
            f"remaining: {format_cents(remaining)}",
            details={
                "order_total_cents": order_total_cents,
                "total_paid_cents": total_paid_cents,
                "remaining_cents": remaining,
            },
        )
        self.remaining_cents = remaining


class InvalidStateError(EngineError):
    """Operation not allowed while the order is in its current status."""

    def __init__(self, message: str, status: str, operation: str):
        super().__init__(message, details={"status": status, "operation": operation})
        self.status = status
        self.operation = operation


def format_cents(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}{cents // 100}.{cents % 100:02d}"
