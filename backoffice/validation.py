from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import JSON, Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import EngineError, ValidationError
from .services.order_service import LineItemRequest, PaymentRequest
from .services.totals_service import DISCOUNT_FIXED, DISCOUNT_PERCENTAGE, DiscountSpec


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

MAX_ITEMS_PER_REQUEST = 200


class ConflictError(EngineError):
    """409-level business rule conflict (e.g., duplicate SKU)."""
    status_code = 409


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(value: Any, field: str) -> int:
    """Strict integer coercion: rejects floats, decimals, booleans and scientific notation."""
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer", details={"field": field})
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)",
                                  details={"field": field})
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)", details={"field": field})
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer", details={"field": field})
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal", details={"field": field})
    raise ValidationError(f"{field} must be an integer", details={"field": field})


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(value, col.key)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)

    if isinstance(coltype, JSON):
        return value

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", details={"fields": missing})

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}", details={"field": k})
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}", details={"field": k})

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", details={"field": k})
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank", details={"field": k})

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}", details={"field": k})

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "price_cents" in patch:
        price = patch["price_cents"]
        if price is None or price <= 0:
            raise ValidationError("price_cents must be > 0", details={"field": "price_cents"})
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})",
                                  details={"field": "price_cents"})

    if patch.get("low_stock_alert") is not None and patch["low_stock_alert"] < 0:
        raise ValidationError("low_stock_alert must be >= 0", details={"field": "low_stock_alert"})

    variants = patch.get("variants")
    if variants is not None:
        if not isinstance(variants, list) or not all(isinstance(v, str) and v.strip() for v in variants):
            raise ValidationError("variants must be a list of labels", details={"field": "variants"})
        patch["variants"] = [v.strip() for v in variants]
    if patch.get("has_variants") and not patch.get("variants"):
        raise ValidationError("has_variants requires at least one variant", details={"field": "variants"})


# =============================================================================
# ORDER PAYLOADS
# =============================================================================

def _optional_str(value: Any, field: str, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    if max_length and len(s) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}", details={"field": field})
    return s


def parse_percent_bps(value: Any, field: str = "discount.value") -> int:
    """Percent (e.g. 12.5) -> basis points (1250); at most two decimal places."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number", details={"field": field})
    try:
        bps = Decimal(str(value)) * 100
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number", details={"field": field})
    if not bps.is_finite() or bps != bps.to_integral_value():
        raise ValidationError(f"{field} allows at most two decimal places", details={"field": field})
    return int(bps)


def parse_line_items(raw_items: Any) -> list[LineItemRequest]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("Order must have at least one item", details={"field": "items"})
    if len(raw_items) > MAX_ITEMS_PER_REQUEST:
        raise ValidationError(f"At most {MAX_ITEMS_PER_REQUEST} items per request", details={"field": "items"})

    lines = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict) or raw.get("product_id") is None or raw.get("quantity") is None:
            raise ValidationError(
                "Each item must have a productId and positive quantity",
                details={"field": "items", "index": index},
            )
        lines.append(LineItemRequest(
            product_id=coerce_int(raw["product_id"], f"items[{index}].product_id"),
            quantity=coerce_int(raw["quantity"], f"items[{index}].quantity"),
            variant=_optional_str(raw.get("variant"), f"items[{index}].variant", 100),
            notes=_optional_str(raw.get("notes"), f"items[{index}].notes"),
        ))
    return lines


def parse_discount(raw: Any) -> DiscountSpec | None:
    """
    Accepted shapes:
    - null / missing                          -> no discount
    - {"type": "fixed", "value": 1500}        -> 15.00 off (cents)
    - {"type": "percentage", "value": 12.5}   -> 12.5% off
    """
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValidationError("discount must be an object with type and value", details={"field": "discount"})

    discount_type = raw.get("type")
    if discount_type == DISCOUNT_PERCENTAGE:
        return DiscountSpec.percentage(parse_percent_bps(raw.get("value")))
    if discount_type == DISCOUNT_FIXED:
        if raw.get("value") is None:
            raise ValidationError("discount.value is required", details={"field": "discount.value"})
        return DiscountSpec.fixed(coerce_int(raw.get("value"), "discount.value"))
    # DiscountSpec reports the unknown type
    return DiscountSpec(discount_type, 0)


def parse_payment(raw: Any) -> PaymentRequest | None:
    """A missing payment or a zero amount means "no payment yet"."""
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValidationError("payment must be an object", details={"field": "payment"})

    amount = raw.get("amount_cents")
    if amount is None or amount == 0:
        return None

    return PaymentRequest(
        amount_cents=coerce_int(amount, "payment.amount_cents"),
        method=raw.get("method"),
        reference=_optional_str(raw.get("reference"), "payment.reference", 100),
        notes=_optional_str(raw.get("notes"), "payment.notes"),
    )
