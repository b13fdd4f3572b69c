# Overview: Order total calculator; pure functions over cents, no database access.

"""
Order Totals

INVARIANTS (authoritative):
- subtotal = SUM(line subtotals)
- discount is resolved from a DiscountSpec and clamped to [0, subtotal]
- tax = (subtotal - discount) * tax_rate_bps / 10000   (post-discount base)
- total = subtotal - discount + tax

All amounts are integer cents. Percentages are basis points (1% = 100 bps).
Fractional cents are rounded to the nearest cent, half-up.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..errors import ValidationError


DISCOUNT_FIXED = "fixed"
DISCOUNT_PERCENTAGE = "percentage"

VALID_DISCOUNT_TYPES = [DISCOUNT_FIXED, DISCOUNT_PERCENTAGE]

BPS_DENOMINATOR = 10_000


@dataclass(frozen=True)
class DiscountSpec:
    """
    Discount as requested by the caller.

    value is cents for fixed discounts and basis points for percentage
    discounts (110% -> 11000).
    """
    type: str
    value: int

    def __post_init__(self):
        if self.type not in VALID_DISCOUNT_TYPES:
            raise ValidationError(
                f"Invalid discount type: {self.type}. Must be one of {VALID_DISCOUNT_TYPES}",
                details={"field": "discount.type"},
            )
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise ValidationError("Discount value must be an integer", details={"field": "discount.value"})
        if self.value < 0:
            raise ValidationError("Discount cannot be negative", details={"field": "discount.value"})

    @classmethod
    def fixed(cls, cents: int) -> "DiscountSpec":
        return cls(DISCOUNT_FIXED, cents)

    @classmethod
    def percentage(cls, bps: int) -> "DiscountSpec":
        return cls(DISCOUNT_PERCENTAGE, bps)


@dataclass(frozen=True)
class OrderTotals:
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
        }


def _apply_bps(amount_cents: int, bps: int) -> int:
    # nearest-cent rounding (half-up); both operands are non-negative
    return (amount_cents * bps + BPS_DENOMINATOR // 2) // BPS_DENOMINATOR


def resolve_discount(discount: DiscountSpec | None, subtotal_cents: int) -> int:
    """Resolve a discount spec against a subtotal, clamped to [0, subtotal]."""
    if discount is None:
        return 0

    if discount.type == DISCOUNT_PERCENTAGE:
        amount = _apply_bps(subtotal_cents, discount.value)
    else:
        amount = discount.value

    return max(0, min(amount, subtotal_cents))


def clamp_discount(discount: DiscountSpec | None, subtotal_cents: int) -> DiscountSpec | None:
    """
    Smallest spec that resolves to the same amount: fixed at most the
    subtotal, percentage at most 100%.
    """
    if discount is None:
        return None
    if discount.type == DISCOUNT_PERCENTAGE:
        return DiscountSpec.percentage(min(discount.value, BPS_DENOMINATOR))
    return DiscountSpec.fixed(resolve_discount(discount, subtotal_cents))


def calculate_tax(taxable_cents: int, tax_rate_bps: int) -> int:
    if tax_rate_bps < 0:
        raise ValidationError("Tax rate cannot be negative")
    return _apply_bps(taxable_cents, tax_rate_bps)


def recompute_totals(
    line_subtotals: Iterable[int],
    discount: DiscountSpec | None,
    tax_rate_bps: int,
) -> OrderTotals:
    """
    Derive subtotal, discount, tax and total from line subtotals.

    A discount larger than the subtotal is clamped, never rejected, so the
    total can reach zero but never go below the tax on a zero base.
    """
    subtotal = sum(line_subtotals)
    if subtotal < 0:
        raise ValidationError("Subtotal cannot be negative")

    discount_cents = resolve_discount(discount, subtotal)
    tax_cents = calculate_tax(subtotal - discount_cents, tax_rate_bps)

    return OrderTotals(
        subtotal_cents=subtotal,
        discount_cents=discount_cents,
        tax_cents=tax_cents,
        total_cents=subtotal - discount_cents + tax_cents,
    )
