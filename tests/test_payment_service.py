import pytest

from backoffice.errors import OverpaymentError, ValidationError
from backoffice.services.payment_service import (
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_UNPAID,
    accumulate_payment,
    derive_payment_status,
    validate_method,
)


@pytest.mark.parametrize(
    "paid,total,expected",
    [
        (0, 10_000, PAYMENT_STATUS_UNPAID),
        (6_000, 10_000, PAYMENT_STATUS_PARTIAL),
        (10_000, 10_000, PAYMENT_STATUS_PAID),
        (12_000, 10_000, PAYMENT_STATUS_PAID),
        (0, 0, PAYMENT_STATUS_PAID),
    ],
)
def test_derive_payment_status(paid, total, expected):
    assert derive_payment_status(paid, total) == expected


def test_accumulate_partial_then_paid():
    total_paid, status = accumulate_payment([], 6_000, 10_000)
    assert (total_paid, status) == (6_000, PAYMENT_STATUS_PARTIAL)

    total_paid, status = accumulate_payment([6_000], 4_000, 10_000)
    assert (total_paid, status) == (10_000, PAYMENT_STATUS_PAID)


def test_accumulate_overpayment_reports_remaining():
    with pytest.raises(OverpaymentError) as exc:
        accumulate_payment([6_000, 4_000], 1, 10_000)

    err = exc.value
    assert err.remaining_cents == 0
    assert err.details["order_total_cents"] == 10_000
    assert err.details["total_paid_cents"] == 10_000
    assert "remaining: 0.00" in err.message


def test_accumulate_overpayment_on_first_payment():
    with pytest.raises(OverpaymentError) as exc:
        accumulate_payment([], 10_001, 10_000)
    assert exc.value.remaining_cents == 10_000


@pytest.mark.parametrize("amount", [0, -100, 10.5, True, "100"])
def test_accumulate_rejects_bad_amounts(amount):
    with pytest.raises(ValidationError):
        accumulate_payment([], amount, 10_000)


def test_validate_method():
    validate_method("cash")
    with pytest.raises(ValidationError):
        validate_method("bitcoin")
