import pytest

from backoffice.errors import ValidationError
from backoffice.services.totals_service import (
    DiscountSpec,
    calculate_tax,
    clamp_discount,
    recompute_totals,
    resolve_discount,
)


class TestResolveDiscount:
    def test_no_discount(self):
        assert resolve_discount(None, 10_000) == 0

    def test_fixed_amount(self):
        assert resolve_discount(DiscountSpec.fixed(1_500), 10_000) == 1_500

    def test_fixed_clamped_to_subtotal(self):
        assert resolve_discount(DiscountSpec.fixed(25_000), 20_000) == 20_000

    def test_percentage_from_bps(self):
        # 12.5% of 80.00
        assert resolve_discount(DiscountSpec.percentage(1_250), 8_000) == 1_000

    def test_percentage_rounds_half_up(self):
        # 10% of 0.05 = 0.005 -> 0.01
        assert resolve_discount(DiscountSpec.percentage(1_000), 5) == 1

    def test_percentage_over_100_clamped(self):
        assert resolve_discount(DiscountSpec.percentage(11_000), 20_000) == 20_000


class TestDiscountSpec:
    def test_rejects_unknown_type(self):
        with pytest.raises(ValidationError):
            DiscountSpec("bogus", 100)

    def test_rejects_negative(self):
        with pytest.raises(ValidationError) as exc:
            DiscountSpec.fixed(-1)
        assert "negative" in exc.value.message

    def test_rejects_non_integer(self):
        with pytest.raises(ValidationError):
            DiscountSpec.fixed(1.5)


class TestTax:
    def test_zero_rate(self):
        assert calculate_tax(12_345, 0) == 0

    def test_rate_applied(self):
        assert calculate_tax(10_000, 1_000) == 1_000

    def test_negative_rate_rejected(self):
        with pytest.raises(ValidationError):
            calculate_tax(100, -1)


class TestRecomputeTotals:
    def test_total_identity(self):
        totals = recompute_totals([1_500, 2_500], DiscountSpec.fixed(1_000), 1_000)
        assert totals.subtotal_cents == 4_000
        assert totals.discount_cents == 1_000
        # tax on the discounted base
        assert totals.tax_cents == 300
        assert totals.total_cents == 3_300
        assert totals.total_cents == totals.subtotal_cents - totals.discount_cents + totals.tax_cents

    def test_discount_equal_to_subtotal_leaves_tax_only(self):
        totals = recompute_totals([5_000], DiscountSpec.fixed(5_000), 1_000)
        assert totals.discount_cents == 5_000
        assert totals.total_cents == totals.tax_cents == 0

    def test_110_percent_discount_on_200(self):
        totals = recompute_totals([20_000], DiscountSpec.percentage(11_000), 0)
        assert totals.discount_cents == 20_000
        assert totals.total_cents == 0

    def test_empty_lines(self):
        totals = recompute_totals([], None, 1_000)
        assert totals.to_dict() == {
            "subtotal_cents": 0,
            "discount_cents": 0,
            "tax_cents": 0,
            "total_cents": 0,
        }


class TestClampDiscount:
    def test_none(self):
        assert clamp_discount(None, 1_000) is None

    def test_fixed_capped_at_subtotal(self):
        assert clamp_discount(DiscountSpec.fixed(10**20), 1_000) == DiscountSpec.fixed(1_000)
        assert clamp_discount(DiscountSpec.fixed(300), 1_000) == DiscountSpec.fixed(300)

    def test_percentage_capped_at_100(self):
        assert clamp_discount(DiscountSpec.percentage(10**22), 1_000) == DiscountSpec.percentage(10_000)
        assert clamp_discount(DiscountSpec.percentage(1_250), 1_000) == DiscountSpec.percentage(1_250)

    def test_resolves_to_same_amount(self):
        for spec in (DiscountSpec.fixed(5_000), DiscountSpec.percentage(11_000)):
            assert resolve_discount(clamp_discount(spec, 2_000), 2_000) == resolve_discount(spec, 2_000)
