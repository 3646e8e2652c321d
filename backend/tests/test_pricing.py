"""Tier pricing and sale calculation (no database)."""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from tokopos.errors import ValidationError
from tokopos.services.calculation_service import CartLine, compute_totals, round_rupiah
from tokopos.services.pricing_service import item_discount, resolve_unit_price, sort_tiers

TIERS = [{"min_qty": 1, "price": 10000}, {"min_qty": 10, "price": 9000}]


class TestResolveUnitPrice:

    def test_below_second_tier(self):
        assert resolve_unit_price(TIERS, 5) == 10000
        assert item_discount(TIERS, 5) == 0

    def test_second_tier(self):
        assert resolve_unit_price(TIERS, 12) == 9000
        assert item_discount(TIERS, 12) == 12000

    def test_exact_threshold(self):
        assert resolve_unit_price(TIERS, 10) == 9000

    def test_unsorted_tiers_are_sorted(self):
        tiers = [{"min_qty": 10, "price": 9000}, {"min_qty": 1, "price": 10000}, {"min_qty": 50, "price": 8000}]
        assert sort_tiers(tiers) == [(1, 10000), (10, 9000), (50, 8000)]
        assert resolve_unit_price(tiers, 9) == 10000
        assert resolve_unit_price(tiers, 49) == 9000
        assert resolve_unit_price(tiers, 500) == 8000

    def test_quantity_below_every_threshold_uses_lowest_tier(self):
        tiers = [{"min_qty": 5, "price": 7000}, {"min_qty": 20, "price": 6500}]
        assert resolve_unit_price(tiers, 2) == 7000

    def test_camel_case_and_model_rows(self):
        tiers = [{"minQty": 1, "price": 500}, SimpleNamespace(min_qty=3, price=450)]
        assert resolve_unit_price(tiers, 3) == 450

    def test_sorted_pairs_accepted(self):
        pairs = sort_tiers([SimpleNamespace(min_qty=6, price=80), {"min_qty": 1, "price": 100}])
        assert resolve_unit_price(pairs, 7) == 80
        assert resolve_unit_price([(1, 100), (6, 80)], 5) == 100

    def test_no_tiers_prices_at_zero(self):
        assert resolve_unit_price([], 3) == 0

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity_rejected(self, quantity):
        with pytest.raises(ValueError):
            resolve_unit_price(TIERS, quantity)

    def test_greatest_matching_tier_for_every_quantity(self):
        tiers = sort_tiers([{"min_qty": 1, "price": 100}, {"min_qty": 4, "price": 90}, {"min_qty": 9, "price": 70}])
        for quantity in range(1, 30):
            expected = [price for min_qty, price in tiers if min_qty <= quantity][-1]
            assert resolve_unit_price(tiers, quantity) == expected


def _line(product_id, quantity, price=10000):
    return CartLine(product_id=product_id, quantity=quantity, price_tiers=[{"min_qty": 1, "price": price}])


class TestComputeTotals:

    def test_member_and_additional_discount(self):
        member = SimpleNamespace(discount_percent=Decimal("10"), is_default_customer=False)
        calc = compute_totals([_line(1, 10)], member=member, additional_discount=5000)

        assert calc.subtotal == 100000
        assert calc.member_discount == Decimal("10000")
        assert calc.grand_total == 85000
        assert calc.total_discount == Decimal(calc.item_discount) + Decimal("15000")

    def test_member_discount_uses_tier_discounted_subtotal(self):
        member = SimpleNamespace(discount_percent=10, is_default_customer=False)
        line = CartLine(product_id=1, quantity=12, price_tiers=TIERS)
        calc = compute_totals([line], member=member)

        assert calc.subtotal == 108000
        assert calc.item_discount == 12000
        assert calc.member_discount == Decimal("10800")
        assert calc.grand_total == 97200

    def test_default_customer_gets_no_discount(self):
        customer = SimpleNamespace(discount_percent=25, is_default_customer=True)
        calc = compute_totals([_line(1, 2)], member=customer)
        assert calc.member_discount == 0
        assert calc.grand_total == 20000

    def test_grand_total_never_negative(self):
        calc = compute_totals([_line(1, 1)], additional_discount=50000)
        assert calc.grand_total == 0

    def test_rounds_half_up_once(self):
        member = SimpleNamespace(discount_percent=Decimal("12.5"), is_default_customer=False)
        # 1010 * 12.5% = 126.25 -> 883.75 -> 884
        calc = compute_totals([_line(1, 1, price=1010)], member=member)
        assert calc.grand_total == 884
        assert round_rupiah(Decimal("0.5")) == 1

    def test_tax_applied_after_discounts(self):
        calc = compute_totals([_line(1, 1)], additional_discount=1000, tax_rate_percent=11)
        assert calc.tax == Decimal("990")
        assert calc.grand_total == 9990

    def test_negative_additional_discount_rejected(self):
        with pytest.raises(ValidationError):
            compute_totals([_line(1, 1)], additional_discount=-1)

    def test_member_discount_out_of_range_rejected(self):
        member = SimpleNamespace(discount_percent=150, is_default_customer=False)
        with pytest.raises(ValidationError):
            compute_totals([_line(1, 1)], member=member)

    def test_to_dict(self):
        data = compute_totals([CartLine(product_id=7, quantity=12, price_tiers=TIERS, product_name="Gula")]).to_dict()
        assert data["grand_total"] == 108000
        assert data["items"][0]["original_price"] == 10000
        assert data["items"][0]["price"] == 9000
        assert data["items"][0]["discount_per_item"] == 1000
