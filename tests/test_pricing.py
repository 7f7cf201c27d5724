"""
Tests for the pricing helpers.

Pure functions, no database.
"""

from __future__ import annotations

import pytest

from hmjaya.models import DiscountType
from hmjaya.services.pricing import (
    calculate_selling_price,
    discount_amount,
    invoice_totals,
    line_total,
    round_money,
)
from hmjaya.utils.serializers import price_preview


# =============================================================================
# Selling price
# =============================================================================


class TestCalculateSellingPrice:

    def test_tax_is_added_and_rounded_up_to_next_thousand(self):
        assert calculate_selling_price(10000, 11) == 12000.0

    def test_small_remainder_still_steps_up(self):
        assert calculate_selling_price(9000, 11) == 10000.0

    def test_exact_multiple_does_not_step_up(self):
        assert calculate_selling_price(10000, 0) == 10000.0
        assert calculate_selling_price(100000, 10) == 110000.0

    def test_zero_or_negative_base_is_zero(self):
        assert calculate_selling_price(0, 11) == 0.0
        assert calculate_selling_price(-500, 11) == 0.0

    def test_accepts_strings(self):
        assert calculate_selling_price("20000", "11") == 23000.0

    def test_preview_reports_tax_and_selling_price(self):
        preview = price_preview(10000, 11)
        assert preview["selling_price"] == 12000.0
        assert preview["price"] == 10000


# =============================================================================
# Discounts and lines
# =============================================================================


class TestLineTotals:

    def test_round_money_is_half_up(self):
        assert round_money(2.5) == 3.0
        assert round_money(2.49) == 2.0

    def test_amount_discount(self):
        assert discount_amount(10000, 1500) == 1500.0

    def test_percentage_discount(self):
        assert discount_amount(20000, 10, DiscountType.PERCENTAGE) == 2000.0

    def test_discount_type_from_string(self):
        assert discount_amount(20000, 10, "percentage") == 2000.0

    def test_line_total_with_percentage_discount(self):
        assert line_total(2, 10000, 10, DiscountType.PERCENTAGE) == 18000.0

    def test_line_total_never_negative(self):
        assert line_total(1, 1000, 5000) == 0.0


class TestInvoiceTotals:

    def test_tax_applies_after_discount(self):
        totals = invoice_totals([10000, 10000], discount=2000, tax_percentage=11, shipping_cost=5000)
        assert totals.subtotal == 20000.0
        assert totals.discount == 2000.0
        assert totals.tax_amount == 1980.0
        assert totals.total_amount == 24980.0

    def test_discount_capped_at_subtotal(self):
        totals = invoice_totals([5000], discount=9000)
        assert totals.discount == 5000.0
        assert totals.total_amount == 0.0

    @pytest.mark.parametrize(
        "pct, expected",
        [(0, 10000.0), (11, 11100.0), (12, 11200.0)],
    )
    def test_tax_rates(self, pct, expected):
        assert invoice_totals([10000], tax_percentage=pct).total_amount == expected
