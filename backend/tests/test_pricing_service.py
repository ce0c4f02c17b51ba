"""
Pricing tests.

Verifies:
- Selling price formula and rounding (weight 3 dp, money 2 dp, half-up)
- Strict numeric input (negative, over-precise, bool, NaN rejected)
- Rate-backed pricing stops when no current rate exists
- Discount and EMI installment helpers
"""

from decimal import Decimal

import pytest

from karat.services import pricing_service
from karat.services.errors import (
    InvalidInputError,
    NotFoundError,
    RateNotFoundError,
    StockItemUnavailableError,
)
from karat.models.inventory import STOCK_SOLD


# =============================================================================
# PURE CALCULATION
# =============================================================================


class TestCalculatePrice:

    def test_gold_22k_breakdown(self):
        breakdown = pricing_service.calculate_price("10.000", "2.00", "6000.00", "500.00")

        assert breakdown.effective_weight == Decimal("10.200")
        assert breakdown.metal_amount == Decimal("61200.00")
        assert breakdown.total_price == Decimal("61700.00")

        data = breakdown.to_dict()
        assert data["effective_weight"] == "10.200"
        assert data["total_price"] == "61700.00"

    def test_stone_value_added(self):
        breakdown = pricing_service.calculate_price("5.000", "0", "7000.00", "250.00", "1250.50")
        assert breakdown.total_price == Decimal("36500.50")

    def test_money_computed_from_unrounded_weight(self):
        # 1.234 g * 1.0333 = 1.2750922 g; rounded weight would give 12750.00
        breakdown = pricing_service.calculate_price("1.234", "3.33", "10000.00", "0")
        assert breakdown.effective_weight == Decimal("1.275")
        assert breakdown.metal_amount == Decimal("12750.92")
        assert breakdown.total_price == Decimal("12750.92")

    def test_rounds_half_up(self):
        # 0.001 g * 5.00 = 0.005 -> 0.01
        breakdown = pricing_service.calculate_price("0.001", "0", "5.00", "0")
        assert breakdown.metal_amount == Decimal("0.01")

    def test_deterministic(self):
        first = pricing_service.calculate_price("7.125", "4.50", "6125.75", "899.99", "10.00")
        second = pricing_service.calculate_price(Decimal("7.125"), 4.5, "6125.75", "899.99", 10)
        assert first == second

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"net_weight": "-1.000"},
            {"net_weight": "1.0001"},
            {"wastage_percent": "-2"},
            {"metal_rate_per_gram": "6000.001"},
            {"making_charges": True},
            {"making_charges": "NaN"},
            {"stone_value": "1e3"},
            {"net_weight": None},
            {"metal_rate_per_gram": "abc"},
        ],
    )
    def test_rejects_bad_input(self, kwargs):
        args = {
            "net_weight": "10.000",
            "wastage_percent": "2.00",
            "metal_rate_per_gram": "6000.00",
            "making_charges": "500.00",
            "stone_value": "0",
        }
        args.update(kwargs)
        with pytest.raises(InvalidInputError):
            pricing_service.calculate_price(**args)


class TestDiscountAndEmi:

    def test_discount_amount_wins_over_percent(self):
        assert pricing_service.calculate_discount("1000.00", discount_percent="10", discount_amount="50") == Decimal("50.00")

    def test_discount_percent(self):
        assert pricing_service.calculate_discount("999.99", discount_percent="10") == Decimal("100.00")

    def test_no_discount(self):
        assert pricing_service.calculate_discount("1000.00") == Decimal("0.00")

    def test_discount_cannot_exceed_total(self):
        with pytest.raises(InvalidInputError):
            pricing_service.calculate_discount("100.00", discount_amount="100.01")

    def test_zero_interest_installment(self):
        assert pricing_service.calculate_emi_installment("60000.00", "0", 12) == Decimal("5000.00")

    def test_amortised_installment(self):
        # 100000 at 12% p.a. over 12 months
        assert pricing_service.calculate_emi_installment("100000.00", "12", 12) == Decimal("8884.88")

    def test_purchase_cost(self):
        assert pricing_service.calculate_purchase_cost("10.000", "5800.00", "300", "0") == Decimal("58300.00")


# =============================================================================
# RATE-BACKED PRICING
# =============================================================================


class TestRateBackedPricing:

    def test_price_product_uses_current_rate(self, shop, product, gold_rate):
        price = pricing_service.price_product(product.id, shop.id)
        assert price.rate.id == gold_rate.id
        assert price.total_price == Decimal("61700.00")
        assert price.to_dict()["selling_price"] == "61700.00"

    def test_no_rate_stops_pricing(self, shop, product):
        with pytest.raises(RateNotFoundError) as exc:
            pricing_service.price_product(product.id, shop.id)
        assert exc.value.details == {"metal_type": "GOLD", "purity": "22K"}

    def test_missing_product(self, shop, gold_rate):
        with pytest.raises(NotFoundError):
            pricing_service.price_product(999999, shop.id)

    def test_price_stock_item_by_tag(self, shop, priced_stock):
        price = pricing_service.price_stock_item(shop.id, tag_id=priced_stock[1].tag_id)
        assert price.stock_item.id == priced_stock[1].id
        assert price.to_dict()["tag_id"] == priced_stock[1].tag_id

    def test_sold_item_not_priced(self, db_session, shop, priced_stock):
        priced_stock[0].status = STOCK_SOLD
        db_session.commit()
        with pytest.raises(StockItemUnavailableError):
            pricing_service.price_stock_item(shop.id, stock_item_id=priced_stock[0].id)

    def test_other_shop_cannot_price(self, other_shop, priced_stock):
        with pytest.raises(NotFoundError):
            pricing_service.price_stock_item(other_shop.id, stock_item_id=priced_stock[0].id)
