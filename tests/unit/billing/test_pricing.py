"""Unit tests for plan pricing and discount arithmetic."""

import pytest

from agrifaas.billing.pricing import (
    discount_value,
    discounted_price,
    ghs_to_usd,
    plan_price,
    to_minor_units,
)
from agrifaas.billing.types import BillingCycle, DiscountType, PlanId, PromoCodeQuote
from agrifaas.config.settings import BillingConfig


class TestPlanPrice:
    """Tests for plan_price."""

    def test_list_prices(self):
        """Test the configured list prices in cedis."""
        config = BillingConfig()
        assert plan_price(config, PlanId.GROWER, BillingCycle.MONTHLY) == 209
        assert plan_price(config, PlanId.BUSINESS, BillingCycle.ANNUALLY) == 4499

    def test_unknown_price_raises(self):
        """Test a plan without a configured price is rejected."""
        config = BillingConfig(pricing={"grower": {"monthly": 209}})
        with pytest.raises(ValueError, match="No price configured"):
            plan_price(config, PlanId.GROWER, BillingCycle.ANNUALLY)


class TestDiscounts:
    """Tests for discount_value and discounted_price."""

    def test_percentage_discount(self):
        """Test a percentage code takes that share of the price."""
        quote = PromoCodeQuote(
            code="HARVEST20", discount_type=DiscountType.PERCENTAGE, discount_amount=20
        )
        assert discount_value(449, quote) == 89.8
        assert discounted_price(449, quote) == 359.2

    def test_fixed_discount_is_capped_at_price(self):
        """Test a fixed discount larger than the price only zeroes it."""
        quote = PromoCodeQuote(code="BIG", discount_type=DiscountType.FIXED, discount_amount=500)
        assert discount_value(209, quote) == 209
        assert discounted_price(209, quote) == 0

    def test_full_discount(self):
        """Test a full-discount code covers the whole price."""
        quote = PromoCodeQuote(
            code="FREEBIZYEAR",
            discount_type=DiscountType.PERCENTAGE,
            discount_amount=100,
            is_full_discount=True,
        )
        assert discounted_price(4499, quote) == 0

    def test_no_quote_keeps_price(self):
        """Test the price is unchanged without a code."""
        assert discounted_price(209, None) == 209


class TestConversions:
    """Tests for currency conversions."""

    def test_minor_units(self):
        """Test cedis convert to pesewas without float drift."""
        assert to_minor_units(359.2) == 35920
        assert to_minor_units(209) == 20900

    def test_ghs_to_usd(self):
        """Test the static cedi to dollar conversion rounds to cents."""
        assert ghs_to_usd(209, 15.0) == 13.93
