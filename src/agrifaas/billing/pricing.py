"""Plan pricing and discount arithmetic."""

from agrifaas.billing.types import BillingCycle, DiscountType, PlanId, PromoCodeQuote
from agrifaas.config.settings import BillingConfig


def plan_price(config: BillingConfig, plan_id: PlanId, billing_cycle: BillingCycle) -> float:
    """List price of a plan in ``config.default_currency``.

    Raises:
        ValueError: If the plan/cycle has no configured price
    """
    price = config.price_for(plan_id.value, billing_cycle.value)
    if price is None:
        raise ValueError(f"No price configured for {plan_id.value} ({billing_cycle.value})")
    return float(price)


def discount_value(price: float, quote: PromoCodeQuote) -> float:
    """Discount a quote yields on ``price``, never more than the price itself."""
    if quote.is_full_discount:
        return price
    if quote.discount_type == DiscountType.PERCENTAGE:
        value = price * quote.discount_amount / 100
    else:
        value = quote.discount_amount
    return round(min(max(value, 0.0), price), 2)


def discounted_price(price: float, quote: PromoCodeQuote | None) -> float:
    """Price after applying an optional promotional quote."""
    if quote is None:
        return price
    return round(price - discount_value(price, quote), 2)


def to_minor_units(amount: float) -> int:
    """Convert currency units to the provider's minor unit (pesewas for GHS)."""
    return int(round(amount * 100))


def ghs_to_usd(amount_ghs: float, rate: float) -> float:
    """Convert cedis to US dollars with a static rate, rounded to cents."""
    return round(amount_ghs / rate, 2)
