"""Billing API schemas: promotional codes, checkout and session access."""

from datetime import date, datetime

from pydantic import BaseModel, Field

from agrifaas.billing.types import (
    AccessMatrix,
    BillingCycle,
    DiscountType,
    PlanId,
    Subscription,
)


class PromoValidateRequest(BaseModel):
    code: str
    plan_id: PlanId | None = None
    billing_cycle: BillingCycle | None = None


class PromoValidateResponse(BaseModel):
    """A code that can be used right now, and what it is worth."""

    code: str
    message: str
    discount_type: DiscountType
    discount_amount: float
    is_full_discount: bool
    discount_value: float | None = None


class CheckoutRequest(BaseModel):
    """Start a Paystack payment for the user's tenant."""

    user_id: str
    plan_id: PlanId
    billing_cycle: BillingCycle
    promo_code: str | None = None


class CheckoutResponse(BaseModel):
    authorization_url: str
    access_code: str
    reference: str


class VerifyRequest(BaseModel):
    reference: str = Field(..., min_length=1)
    plan_id: PlanId
    billing_cycle: BillingCycle


class VerifyResponse(BaseModel):
    reference: str
    status: str
    amount: int
    currency: str
    message: str


class PayPalOrderRequest(BaseModel):
    amount_ghs: float = Field(..., gt=0)
    plan_id: PlanId
    billing_cycle: BillingCycle


class PayPalOrderResponse(BaseModel):
    order_id: str
    amount_usd: float


class PayPalCaptureResponse(BaseModel):
    order_id: str
    status: str
    message: str


class SubscriptionView(BaseModel):
    plan_id: PlanId
    status: str
    billing_cycle: BillingCycle
    next_billing_date: date | None = None
    trial_ends: datetime | None = None


def subscription_view(subscription: Subscription | None) -> SubscriptionView | None:
    if subscription is None:
        return None
    return SubscriptionView(
        plan_id=subscription.plan_id,
        status=subscription.status.value,
        billing_cycle=subscription.billing_cycle,
        next_billing_date=subscription.next_billing_date,
        trial_ends=subscription.trial_ends,
    )


class SessionAccessResponse(BaseModel):
    """The signed-in user's profile, tenant and feature access."""

    user_id: str
    full_name: str
    email: str | None
    roles: list[str]
    tenant_id: str | None
    tenant_name: str | None
    is_admin: bool
    subscription: SubscriptionView | None
    access: AccessMatrix


class EnsureProfileRequest(BaseModel):
    """Identity details used to repair a missing profile."""

    email: str | None = None
    display_name: str | None = None


class EnsureProfileResponse(BaseModel):
    user_id: str
    created: bool
    message: str
