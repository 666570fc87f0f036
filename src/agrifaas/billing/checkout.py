"""Checkout: starting Paystack and PayPal payments and checking their status.

Nothing here activates a subscription. A paid plan becomes Active only when
the Paystack ``charge.success`` webhook is reconciled.
"""

from datetime import datetime
from urllib.parse import urlencode

import structlog

from agrifaas.billing.pricing import discounted_price, ghs_to_usd, plan_price, to_minor_units
from agrifaas.billing.promo_codes import PromoCodeService
from agrifaas.billing.types import BillingCycle, PlanId, PromoCodeQuote
from agrifaas.config.settings import Settings
from agrifaas.core.results import ActionResult
from agrifaas.db.models.user import UserProfile
from agrifaas.integrations.paypal import CaptureResult, PayPalClient
from agrifaas.integrations.paystack import (
    InitializedTransaction,
    PaystackClient,
    VerifiedTransaction,
)
from agrifaas.utils.exceptions import ConfigurationError, ProviderError

logger = structlog.get_logger()

GATEWAY_NOT_CONFIGURED = "Payment gateway is not configured correctly. Please contact support."


class CheckoutService:
    """Prices a plan, applies a promotional code and hands off to a payment provider."""

    def __init__(
        self,
        settings: Settings,
        promo_codes: PromoCodeService,
        paystack: PaystackClient | None = None,
        paypal: PayPalClient | None = None,
    ):
        self.settings = settings
        self.config = settings.billing
        self.promo_codes = promo_codes
        self.paystack = paystack
        self.paypal = paypal

    async def initialize_checkout(
        self,
        profile: UserProfile,
        plan_id: PlanId,
        billing_cycle: BillingCycle,
        promo_code: str | None = None,
        now: datetime | None = None,
    ) -> ActionResult[InitializedTransaction]:
        """Start a Paystack payment for the profile's tenant.

        The tenant, plan, cycle and promotional code travel in the
        transaction metadata so the webhook can apply them.

        Args:
            profile: Paying user; must belong to a tenant and have an email
            plan_id: Plan being bought
            billing_cycle: Cycle being bought
            promo_code: Optional promotional code
            now: Evaluation time for the promotional code

        Returns:
            ActionResult carrying the authorization URL and payment reference
        """
        try:
            base_url = self.settings.require_base_url()
        except ConfigurationError as e:
            return ActionResult.fail(
                "The application's public URL is not configured. "
                "Cannot generate payment links.",
                "configuration_error",
                error=str(e),
            )
        if self.paystack is None:
            logger.error("paystack_not_configured", alert="configuration")
            return ActionResult.fail(GATEWAY_NOT_CONFIGURED, "configuration_error")
        if not profile.email_address:
            return ActionResult.fail(
                "User email address is missing. Cannot initiate payment.", "missing_email"
            )
        if not profile.tenant_id:
            return ActionResult.fail(
                "Set up your farm or organization before choosing a paid plan.", "no_tenant"
            )

        priced = await self._price(plan_id, billing_cycle, promo_code, now)
        if not priced.success or priced.data is None:
            return ActionResult.fail(priced.message, priced.error_code or "invalid_plan")
        amount, quote = priced.data
        if amount <= 0:
            return ActionResult.fail(
                "This checkout has nothing to pay. Please contact support to activate your plan.",
                "zero_amount",
            )

        query = urlencode({"planId": plan_id.value, "billingCycle": billing_cycle.value})
        metadata = {
            "tenant_id": profile.tenant_id,
            "user_id": profile.user_id,
            "full_name": profile.full_name,
            "plan_id": plan_id.value,
            "billing_cycle": billing_cycle.value,
            "promo_code": quote.code if quote else None,
            "cancel_action": f"{base_url}/settings/billing",
        }
        try:
            transaction = await self.paystack.initialize_transaction(
                email=profile.email_address,
                amount_minor=to_minor_units(amount),
                currency=self.config.default_currency,
                metadata=metadata,
                callback_url=f"{base_url}/settings/billing/verify?{query}",
            )
        except ProviderError as e:
            logger.error(
                "paystack_initialize_failed",
                tenant_id=profile.tenant_id,
                plan_id=plan_id.value,
                error=str(e),
            )
            return ActionResult.fail(str(e), "provider_error")

        logger.info(
            "checkout_initialized",
            tenant_id=profile.tenant_id,
            plan_id=plan_id.value,
            billing_cycle=billing_cycle.value,
            amount=amount,
            reference=transaction.reference,
        )
        return ActionResult.ok("Transaction initialized successfully.", transaction)

    async def _price(
        self,
        plan_id: PlanId,
        billing_cycle: BillingCycle,
        promo_code: str | None,
        now: datetime | None,
    ) -> ActionResult[tuple[float, PromoCodeQuote | None]]:
        try:
            price = plan_price(self.config, plan_id, billing_cycle)
        except ValueError as e:
            return ActionResult.fail(str(e), "invalid_plan")
        if price <= 0:
            return ActionResult.fail(
                f"The {plan_id.value} plan cannot be purchased online.", "invalid_plan"
            )

        quote = None
        if promo_code and promo_code.strip():
            validation = await self.promo_codes.validate_promo_code(
                promo_code, plan_id, billing_cycle, now=now
            )
            if not validation.success:
                return ActionResult.fail(
                    validation.message, validation.error_code or "promo_invalid"
                )
            quote = validation.data
        return ActionResult.ok("Priced.", (discounted_price(price, quote), quote))

    async def verify_transaction(
        self,
        reference: str,
        plan_id: PlanId,
        billing_cycle: BillingCycle,
    ) -> ActionResult[VerifiedTransaction]:
        """Check the status of a Paystack payment after the payer returns.

        A discount may lower the amount paid below the list price but the
        amount can never exceed it.
        """
        if self.paystack is None:
            return ActionResult.fail("Payment gateway is not configured.", "configuration_error")
        try:
            expected = to_minor_units(plan_price(self.config, plan_id, billing_cycle))
        except ValueError:
            return ActionResult.fail("Invalid plan ID specified.", "invalid_plan")

        try:
            transaction = await self.paystack.verify_transaction(reference)
        except ProviderError as e:
            logger.warning("paystack_verify_failed", reference=reference, error=str(e))
            return ActionResult.fail(str(e) or "Transaction was not successful.", "provider_error")

        if not transaction.succeeded:
            return ActionResult.fail("Transaction was not successful.", "payment_not_successful")

        paid_for = (transaction.metadata.get("plan_id"), transaction.metadata.get("billing_cycle"))
        if paid_for != (None, None) and paid_for != (plan_id.value, billing_cycle.value):
            logger.error(
                "payment_plan_mismatch",
                alert="operations",
                reference=reference,
                expected=[plan_id.value, billing_cycle.value],
                paid_for=list(paid_for),
            )
            return ActionResult.fail(
                "Payment does not match the selected plan. Please contact support.",
                "plan_mismatch",
            )
        if transaction.amount <= 0 or transaction.amount > expected:
            logger.error(
                "payment_amount_mismatch",
                alert="operations",
                reference=reference,
                expected=expected,
                amount=transaction.amount,
            )
            return ActionResult.fail(
                "Payment amount mismatch. Please contact support.", "amount_mismatch"
            )

        return ActionResult.ok(
            "Payment confirmed. Your subscription will be activated shortly.", transaction
        )

    # =========================================================================
    # PayPal
    # =========================================================================

    async def create_paypal_order(
        self,
        amount_ghs: float,
        plan_id: PlanId,
        billing_cycle: BillingCycle,
    ) -> ActionResult[str]:
        """Create a PayPal order for an amount in cedis, billed in USD."""
        if self.paypal is None:
            return ActionResult.fail(
                "PayPal API credentials are not configured.", "configuration_error"
            )
        amount_usd = ghs_to_usd(amount_ghs, self.config.ghs_to_usd_rate)
        try:
            order_id = await self.paypal.create_order(
                amount_usd, plan_id.value, billing_cycle.value
            )
        except ProviderError as e:
            logger.error("paypal_create_order_failed", plan_id=plan_id.value, error=str(e))
            return ActionResult.fail(f"Server error: {e}", "provider_error")
        return ActionResult.ok("Order created successfully.", order_id, amount_usd=amount_usd)

    async def capture_paypal_order(self, order_id: str) -> ActionResult[CaptureResult]:
        """Capture an order the payer approved."""
        if self.paypal is None:
            return ActionResult.fail(
                "PayPal API credentials are not configured.", "configuration_error"
            )
        try:
            capture = await self.paypal.capture_order(order_id)
        except ProviderError as e:
            logger.error("paypal_capture_failed", order_id=order_id, error=str(e))
            return ActionResult.fail(f"Server error during capture: {e}", "provider_error")
        if not capture.completed:
            logger.warning("paypal_capture_incomplete", order_id=order_id, status=capture.status)
            result: ActionResult[CaptureResult] = ActionResult.fail(
                capture.data.get("message") or "Failed to capture payment.", "capture_failed"
            )
            result.data = capture
            return result
        logger.info("AUDIT: paypal_payment_captured", order_id=order_id)
        return ActionResult.ok("Payment captured successfully.", capture)
