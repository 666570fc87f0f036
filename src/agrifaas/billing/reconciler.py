"""Payment webhook reconciliation.

Each inbound Paystack event moves through
``Received -> SignatureVerified -> Parsed -> (NoOp | Applied) -> Acknowledged``.
Only ``charge.success`` events change state. The subscription write and the
promotional code usage record commit in one transaction, keyed by the
payment reference so repeated deliveries are harmless.
"""

import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, ValidationError, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agrifaas.billing.lifecycle import SubscriptionLifecycle
from agrifaas.billing.promo_ledger import PromoCodeLedger
from agrifaas.billing.types import BillingCycle, PlanId, PromoApplyOutcome, Subscription
from agrifaas.core.audit import AuditLogger
from agrifaas.core.exceptions import WebhookPayloadError
from agrifaas.db.config import Database
from agrifaas.db.models.audit import AuditEventType
from agrifaas.db.repositories.promo_code import PromoCodeRepository
from agrifaas.db.repositories.tenant import TenantRepository

logger = structlog.get_logger()

SIGNATURE_HEADER = "x-paystack-signature"
CHARGE_SUCCESS = "charge.success"


class SignatureValidationResult:
    """Result of webhook signature validation."""

    def __init__(self, valid: bool, error: str | None = None) -> None:
        self.valid = valid
        self.error = error

    @classmethod
    def success(cls) -> "SignatureValidationResult":
        """Create a successful validation result."""
        return cls(valid=True)

    @classmethod
    def failure(cls, error: str) -> "SignatureValidationResult":
        """Create a failed validation result."""
        return cls(valid=False, error=error)


def compute_signature(raw_body: bytes, secret: str) -> str:
    """Hex HMAC-SHA512 of the raw body, as Paystack signs it."""
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()


def verify_signature(
    raw_body: bytes, signature: str | None, secret: str
) -> SignatureValidationResult:
    """Check a webhook signature in constant time.

    Args:
        raw_body: Request body exactly as received
        signature: Value of the signature header, if any
        secret: Paystack secret key

    Returns:
        SignatureValidationResult
    """
    if not signature:
        return SignatureValidationResult.failure("Missing webhook signature")
    expected = compute_signature(raw_body, secret).encode("ascii")
    provided = signature.strip().lower().encode("utf-8")
    if not hmac.compare_digest(expected, provided):
        return SignatureValidationResult.failure("Invalid signature")
    return SignatureValidationResult.success()


class ReconcileStatus(str, Enum):
    """Terminal state of one webhook delivery."""

    APPLIED = "applied"
    NO_OP = "no_op"
    TENANT_NOT_FOUND = "tenant_not_found"
    INVALID_SIGNATURE = "invalid_signature"
    INVALID_PAYLOAD = "invalid_payload"
    MISSING_METADATA = "missing_metadata"
    NOT_CONFIGURED = "not_configured"
    FAILED = "failed"


# Acknowledged deliveries get 200 so the provider stops retrying; only store
# failures (and a missing secret) ask for a retry.
_HTTP_STATUS: dict[ReconcileStatus, int] = {
    ReconcileStatus.APPLIED: 200,
    ReconcileStatus.NO_OP: 200,
    ReconcileStatus.TENANT_NOT_FOUND: 200,
    ReconcileStatus.INVALID_SIGNATURE: 401,
    ReconcileStatus.INVALID_PAYLOAD: 400,
    ReconcileStatus.MISSING_METADATA: 400,
    ReconcileStatus.NOT_CONFIGURED: 500,
    ReconcileStatus.FAILED: 500,
}


@dataclass
class ReconcileOutcome:
    """What happened to one webhook delivery."""

    status: ReconcileStatus
    message: str | None = None
    event: str | None = None
    reference: str | None = None
    tenant_id: str | None = None
    subscription: Subscription | None = None
    promo_outcome: PromoApplyOutcome | None = None

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self.status]

    @property
    def acknowledged(self) -> bool:
        return self.http_status < 400

    def body(self) -> dict[str, Any]:
        """Response body returned to the payment provider."""
        body: dict[str, Any] = {"status": "success" if self.acknowledged else "error"}
        if self.message:
            body["message"] = self.message
        return body


class PaymentMetadata(BaseModel):
    """Metadata attached to a Paystack transaction at checkout."""

    tenant_id: str
    plan_id: PlanId
    billing_cycle: BillingCycle
    user_id: str | None = None
    promo_code: str | None = None

    @field_validator("tenant_id")
    @classmethod
    def tenant_id_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("tenant_id is empty")
        return v

    @field_validator("promo_code")
    @classmethod
    def normalize_promo_code(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip().upper()
        return v or None


def parse_event(raw_body: bytes) -> dict[str, Any]:
    """Decode a webhook body.

    Raises:
        WebhookPayloadError: If the body is not a JSON object
    """
    try:
        event = json.loads(raw_body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise WebhookPayloadError(f"Invalid JSON payload: {e}") from e
    if not isinstance(event, dict):
        raise WebhookPayloadError("Webhook payload must be a JSON object")
    return event


def extract_metadata(data: dict[str, Any]) -> PaymentMetadata:
    """Pull checkout metadata out of a charge event's ``data``.

    Paystack echoes metadata back as an object, or as a JSON string when it
    was sent as one.

    Raises:
        WebhookPayloadError: If required metadata is missing or invalid
    """
    metadata = data.get("metadata")
    if isinstance(metadata, str):
        try:
            metadata = json.loads(metadata)
        except json.JSONDecodeError as e:
            raise WebhookPayloadError("Metadata is not valid JSON") from e
    if not isinstance(metadata, dict):
        raise WebhookPayloadError("Incomplete metadata.")
    try:
        return PaymentMetadata.model_validate(metadata)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise WebhookPayloadError(f"Incomplete metadata: {', '.join(fields)}") from e


class PaymentWebhookReconciler:
    """Verifies Paystack webhooks and applies successful charges.

    Every call returns a ReconcileOutcome; nothing is raised to the caller.
    """

    def __init__(
        self,
        database: Database,
        secret: str | None,
        lifecycle: SubscriptionLifecycle | None = None,
    ):
        self.database = database
        self.secret = secret
        self.lifecycle = lifecycle or SubscriptionLifecycle()

    async def process(
        self,
        raw_body: bytes,
        signature: str | None,
        now: datetime | None = None,
    ) -> ReconcileOutcome:
        """Verify, parse and apply one webhook delivery.

        Args:
            raw_body: Request body exactly as received
            signature: Value of the ``x-paystack-signature`` header
            now: Activation time (default: current UTC time)

        Returns:
            ReconcileOutcome describing the result and the HTTP response
        """
        if not self.secret:
            logger.error("paystack_webhook_not_configured", alert="configuration")
            return ReconcileOutcome(ReconcileStatus.NOT_CONFIGURED, "Server configuration error.")

        validation = verify_signature(raw_body, signature, self.secret)
        if not validation.valid:
            logger.warning(
                "AUDIT: webhook_signature_failed",
                audit_event_type="security.alert",
                provider="paystack",
                error=validation.error,
            )
            return ReconcileOutcome(ReconcileStatus.INVALID_SIGNATURE, validation.error)

        try:
            event = parse_event(raw_body)
        except WebhookPayloadError as e:
            logger.warning("paystack_webhook_invalid_payload", error=str(e))
            return ReconcileOutcome(ReconcileStatus.INVALID_PAYLOAD, str(e))

        event_type = event.get("event")
        logger.info("paystack_webhook_received", webhook_event=event_type)
        if event_type != CHARGE_SUCCESS:
            return ReconcileOutcome(ReconcileStatus.NO_OP, event=event_type)

        data = event.get("data")
        if not isinstance(data, dict):
            data = {}
        reference = data.get("reference")
        reference = str(reference) if reference not in (None, "") else None

        try:
            metadata = extract_metadata(data)
        except WebhookPayloadError as e:
            logger.error(
                "paystack_webhook_missing_metadata",
                reference=reference,
                error=str(e),
            )
            return ReconcileOutcome(
                ReconcileStatus.MISSING_METADATA,
                str(e),
                event=event_type,
                reference=reference,
            )

        try:
            outcome = await self.database.run_in_transaction(
                lambda session: self._apply(session, metadata, reference, now)
            )
        except SQLAlchemyError as e:
            logger.error(
                "paystack_webhook_apply_failed",
                tenant_id=metadata.tenant_id,
                reference=reference,
                error_type=type(e).__name__,
                error=str(e),
            )
            return ReconcileOutcome(
                ReconcileStatus.FAILED,
                f"Webhook Error: {e}",
                event=event_type,
                reference=reference,
                tenant_id=metadata.tenant_id,
            )

        outcome.event = event_type
        return outcome

    async def _apply(
        self,
        session: AsyncSession,
        metadata: PaymentMetadata,
        reference: str | None,
        now: datetime | None,
    ) -> ReconcileOutcome:
        tenants = TenantRepository(session)
        tenant = await tenants.get(metadata.tenant_id)
        if tenant is None:
            # Never resolves by retrying, so it is acknowledged and alerted on.
            logger.error(
                "paystack_webhook_tenant_not_found",
                alert="operations",
                tenant_id=metadata.tenant_id,
                reference=reference,
            )
            return ReconcileOutcome(
                ReconcileStatus.TENANT_NOT_FOUND,
                "Webhook received, but the tenant does not exist.",
                reference=reference,
                tenant_id=metadata.tenant_id,
            )

        subscription = self.lifecycle.activate_paid_plan(
            metadata.plan_id, metadata.billing_cycle, now=now
        )
        await tenants.set_subscription(tenant, subscription.to_document())
        await AuditLogger(session).log_event(
            AuditEventType.SUBSCRIPTION_ACTIVATED,
            {
                "plan_id": subscription.plan_id.value,
                "billing_cycle": subscription.billing_cycle.value,
                "next_billing_date": str(subscription.next_billing_date),
                "payment_reference": reference,
            },
            tenant_id=tenant.tenant_id,
            user_id=metadata.user_id,
            resource_type="tenant",
            resource_id=tenant.tenant_id,
        )

        promo_outcome = None
        if metadata.promo_code:
            promo_outcome = await self._apply_promo(session, metadata, reference)

        logger.info(
            "AUDIT: subscription_activated",
            tenant_id=tenant.tenant_id,
            plan_id=subscription.plan_id.value,
            billing_cycle=subscription.billing_cycle.value,
            reference=reference,
            promo_outcome=promo_outcome.value if promo_outcome else None,
        )
        return ReconcileOutcome(
            ReconcileStatus.APPLIED,
            reference=reference,
            tenant_id=tenant.tenant_id,
            subscription=subscription,
            promo_outcome=promo_outcome,
        )

    async def _apply_promo(
        self,
        session: AsyncSession,
        metadata: PaymentMetadata,
        reference: str | None,
    ) -> PromoApplyOutcome | None:
        promo = await PromoCodeRepository(session).get_by_code(metadata.promo_code or "")
        if promo is None:
            # Hard-wired full-discount codes have no ledger entry.
            logger.info("promo_code_not_tracked", code=metadata.promo_code)
            return None
        if reference is None:
            logger.warning(
                "promo_code_skipped_without_reference",
                code=promo.code,
                tenant_id=metadata.tenant_id,
            )
            return None
        return await PromoCodeLedger(session).apply_usage(
            promo,
            reference,
            tenant_id=metadata.tenant_id,
            plan_id=metadata.plan_id.value,
            user_id=metadata.user_id,
        )
