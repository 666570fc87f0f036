"""Promotional code usage ledger.

The ledger only guards the usage counter and the per-payment usage records.
Expiry and the active flag are checked by callers before a code is quoted;
the ledger does not re-validate them. It must be used inside the payment
reconciliation transaction so that the usage record and the subscription
change commit together.
"""

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from agrifaas.billing.types import PromoApplyOutcome
from agrifaas.core.audit import AuditLogger
from agrifaas.db.models.audit import AuditEventType, AuditSeverity
from agrifaas.db.models.promo_code import PromoCodeUsage, PromotionalCode
from agrifaas.db.repositories.promo_code import PromoCodeRepository

logger = structlog.get_logger()


class PromoCodeLedger:
    """Applies a code to a payment at most once, within the usage limit."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = PromoCodeRepository(db)
        self.audit = AuditLogger(db)

    async def apply_usage(
        self,
        promo: PromotionalCode,
        payment_reference: str,
        *,
        tenant_id: str,
        plan_id: str,
        user_id: str | None = None,
    ) -> PromoApplyOutcome:
        """Record one use of ``promo`` for ``payment_reference``.

        The payment reference is the idempotency key: a second call with the
        same reference changes nothing. The counter is incremented with a
        conditional UPDATE so concurrent payments cannot push it past the
        limit; concurrent deliveries of the same payment collide on the
        usage record's unique key and are retried by the transaction runner.

        Args:
            promo: The code, loaded in this session
            payment_reference: Provider reference of the payment
            tenant_id: Tenant that paid
            plan_id: Plan that was paid for
            user_id: User who paid, when known

        Returns:
            APPLIED, ALREADY_APPLIED or LIMIT_EXCEEDED
        """
        existing = await self.repo.get_usage(promo.promo_code_id, payment_reference)
        if existing is not None:
            logger.info(
                "promo_code_already_applied",
                code=promo.code,
                payment_reference=payment_reference,
            )
            return PromoApplyOutcome.ALREADY_APPLIED

        result = await self.db.execute(
            update(PromotionalCode)
            .where(
                PromotionalCode.promo_code_id == promo.promo_code_id,
                PromotionalCode.times_used < PromotionalCode.usage_limit,
            )
            .values(times_used=PromotionalCode.times_used + 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.refresh(promo)

        if result.rowcount == 0:
            logger.warning(
                "promo_code_limit_exceeded",
                code=promo.code,
                payment_reference=payment_reference,
                usage_limit=promo.usage_limit,
            )
            await self.audit.log_event(
                AuditEventType.PROMO_CODE_REJECTED,
                {
                    "code": promo.code,
                    "payment_reference": payment_reference,
                    "reason": PromoApplyOutcome.LIMIT_EXCEEDED.value,
                },
                severity=AuditSeverity.WARNING,
                tenant_id=tenant_id,
                user_id=user_id,
                resource_type="promo_code",
                resource_id=promo.promo_code_id,
            )
            return PromoApplyOutcome.LIMIT_EXCEEDED

        await self.repo.add(
            PromoCodeUsage(
                promo_code_id=promo.promo_code_id,
                payment_reference=payment_reference,
                tenant_id=tenant_id,
                user_id=user_id,
                plan_id=plan_id,
            )
        )
        await self.audit.log_event(
            AuditEventType.PROMO_CODE_APPLIED,
            {
                "code": promo.code,
                "payment_reference": payment_reference,
                "times_used": promo.times_used,
            },
            tenant_id=tenant_id,
            user_id=user_id,
            resource_type="promo_code",
            resource_id=promo.promo_code_id,
        )
        logger.info(
            "AUDIT: promo_code_applied",
            code=promo.code,
            payment_reference=payment_reference,
            times_used=promo.times_used,
        )
        return PromoApplyOutcome.APPLIED
