"""Promotional code validation and administration."""

from datetime import UTC, datetime, time

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agrifaas.billing.pricing import discount_value, plan_price
from agrifaas.billing.types import BillingCycle, DiscountType, PlanId, PromoCodeQuote
from agrifaas.config.settings import BillingConfig
from agrifaas.core.audit import AuditLogger
from agrifaas.core.results import ActionResult
from agrifaas.db.config import Database
from agrifaas.db.models.audit import AuditEventType
from agrifaas.db.models.promo_code import PromotionalCode
from agrifaas.db.repositories.promo_code import PromoCodeRepository
from agrifaas.db.schemas.promo_code import PromoCodeCreate, PromoCodeUpdate
from agrifaas.utils.timeutils import ensure_utc, utcnow

logger = structlog.get_logger()


def end_of_day(value) -> datetime:
    """Last instant of a calendar date, in UTC."""
    return datetime.combine(value, time.max, tzinfo=UTC)


class PromoCodeService:
    """Checks codes at checkout and lets administrators manage them.

    Validation is read-only: usage is only recorded by the payment
    reconciler once a payment succeeds.
    """

    def __init__(self, database: Database, config: BillingConfig | None = None):
        self.database = database
        self.config = config or BillingConfig()

    async def validate_promo_code(
        self,
        code: str,
        plan_id: PlanId | None = None,
        billing_cycle: BillingCycle | None = None,
        now: datetime | None = None,
    ) -> ActionResult[PromoCodeQuote]:
        """Check whether a code can currently be used.

        Args:
            code: Code as entered by the customer (case-insensitive)
            plan_id: Plan being bought, to quote the discount value
            billing_cycle: Cycle being bought, to quote the discount value
            now: Evaluation time (default: current UTC time)

        Returns:
            ActionResult carrying a PromoCodeQuote on success
        """
        normalized = (code or "").strip().upper()
        if not normalized:
            return ActionResult.fail("Promotional code cannot be empty.", "promo_empty")

        full_discount_codes = {c.upper() for c in self.config.full_discount_promo_codes}
        if normalized in full_discount_codes:
            quote = PromoCodeQuote(
                code=normalized,
                discount_type=DiscountType.PERCENTAGE,
                discount_amount=100,
                is_full_discount=True,
            )
            return ActionResult.ok(
                "Success! You have unlocked one free year of the Business Plan.",
                self._with_value(quote, plan_id, billing_cycle),
            )

        async with self.database.session() as session:
            promo = await PromoCodeRepository(session).get_by_code(normalized)

        if promo is None:
            return ActionResult.fail("Invalid promotional code.", "promo_invalid")
        if not promo.is_active:
            return ActionResult.fail(
                "This promotional code is no longer active.", "promo_inactive"
            )
        if ensure_utc(now or utcnow()) > ensure_utc(promo.expiry_date):
            return ActionResult.fail("This promotional code has expired.", "promo_expired")
        if promo.times_used >= promo.usage_limit:
            return ActionResult.fail(
                "This promotional code has reached its usage limit.", "promo_exhausted"
            )

        quote = self._with_value(
            PromoCodeQuote(
                code=promo.code,
                discount_type=DiscountType(promo.discount_type),
                discount_amount=promo.discount_amount,
            ),
            plan_id,
            billing_cycle,
        )
        if quote.discount_type == DiscountType.PERCENTAGE:
            message = f"Success! A discount of {quote.discount_amount:g}% has been applied."
        else:
            message = (
                f"Success! A discount of {self.config.default_currency} "
                f"{quote.discount_amount:.2f} has been applied."
            )
        return ActionResult.ok(message, quote)

    def _with_value(
        self,
        quote: PromoCodeQuote,
        plan_id: PlanId | None,
        billing_cycle: BillingCycle | None,
    ) -> PromoCodeQuote:
        if plan_id is None or billing_cycle is None:
            return quote
        price = plan_price(self.config, plan_id, billing_cycle)
        return quote.model_copy(update={"discount_value": discount_value(price, quote)})

    # =========================================================================
    # Administration
    # =========================================================================

    async def create_promo_code(
        self, data: PromoCodeCreate, created_by: str | None = None
    ) -> ActionResult[PromotionalCode]:
        """Create a new code. Codes are unique after upper-casing."""

        async def create(session: AsyncSession) -> PromotionalCode | None:
            repo = PromoCodeRepository(session)
            if await repo.get_by_code(data.code) is not None:
                return None
            promo = await repo.add(
                PromotionalCode(
                    code=data.code,
                    discount_type=data.discount_type.value,
                    discount_amount=data.discount_amount,
                    usage_limit=data.usage_limit,
                    times_used=0,
                    expiry_date=end_of_day(data.expiry_date),
                    is_active=data.is_active,
                    description=data.description,
                )
            )
            await AuditLogger(session).log_event(
                AuditEventType.PROMO_CODE_CREATED,
                {"code": promo.code, "usage_limit": promo.usage_limit},
                user_id=created_by,
                resource_type="promo_code",
                resource_id=promo.promo_code_id,
            )
            return promo

        try:
            promo = await self.database.run_in_transaction(create, retries=1)
        except IntegrityError:
            promo = None
        except SQLAlchemyError as e:
            logger.error("promo_code_create_failed", code=data.code, error=str(e))
            return ActionResult.fail(f"Failed to create promotional code: {e}", "store_error")

        if promo is None:
            return ActionResult.fail(
                f"Promotional code {data.code} already exists.", "promo_duplicate"
            )
        logger.info("AUDIT: promo_code_created", code=promo.code, created_by=created_by)
        return ActionResult.ok("Promotional code created.", promo)

    async def update_promo_code(
        self,
        promo_code_id: str,
        data: PromoCodeUpdate,
        updated_by: str | None = None,
    ) -> ActionResult[PromotionalCode]:
        """Edit a code's terms. The usage counter is never editable."""
        updates = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field == "description"
        }
        if "discount_type" in updates:
            updates["discount_type"] = updates["discount_type"].value
        if "expiry_date" in updates:
            updates["expiry_date"] = end_of_day(updates["expiry_date"])

        async def edit(session: AsyncSession) -> ActionResult[PromotionalCode]:
            repo = PromoCodeRepository(session)
            promo = await repo.get(promo_code_id)
            if promo is None:
                return ActionResult.fail("Promotional code not found.", "promo_not_found")
            discount_type = updates.get("discount_type", promo.discount_type)
            discount_amount = updates.get("discount_amount", promo.discount_amount)
            if discount_type == DiscountType.PERCENTAGE.value and discount_amount > 100:
                return ActionResult.fail(
                    "Percentage discount cannot exceed 100.", "promo_invalid_discount"
                )
            if updates.get("usage_limit", promo.usage_limit) < promo.times_used:
                return ActionResult.fail(
                    f"Usage limit cannot be lower than the {promo.times_used} uses "
                    "already recorded.",
                    "promo_invalid_limit",
                )
            await repo.update(promo, updates)
            await AuditLogger(session).log_event(
                AuditEventType.PROMO_CODE_UPDATED,
                {"code": promo.code, "fields": sorted(updates)},
                user_id=updated_by,
                resource_type="promo_code",
                resource_id=promo.promo_code_id,
            )
            return ActionResult.ok("Promotional code updated.", promo)

        try:
            result = await self.database.run_in_transaction(edit)
        except SQLAlchemyError as e:
            logger.error("promo_code_update_failed", promo_code_id=promo_code_id, error=str(e))
            return ActionResult.fail(f"Failed to update promotional code: {e}", "store_error")

        if result.success:
            logger.info("AUDIT: promo_code_updated", promo_code_id=promo_code_id)
        return result

    async def list_promo_codes(self, limit: int = 100, offset: int = 0) -> list[PromotionalCode]:
        """List codes, newest first."""
        async with self.database.session() as session:
            return await PromoCodeRepository(session).list(
                limit=limit, offset=offset, order_by="created_at", descending=True
            )
