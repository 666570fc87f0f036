"""Subscription lifecycle: trials, paid activation and the starter migration."""

from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog
from dateutil.relativedelta import relativedelta
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agrifaas.billing.types import BillingCycle, PlanId, Subscription, SubscriptionStatus
from agrifaas.config.settings import BillingConfig
from agrifaas.core.audit import AuditLogger
from agrifaas.db.config import Database
from agrifaas.db.models.audit import AuditEventType
from agrifaas.db.repositories.user import UserProfileRepository
from agrifaas.utils.timeutils import utcnow

logger = structlog.get_logger()


@dataclass
class MigrationReport:
    """Outcome of a starter-plan migration run."""

    success: bool
    processed_count: int
    message: str


class SubscriptionLifecycle:
    """Builds subscription documents for each lifecycle transition.

    Construction is pure: nothing here writes to the store except
    ``migrate_missing_subscriptions``.
    """

    def __init__(self, config: BillingConfig | None = None):
        self.config = config or BillingConfig()

    def start_trial(self, owner_id: str | None = None, now: datetime | None = None) -> Subscription:
        """Build the trial given to every new tenant and self-registered user.

        Args:
            owner_id: The user the trial is stamped for (logging only)
            now: Trial start (default: current UTC time)

        Returns:
            A Trialing business subscription ending ``trial_days`` after ``now``
        """
        now = now or utcnow()
        subscription = Subscription(
            plan_id=PlanId.BUSINESS,
            status=SubscriptionStatus.TRIALING,
            billing_cycle=BillingCycle.ANNUALLY,
            next_billing_date=None,
            trial_ends=now + timedelta(days=self.config.trial_days),
        )
        logger.debug("trial_started", owner_id=owner_id, trial_ends=str(subscription.trial_ends))
        return subscription

    def activate_paid_plan(
        self,
        plan_id: PlanId,
        billing_cycle: BillingCycle,
        now: datetime | None = None,
    ) -> Subscription:
        """Build an Active subscription after a verified payment.

        Only the payment webhook path calls this.

        Args:
            plan_id: Plan that was paid for
            billing_cycle: Cycle that was paid for
            now: Activation time (default: current UTC time)

        Returns:
            An Active subscription renewing one month or one year from ``now``
        """
        now = now or utcnow()
        if billing_cycle == BillingCycle.ANNUALLY:
            next_billing = now + relativedelta(years=1)
        else:
            next_billing = now + relativedelta(months=1)
        return Subscription(
            plan_id=plan_id,
            status=SubscriptionStatus.ACTIVE,
            billing_cycle=billing_cycle,
            next_billing_date=next_billing.date(),
            trial_ends=None,
        )

    @staticmethod
    def demote_to_starter() -> Subscription:
        """The free starter plan assigned to profiles that never had a subscription."""
        return Subscription(
            plan_id=PlanId.STARTER,
            status=SubscriptionStatus.ACTIVE,
            billing_cycle=BillingCycle.ANNUALLY,
            next_billing_date=None,
        )

    async def migrate_missing_subscriptions(
        self,
        database: Database,
        batch_size: int = 200,
    ) -> MigrationReport:
        """Assign the starter plan to every profile lacking a subscription.

        Runs in batches, each in its own transaction. Profiles that already
        have a subscription are never selected, so an interrupted run can be
        resumed and a completed run is a no-op when repeated.

        Args:
            database: Database handle
            batch_size: Profiles migrated per transaction

        Returns:
            MigrationReport with the number of profiles updated before
            completion or failure
        """
        processed = 0
        starter = self.demote_to_starter().to_document()

        async def migrate_batch(session: AsyncSession) -> int:
            repo = UserProfileRepository(session)
            profiles = await repo.list_without_subscription(limit=batch_size)
            for profile in profiles:
                await repo.update(profile, {"subscription": dict(starter)})
            if profiles:
                await AuditLogger(session).log_event(
                    AuditEventType.SUBSCRIPTION_MIGRATED,
                    {"user_ids": [p.user_id for p in profiles], "plan_id": PlanId.STARTER.value},
                    resource_type="user_profile",
                )
            return len(profiles)

        try:
            while True:
                migrated = await database.run_in_transaction(migrate_batch)
                processed += migrated
                if migrated < batch_size:
                    break
        except SQLAlchemyError as e:
            logger.error(
                "starter_migration_failed",
                processed_count=processed,
                error_type=type(e).__name__,
                error=str(e),
            )
            return MigrationReport(
                success=False,
                processed_count=processed,
                message=f"Migration failed after {processed} profiles: {e}",
            )

        logger.info("AUDIT: starter_migration_completed", processed_count=processed)
        if processed == 0:
            message = "All users already have a subscription plan. No migration needed."
        else:
            message = f"Successfully migrated {processed} users to the Starter plan."
        return MigrationReport(success=True, processed_count=processed, message=message)
