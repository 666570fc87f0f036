"""Entitlement evaluation: subscription + roles -> feature access matrix.

Pure functions with no I/O. The access matrix is a derived view and is
recomputed on every session start or subscription change.
"""

from collections.abc import Iterable
from datetime import datetime

from agrifaas.accounts.types import Role
from agrifaas.billing.types import (
    BUSINESS_TIER_PLANS,
    GROWER_TIER_PLANS,
    AccessMatrix,
    Subscription,
    SubscriptionStatus,
)
from agrifaas.utils.timeutils import ensure_utc, utcnow


def has_paid_access(subscription: Subscription, now: datetime) -> bool:
    """Whether the subscription currently grants paid-tier features.

    True while Active, or while Trialing and ``now`` is strictly before the
    trial end.
    """
    match subscription.status:
        case SubscriptionStatus.ACTIVE:
            return True
        case SubscriptionStatus.TRIALING:
            return subscription.trial_ends is not None and ensure_utc(now) < ensure_utc(
                subscription.trial_ends
            )
        case SubscriptionStatus.CANCELED | SubscriptionStatus.PAST_DUE:
            return False


def evaluate_access(
    subscription: Subscription | None,
    roles: Iterable[Role],
    now: datetime | None = None,
) -> AccessMatrix:
    """Compute the feature access matrix for a session.

    Args:
        subscription: Current subscription, or None when there is none
            (treated as the starter plan)
        roles: The caller's role set
        now: Evaluation time (default: current UTC time)

    Returns:
        The access matrix. SuperAdmin is granted everything regardless of
        subscription.
    """
    if Role.SUPER_ADMIN in set(roles):
        return AccessMatrix.all_granted()

    if subscription is None:
        return AccessMatrix()

    paid = has_paid_access(subscription, now or utcnow())
    grower_tier = paid and subscription.plan_id in GROWER_TIER_PLANS
    business_tier = paid and subscription.plan_id in BUSINESS_TIER_PLANS

    return AccessMatrix(
        can_access_farm_ops=grower_tier,
        can_access_animal_ops=grower_tier,
        can_access_office_ops=business_tier,
        can_access_hr_ops=business_tier,
        can_access_aeo_tools=business_tier,
    )
