"""Billing types: plans, subscription state and the access matrix."""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PlanId(str, Enum):
    """Subscription plan tiers, lowest first."""

    STARTER = "starter"
    GROWER = "grower"
    BUSINESS = "business"
    ENTERPRISE = "enterprise"


class SubscriptionStatus(str, Enum):
    """Billing state of a subscription."""

    ACTIVE = "Active"
    TRIALING = "Trialing"
    CANCELED = "Canceled"
    PAST_DUE = "Past Due"


class BillingCycle(str, Enum):
    """How often a paid plan renews."""

    MONTHLY = "monthly"
    ANNUALLY = "annually"


# Plans unlocking each feature tier
GROWER_TIER_PLANS = frozenset({PlanId.GROWER, PlanId.BUSINESS, PlanId.ENTERPRISE})
BUSINESS_TIER_PLANS = frozenset({PlanId.BUSINESS, PlanId.ENTERPRISE})


class Subscription(BaseModel):
    """Billing state embedded in a tenant (and, for legacy data, a user profile).

    Stored as a JSON document; ``to_document`` / ``from_document`` convert
    between the model and its stored form.
    """

    model_config = ConfigDict(frozen=True)

    plan_id: PlanId = PlanId.STARTER
    status: SubscriptionStatus
    billing_cycle: BillingCycle
    next_billing_date: date | None = None
    trial_ends: datetime | None = None

    @model_validator(mode="after")
    def trialing_requires_trial_end(self) -> "Subscription":
        """A trialing subscription must know when the trial ends."""
        if self.status == SubscriptionStatus.TRIALING and self.trial_ends is None:
            raise ValueError("Trialing subscription requires trial_ends")
        return self

    def to_document(self) -> dict:
        """Serialize for storage in a JSON column."""
        return self.model_dump(mode="json")

    @classmethod
    def from_document(cls, document: dict | None) -> "Subscription | None":
        """Parse a stored subscription, or None when the document is absent.

        A stored document with a missing or empty plan id is read as
        ``starter``.

        Raises:
            ValidationError: If the stored document is malformed
        """
        if document is None:
            return None
        data = dict(document)
        if not data.get("plan_id"):
            data.pop("plan_id", None)
        return cls.model_validate(data)


class AccessMatrix(BaseModel):
    """Feature flags for one session, derived from subscription and roles.

    Never persisted; recomputed whenever the subscription changes.
    """

    model_config = ConfigDict(frozen=True)

    can_access_farm_ops: bool = False
    can_access_animal_ops: bool = False
    can_access_office_ops: bool = False
    can_access_hr_ops: bool = False
    can_access_aeo_tools: bool = False

    @classmethod
    def all_granted(cls) -> "AccessMatrix":
        return cls(
            can_access_farm_ops=True,
            can_access_animal_ops=True,
            can_access_office_ops=True,
            can_access_hr_ops=True,
            can_access_aeo_tools=True,
        )

    def flags(self) -> dict[str, bool]:
        """All flags keyed by name."""
        return self.model_dump()


class DiscountType(str, Enum):
    """How a promotional code reduces the price."""

    FIXED = "fixed"
    PERCENTAGE = "percentage"


class PromoApplyOutcome(str, Enum):
    """Result of applying a promotional code to one payment."""

    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    LIMIT_EXCEEDED = "limit_exceeded"


class PromoCodeQuote(BaseModel):
    """A validated promotional code and the discount it yields."""

    code: str
    discount_type: DiscountType
    discount_amount: float
    is_full_discount: bool = False
    discount_value: float | None = Field(
        default=None, description="Discount in currency units for the quoted plan and cycle"
    )
