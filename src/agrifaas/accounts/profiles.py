"""Profile reads: the session access view, profile repair and user listing."""

from dataclasses import dataclass
from datetime import datetime

import structlog
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agrifaas.accounts.types import AccountStatus, Role, parse_roles
from agrifaas.billing.entitlements import evaluate_access
from agrifaas.billing.types import AccessMatrix, Subscription
from agrifaas.core.audit import AuditLogger
from agrifaas.core.results import ActionResult
from agrifaas.db.config import Database
from agrifaas.db.models.audit import AuditEventType
from agrifaas.db.models.tenant import Tenant
from agrifaas.db.models.user import UserProfile
from agrifaas.db.repositories.tenant import TenantRepository
from agrifaas.db.repositories.user import UserProfileRepository
from agrifaas.utils.timeutils import utcnow

logger = structlog.get_logger()


@dataclass
class SessionAccess:
    """Everything the client needs about the signed-in user.

    ``access`` is computed on every read and never stored.
    """

    profile: UserProfile
    tenant: Tenant | None
    subscription: Subscription | None
    is_admin: bool
    access: AccessMatrix


class ProfileService:
    """Read side of user profiles."""

    def __init__(self, database: Database):
        self.database = database

    async def get_session_access(
        self, user_id: str, now: datetime | None = None
    ) -> ActionResult[SessionAccess]:
        """Load a profile with its tenant and evaluate feature access.

        The tenant's subscription decides access. Users without a tenant
        fall back to the subscription stored on their own profile.
        """
        now = now or utcnow()
        async with self.database.session() as session:
            profile = await UserProfileRepository(session).get(user_id)
            if profile is None:
                return ActionResult.fail(f"User profile not found: {user_id}", "user_not_found")
            tenant = None
            if profile.tenant_id:
                tenant = await TenantRepository(session).get(profile.tenant_id)

        roles = parse_roles(profile.roles or [])
        if profile.tenant_id:
            document = tenant.subscription if tenant is not None else None
        else:
            document = profile.subscription
        try:
            subscription = Subscription.from_document(document)
        except ValidationError as e:
            # Unreadable billing state grants nothing beyond role overrides.
            logger.error(
                "subscription_document_invalid",
                user_id=user_id,
                tenant_id=profile.tenant_id,
                error=str(e),
            )
            subscription = None

        access = evaluate_access(subscription, roles, now=now)
        return ActionResult.ok(
            "Profile loaded.",
            SessionAccess(
                profile=profile,
                tenant=tenant,
                subscription=subscription,
                is_admin=bool(roles & {Role.ADMIN, Role.SUPER_ADMIN}),
                access=access,
            ),
        )

    async def ensure_profile(
        self,
        uid: str,
        email: str | None,
        display_name: str | None = None,
        now: datetime | None = None,
    ) -> ActionResult[UserProfile]:
        """Create a minimal profile for an authenticated identity that has none.

        Safe to call from concurrent sessions: the existence check and the
        insert share one transaction, and losing the insert race to another
        session returns the profile it created.

        Args:
            uid: Authentication provider identity id
            email: Identity email address
            display_name: Identity display name
            now: Repair time (default: current UTC time)

        Returns:
            ActionResult carrying the existing or repaired profile;
            ``details["created"]`` tells which
        """
        now = now or utcnow()

        async def lookup(session: AsyncSession) -> UserProfile | None:
            users = UserProfileRepository(session)
            return await users.get(uid) or await users.find_by_auth_uid(uid)

        async def repair(session: AsyncSession) -> tuple[UserProfile, bool]:
            existing = await lookup(session)
            if existing is not None:
                return existing, False
            profile = await UserProfileRepository(session).add(
                UserProfile(
                    user_id=uid,
                    auth_uid=uid,
                    full_name=display_name or "New User",
                    email_address=email.strip().lower() if email else None,
                    roles=[],
                    account_status=AccountStatus.ACTIVE.value,
                    registration_date=now,
                )
            )
            await AuditLogger(session).log_event(
                AuditEventType.PROFILE_REPAIRED,
                {"email": profile.email_address},
                user_id=uid,
                resource_type="user_profile",
                resource_id=uid,
            )
            return profile, True

        try:
            profile, created = await self.database.run_in_transaction(repair, retries=1)
        except IntegrityError:
            # Another session inserted the profile first.
            async with self.database.session() as session:
                profile = await lookup(session)
            if profile is None:
                return ActionResult.fail("Failed to repair profile.", "store_error")
            created = False
        except SQLAlchemyError as e:
            logger.error("profile_repair_failed", user_id=uid, error=str(e))
            return ActionResult.fail(f"Failed to repair profile: {e}", "store_error")

        if created:
            logger.warning("AUDIT: profile_repaired", user_id=uid)
            return ActionResult.ok("Profile created.", profile, created=True)
        return ActionResult.ok("Profile already exists.", profile, created=False)

    async def list_users(
        self, tenant_id: str, limit: int = 100, offset: int = 0
    ) -> list[UserProfile]:
        """List the users of a tenant, ordered by name."""
        async with self.database.session() as session:
            return await UserProfileRepository(session).list_by_tenant(
                tenant_id, limit=limit, offset=offset
            )
