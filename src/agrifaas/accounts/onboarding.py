"""Tenant onboarding: invitations, registration and self-serve sign-up.

Every public method returns an ActionResult. Store writes happen in one
transaction per operation; authentication-provider calls and emails happen
outside of it. When an identity is created but the profile write that links
it fails, the identity is deleted again, and if that also fails the profile
is flagged ``needs_reconciliation``.
"""

import secrets
from datetime import datetime, timedelta

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agrifaas.accounts.types import AccountStatus, Role, TenantKind, serialize_roles
from agrifaas.billing.lifecycle import SubscriptionLifecycle
from agrifaas.config.settings import Settings
from agrifaas.core.audit import AuditLogger
from agrifaas.core.exceptions import (
    DuplicateActiveUserError,
    EmailAlreadyInUseError,
    InvitationError,
    InvitationErrorReason,
    TenantAlreadyAssignedError,
    UserNotFoundError,
)
from agrifaas.core.results import ActionResult
from agrifaas.db.config import Database
from agrifaas.db.models.audit import AuditEventType, AuditSeverity
from agrifaas.db.models.base import new_id
from agrifaas.db.models.tenant import Tenant
from agrifaas.db.models.user import UserProfile
from agrifaas.db.repositories.tenant import TenantRepository
from agrifaas.db.repositories.user import UserProfileRepository
from agrifaas.integrations.auth_provider import AuthIdentity, AuthProvider
from agrifaas.integrations.email import EmailSender, render_invitation_email
from agrifaas.utils.exceptions import ConfigurationError, ProviderError
from agrifaas.utils.timeutils import ensure_utc, utcnow

logger = structlog.get_logger()

PASSWORD_RESET_MESSAGE = (
    "If an account exists for this email, a password reset link has been sent."
)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def generate_invitation_token() -> str:
    """Unguessable single-use token embedded in the invitation link."""
    return secrets.token_urlsafe(32)


class OnboardingService:
    """Creates tenants and brings their users from invitation to an active account."""

    def __init__(
        self,
        database: Database,
        auth_provider: AuthProvider,
        email_sender: EmailSender,
        settings: Settings,
        lifecycle: SubscriptionLifecycle | None = None,
    ):
        self.database = database
        self.auth_provider = auth_provider
        self.email_sender = email_sender
        self.settings = settings
        self.lifecycle = lifecycle or SubscriptionLifecycle(settings.billing)

    @property
    def invitation_ttl(self) -> timedelta:
        return timedelta(hours=self.settings.billing.invitation_ttl_hours)

    # =========================================================================
    # Invitations
    # =========================================================================

    async def create_tenant(
        self,
        tenant_name: str,
        admin_full_name: str,
        admin_email: str,
        now: datetime | None = None,
    ) -> ActionResult[str]:
        """Create a tenant on a trial and invite its first administrator.

        The tenant, the invited profile and the owner reference commit
        together. The invitation email is sent after the commit and a send
        failure does not undo the tenant.

        Args:
            tenant_name: Display name of the farm or organization
            admin_full_name: Name of the invited administrator
            admin_email: Where the invitation is sent
            now: Creation time (default: current UTC time)

        Returns:
            ActionResult carrying the new tenant id
        """
        try:
            base_url = self.settings.require_base_url()
        except ConfigurationError as e:
            logger.error("tenant_creation_not_configured", error=str(e))
            return ActionResult.fail(str(e), "configuration_error")

        now = now or utcnow()
        email = normalize_email(admin_email)
        tenant_name = tenant_name.strip()
        admin_full_name = admin_full_name.strip()

        async with self.database.session() as session:
            existing = await UserProfileRepository(session).find_by_email_and_status(
                email, AccountStatus.ACTIVE.value
            )
        if existing is not None:
            return ActionResult.fail(
                DuplicateActiveUserError(email).args[0], "duplicate_active_user"
            )

        user_id = new_id()
        token = generate_invitation_token()
        trial = self.lifecycle.start_trial(owner_id=user_id, now=now).to_document()
        billing = self.settings.billing

        async def create(session: AsyncSession) -> Tenant:
            users = UserProfileRepository(session)
            if await users.find_by_email_and_status(email, AccountStatus.ACTIVE.value):
                raise DuplicateActiveUserError(email)

            tenant = await TenantRepository(session).add(
                Tenant(
                    tenant_id=new_id(),
                    name=tenant_name,
                    country=billing.default_country,
                    region=billing.default_region,
                    currency=billing.default_currency,
                    owner_id=user_id,
                    subscription=dict(trial),
                )
            )
            await users.add(
                UserProfile(
                    user_id=user_id,
                    tenant_id=tenant.tenant_id,
                    full_name=admin_full_name,
                    email_address=email,
                    roles=serialize_roles({Role.ADMIN}),
                    account_status=AccountStatus.INVITED.value,
                    invitation_token=token,
                    invitation_sent_at=now,
                    subscription=dict(trial),
                )
            )

            audit = AuditLogger(session)
            await audit.log_event(
                AuditEventType.TENANT_CREATED,
                {"name": tenant_name, "owner_id": user_id, "plan_id": trial["plan_id"]},
                tenant_id=tenant.tenant_id,
                user_id=user_id,
                resource_type="tenant",
                resource_id=tenant.tenant_id,
            )
            await audit.log_event(
                AuditEventType.USER_INVITED,
                {"email": email, "roles": [Role.ADMIN.value]},
                tenant_id=tenant.tenant_id,
                user_id=user_id,
                resource_type="user_profile",
                resource_id=user_id,
            )
            return tenant

        try:
            tenant = await self.database.run_in_transaction(create)
        except DuplicateActiveUserError as e:
            return ActionResult.fail(e.args[0], "duplicate_active_user")
        except SQLAlchemyError as e:
            logger.error("tenant_creation_failed", tenant_name=tenant_name, error=str(e))
            return ActionResult.fail(f"Failed to create tenant: {e}", "store_error")

        logger.info(
            "AUDIT: tenant_created",
            tenant_id=tenant.tenant_id,
            owner_id=user_id,
            trial_ends=trial["trial_ends"],
        )

        sent = await self._send_invitation(
            email, admin_full_name, tenant_name, token, base_url, tenant_id=tenant.tenant_id
        )
        if sent:
            message = f"Tenant '{tenant_name}' created and invitation sent to {email}."
        else:
            message = (
                f"Tenant '{tenant_name}' created, but the invitation email to {email} "
                "could not be sent. Use resend invitation to try again."
            )
        return ActionResult.ok(message, tenant.tenant_id, invitation_sent=sent, user_id=user_id)

    async def validate_invitation_token(
        self, token: str, now: datetime | None = None
    ) -> ActionResult[UserProfile]:
        """Look up the invited profile a token belongs to.

        Read-only; an expired token is left in place so it can be replaced
        by a resend.

        Returns:
            ActionResult carrying the profile, or failing with the
            InvitationErrorReason value as ``error_code``
        """
        try:
            profile = await self._find_invited(token, now or utcnow())
        except InvitationError as e:
            return ActionResult.fail(e.args[0], e.reason.value)
        return ActionResult.ok("Invitation is valid.", profile)

    async def _find_invited(self, token: str, now: datetime) -> UserProfile:
        if not token:
            raise InvitationError(InvitationErrorReason.INVALID_OR_CONSUMED)
        async with self.database.session() as session:
            profile = await UserProfileRepository(session).find_by_invitation_token(
                token, AccountStatus.INVITED.value
            )
        if profile is None:
            raise InvitationError(InvitationErrorReason.INVALID_OR_CONSUMED)

        # A profile without a send time cannot prove the token is fresh.
        sent_at = profile.invitation_sent_at
        if sent_at is None or ensure_utc(now) > ensure_utc(sent_at) + self.invitation_ttl:
            raise InvitationError(InvitationErrorReason.EXPIRED)
        if not profile.email_address:
            raise InvitationError(InvitationErrorReason.INCOMPLETE)
        return profile

    async def resend_invitation(
        self, user_id: str, now: datetime | None = None
    ) -> ActionResult[str]:
        """Issue a fresh token to an invited user and email it again."""
        try:
            base_url = self.settings.require_base_url()
        except ConfigurationError as e:
            return ActionResult.fail(str(e), "configuration_error")

        now = now or utcnow()
        token = generate_invitation_token()

        async def reissue(session: AsyncSession) -> ActionResult[tuple[UserProfile, str]]:
            users = UserProfileRepository(session)
            profile = await users.get(user_id)
            if profile is None:
                return ActionResult.fail(f"User profile not found: {user_id}", "user_not_found")
            if profile.account_status != AccountStatus.INVITED.value:
                return ActionResult.fail(
                    "This user has already accepted their invitation.", "not_invited"
                )
            tenant = await TenantRepository(session).get(profile.tenant_id or "")
            await users.update(profile, {"invitation_token": token, "invitation_sent_at": now})
            await AuditLogger(session).log_event(
                AuditEventType.INVITATION_RESENT,
                {"email": profile.email_address},
                tenant_id=profile.tenant_id,
                user_id=profile.user_id,
                resource_type="user_profile",
                resource_id=profile.user_id,
            )
            return ActionResult.ok("", (profile, tenant.name if tenant else ""))

        try:
            result = await self.database.run_in_transaction(reissue)
        except SQLAlchemyError as e:
            logger.error("invitation_resend_failed", user_id=user_id, error=str(e))
            return ActionResult.fail(f"Failed to resend invitation: {e}", "store_error")
        if not result.success or result.data is None:
            return ActionResult.fail(result.message, result.error_code or "not_invited")

        profile, tenant_name = result.data
        sent = await self._send_invitation(
            profile.email_address or "",
            profile.full_name,
            tenant_name,
            token,
            base_url,
            tenant_id=profile.tenant_id,
        )
        if not sent:
            return ActionResult.fail(
                "A new invitation was issued but the email could not be sent.",
                "email_failed",
            )
        return ActionResult.ok(f"Invitation resent to {profile.email_address}.", profile.user_id)

    async def _send_invitation(
        self,
        email: str,
        full_name: str,
        tenant_name: str,
        token: str,
        base_url: str,
        *,
        tenant_id: str | None = None,
    ) -> bool:
        invite_link = f"{base_url}/auth/complete-registration?token={token}"
        subject, html = render_invitation_email(
            full_name, tenant_name, invite_link, self.settings.billing.invitation_ttl_hours
        )
        result = await self.email_sender.send_email(email, subject, html)
        if not result.success:
            logger.warning(
                "invitation_email_failed",
                alert="operations",
                tenant_id=tenant_id,
                to=email,
                error=result.message,
            )
        return result.success

    # =========================================================================
    # Registration
    # =========================================================================

    async def complete_registration(
        self,
        user_id: str,
        password: str,
        full_name: str,
        now: datetime | None = None,
    ) -> ActionResult[UserProfile]:
        """Create the invited user's identity and activate their profile.

        Args:
            user_id: Profile id of the invited user
            password: Password chosen by the user
            full_name: Name as confirmed by the user
            now: Registration time (default: current UTC time)

        Returns:
            ActionResult carrying the activated profile
        """
        now = now or utcnow()
        full_name = full_name.strip()

        async with self.database.session() as session:
            profile = await UserProfileRepository(session).get(user_id)
        if profile is None or profile.account_status != AccountStatus.INVITED.value:
            reason = InvitationErrorReason.INVALID_OR_CONSUMED
            return ActionResult.fail(InvitationError(reason).args[0], reason.value)
        if not profile.email_address:
            reason = InvitationErrorReason.INCOMPLETE
            return ActionResult.fail(InvitationError(reason).args[0], reason.value)

        created = await self._create_identity(profile.email_address, password, full_name)
        if not created.success or created.data is None:
            return ActionResult.fail(created.message, created.error_code or "provider_error")
        identity = created.data

        async def activate(session: AsyncSession) -> UserProfile:
            users = UserProfileRepository(session)
            current = await users.get(user_id)
            if current is None or current.account_status != AccountStatus.INVITED.value:
                raise InvitationError(InvitationErrorReason.INVALID_OR_CONSUMED)
            await users.update(
                current,
                {
                    "full_name": full_name or current.full_name,
                    "account_status": AccountStatus.ACTIVE.value,
                    "invitation_token": None,
                    "registration_date": now,
                    "auth_uid": identity.uid,
                },
            )
            await AuditLogger(session).log_event(
                AuditEventType.REGISTRATION_COMPLETED,
                {"auth_uid": identity.uid},
                tenant_id=current.tenant_id,
                user_id=current.user_id,
                resource_type="user_profile",
                resource_id=current.user_id,
            )
            return current

        try:
            activated = await self.database.run_in_transaction(activate)
        except InvitationError as e:
            await self._compensate(identity, user_id, str(e))
            return ActionResult.fail(e.args[0], e.reason.value)
        except SQLAlchemyError as e:
            await self._compensate(identity, user_id, str(e))
            return ActionResult.fail(f"Failed to complete registration: {e}", "store_error")

        logger.info(
            "AUDIT: registration_completed",
            user_id=activated.user_id,
            tenant_id=activated.tenant_id,
        )
        return ActionResult.ok(
            "Registration complete! You can now sign in to your account.", activated
        )

    async def register_self_serve(
        self,
        full_name: str,
        email: str,
        password: str,
        now: datetime | None = None,
    ) -> ActionResult[UserProfile]:
        """Sign up without an invitation.

        The user starts on a trial with no roles and no tenant; they set up
        a tenant afterwards with ``create_tenant_for_user``.
        """
        now = now or utcnow()
        email = normalize_email(email)
        full_name = full_name.strip()

        created = await self._create_identity(email, password, full_name)
        if not created.success or created.data is None:
            return ActionResult.fail(created.message, created.error_code or "provider_error")
        identity = created.data
        trial = self.lifecycle.start_trial(owner_id=identity.uid, now=now).to_document()

        async def register(session: AsyncSession) -> UserProfile:
            profile = await UserProfileRepository(session).add(
                UserProfile(
                    user_id=identity.uid,
                    auth_uid=identity.uid,
                    full_name=full_name,
                    email_address=email,
                    roles=[],
                    account_status=AccountStatus.ACTIVE.value,
                    registration_date=now,
                    subscription=dict(trial),
                )
            )
            await AuditLogger(session).log_event(
                AuditEventType.USER_SELF_REGISTERED,
                {"email": email, "plan_id": trial["plan_id"]},
                user_id=profile.user_id,
                resource_type="user_profile",
                resource_id=profile.user_id,
            )
            return profile

        try:
            profile = await self.database.run_in_transaction(register, retries=1)
        except SQLAlchemyError as e:
            await self._compensate(identity, identity.uid, str(e))
            return ActionResult.fail(f"Failed to create your profile: {e}", "store_error")

        logger.info("AUDIT: user_self_registered", user_id=profile.user_id)
        return ActionResult.ok("Your account has been created.", profile)

    async def _create_identity(
        self, email: str, password: str, display_name: str
    ) -> ActionResult[AuthIdentity]:
        try:
            identity = await self.auth_provider.create_identity(email, password, display_name)
        except EmailAlreadyInUseError as e:
            return ActionResult.fail(e.args[0], "email_in_use")
        except ProviderError as e:
            logger.error("identity_creation_failed", email=email, error=str(e))
            return ActionResult.fail(f"Could not create your account: {e}", "provider_error")
        return ActionResult.ok("Identity created.", identity)

    async def _compensate(self, identity: AuthIdentity, user_id: str, cause: str) -> None:
        """Undo an identity whose profile write failed."""
        try:
            await self.auth_provider.delete_identity(identity)
        except ProviderError as e:
            logger.error(
                "AUDIT: orphaned_auth_identity",
                alert="operations",
                user_id=user_id,
                auth_uid=identity.uid,
                cause=cause,
                error=str(e),
            )
            await self._flag_for_reconciliation(identity, user_id, cause)
            return
        logger.warning("auth_identity_rolled_back", user_id=user_id, auth_uid=identity.uid)

    async def _flag_for_reconciliation(
        self, identity: AuthIdentity, user_id: str, cause: str
    ) -> None:
        async def flag(session: AsyncSession) -> None:
            audit = AuditLogger(session)
            profile = await UserProfileRepository(session).get(user_id)
            if profile is not None:
                profile.needs_reconciliation = True
            await audit.log_event(
                AuditEventType.RECONCILIATION_REQUIRED,
                {"auth_uid": identity.uid, "email": identity.email, "cause": cause},
                severity=AuditSeverity.CRITICAL,
                tenant_id=profile.tenant_id if profile else None,
                user_id=user_id,
                resource_type="user_profile",
                resource_id=user_id,
            )

        try:
            await self.database.run_in_transaction(flag, retries=1)
        except SQLAlchemyError as e:
            logger.critical(
                "reconciliation_flag_failed",
                alert="operations",
                user_id=user_id,
                auth_uid=identity.uid,
                error=str(e),
            )

    # =========================================================================
    # Self-serve tenant setup
    # =========================================================================

    async def create_tenant_for_user(
        self,
        user_id: str,
        name: str,
        *,
        country: str | None = None,
        region: str | None = None,
        description: str | None = None,
        kind: TenantKind = TenantKind.FARM,
        district: str | None = None,
        organization: str | None = None,
        now: datetime | None = None,
    ) -> ActionResult[str]:
        """Set up a farm, a cooperative or an extension-officer profile.

        Farms and cooperatives get a new tenant on a trial, owned by the
        user. Extension officers get no tenant, only their role and assigned
        area.

        Returns:
            ActionResult carrying the new tenant id (None for extension officers)
        """
        now = now or utcnow()
        name = name.strip()
        if kind != TenantKind.AEO and not name:
            return ActionResult.fail("A name is required.", "validation_error")
        billing = self.settings.billing

        async def setup(session: AsyncSession) -> str | None:
            users = UserProfileRepository(session)
            profile = await users.get(user_id)
            if profile is None:
                raise UserNotFoundError(user_id)
            if profile.tenant_id:
                raise TenantAlreadyAssignedError(user_id, profile.tenant_id)

            if kind == TenantKind.AEO:
                await users.update(
                    profile,
                    {
                        "roles": serialize_roles({Role.AGRIC_EXTENSION_OFFICER}),
                        "assigned_region": region,
                        "assigned_district": district,
                        "organization": organization,
                    },
                )
                return None

            trial = self.lifecycle.start_trial(owner_id=user_id, now=now).to_document()
            tenant = await TenantRepository(session).add(
                Tenant(
                    tenant_id=new_id(),
                    name=name,
                    country=country or billing.default_country,
                    region=region or billing.default_region,
                    currency=billing.default_currency,
                    owner_id=user_id,
                    description=description,
                    subscription=trial,
                )
            )
            updates: dict = {"tenant_id": tenant.tenant_id}
            if kind == TenantKind.COOPERATIVE:
                updates.update(
                    roles=serialize_roles({Role.ADMIN, Role.AGRIC_EXTENSION_OFFICER}),
                    assigned_region=region,
                    assigned_district=district,
                    organization=name,
                )
            else:
                updates["roles"] = serialize_roles({Role.ADMIN})
            await users.update(profile, updates)
            await AuditLogger(session).log_event(
                AuditEventType.TENANT_CREATED,
                {"name": name, "kind": kind.value, "owner_id": user_id},
                tenant_id=tenant.tenant_id,
                user_id=user_id,
                resource_type="tenant",
                resource_id=tenant.tenant_id,
            )
            return tenant.tenant_id

        try:
            tenant_id = await self.database.run_in_transaction(setup)
        except UserNotFoundError as e:
            return ActionResult.fail(e.args[0], "user_not_found")
        except TenantAlreadyAssignedError as e:
            return ActionResult.fail(e.args[0], "tenant_already_assigned")
        except SQLAlchemyError as e:
            logger.error("tenant_setup_failed", user_id=user_id, error=str(e))
            return ActionResult.fail(f"Failed to set up your workspace: {e}", "store_error")

        if tenant_id is None:
            logger.info("AUDIT: extension_officer_profile_set", user_id=user_id)
            return ActionResult.ok("Your extension officer profile is ready.", None)
        logger.info("AUDIT: tenant_created", tenant_id=tenant_id, owner_id=user_id, kind=kind.value)
        return ActionResult.ok(f"'{name}' has been set up.", tenant_id)

    async def request_password_reset(self, email: str) -> ActionResult[None]:
        """Ask the provider for a reset email.

        The reply is the same whether or not the account exists.
        """
        try:
            await self.auth_provider.send_password_reset(normalize_email(email))
        except ProviderError as e:
            logger.warning("password_reset_failed", error=str(e))
        return ActionResult.ok(PASSWORD_RESET_MESSAGE)
