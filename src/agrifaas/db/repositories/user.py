"""User profile repository."""

from sqlalchemy import select

from agrifaas.db.models.user import UserProfile
from agrifaas.db.repositories.base import BaseRepository


class UserProfileRepository(BaseRepository[UserProfile, str]):
    """Repository for user profiles."""

    async def find_by_email_and_status(self, email: str, status: str) -> UserProfile | None:
        """Find the first profile with this email address in the given status."""
        stmt = (
            select(UserProfile)
            .where(UserProfile.email_address == email, UserProfile.account_status == status)
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_invitation_token(self, token: str, status: str) -> UserProfile | None:
        """Find the profile holding an invitation token in the given status."""
        stmt = select(UserProfile).where(
            UserProfile.invitation_token == token,
            UserProfile.account_status == status,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_auth_uid(self, auth_uid: str) -> UserProfile | None:
        """Find the profile linked to an authentication identity."""
        stmt = select(UserProfile).where(UserProfile.auth_uid == auth_uid)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_tenant(
        self, tenant_id: str, *, limit: int = 100, offset: int = 0
    ) -> list[UserProfile]:
        """List the profiles of one tenant, ordered by name."""
        stmt = (
            select(UserProfile)
            .where(UserProfile.tenant_id == tenant_id)
            .order_by(UserProfile.full_name, UserProfile.user_id)
            .limit(min(limit, 1000))
            .offset(offset)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_without_subscription(self, *, limit: int = 500) -> list[UserProfile]:
        """List profiles lacking a subscription document."""
        stmt = (
            select(UserProfile)
            .where(UserProfile.subscription.is_(None))
            .order_by(UserProfile.user_id)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
