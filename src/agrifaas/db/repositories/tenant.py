"""Tenant repository."""

from agrifaas.db.models.tenant import Tenant
from agrifaas.db.repositories.base import BaseRepository


class TenantRepository(BaseRepository[Tenant, str]):
    """Repository for tenant documents."""

    async def set_subscription(self, tenant: Tenant, subscription: dict) -> Tenant:
        """Replace the embedded subscription document."""
        return await self.update(tenant, {"subscription": subscription})
