"""Tenant settings: the editable farm profile."""

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agrifaas.core.audit import AuditLogger
from agrifaas.core.results import ActionResult
from agrifaas.db.config import Database
from agrifaas.db.models.audit import AuditEventType
from agrifaas.db.models.tenant import Tenant
from agrifaas.db.repositories.tenant import TenantRepository
from agrifaas.db.schemas.tenant import TenantSettingsUpdate

logger = structlog.get_logger()

# Fields whose value may be cleared by sending null
CLEARABLE_FIELDS = frozenset({"description", "city"})


class TenantService:
    """Edits of a tenant's name, description and location."""

    def __init__(self, database: Database):
        self.database = database

    async def update_tenant_settings(
        self,
        tenant_id: str,
        data: TenantSettingsUpdate,
        updated_by: str | None = None,
    ) -> ActionResult[Tenant]:
        """Apply a settings edit to a tenant.

        Args:
            tenant_id: Tenant to edit
            data: Fields to change; unset fields are left alone
            updated_by: Acting user, recorded in the audit trail

        Returns:
            ActionResult carrying the updated tenant
        """
        updates = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field in CLEARABLE_FIELDS
        }

        async def edit(session: AsyncSession) -> ActionResult[Tenant]:
            repo = TenantRepository(session)
            tenant = await repo.get(tenant_id)
            if tenant is None:
                return ActionResult.fail(f"Tenant not found: {tenant_id}", "tenant_not_found")
            if not updates:
                return ActionResult.ok("No changes.", tenant)
            await repo.update(tenant, updates)
            await AuditLogger(session).log_event(
                AuditEventType.TENANT_UPDATED,
                {"fields": sorted(updates)},
                tenant_id=tenant.tenant_id,
                user_id=updated_by,
                resource_type="tenant",
                resource_id=tenant.tenant_id,
            )
            return ActionResult.ok("Farm settings updated.", tenant)

        try:
            result = await self.database.run_in_transaction(edit)
        except SQLAlchemyError as e:
            logger.error("tenant_update_failed", tenant_id=tenant_id, error=str(e))
            return ActionResult.fail(f"Failed to update farm settings: {e}", "store_error")

        if result.success and updates:
            logger.info(
                "AUDIT: tenant_updated",
                tenant_id=tenant_id,
                fields=sorted(updates),
                updated_by=updated_by,
            )
        return result
