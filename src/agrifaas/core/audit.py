"""Audit logging service for onboarding and billing accountability."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agrifaas.core.context import current_correlation_id
from agrifaas.db.models.audit import AuditEvent, AuditEventType, AuditSeverity


class AuditLogger:
    """Service for creating and querying audit events.

    Audit events are immutable, append-only rows written with the same
    session (and therefore the same transaction) as the change they describe.
    """

    def __init__(self, db: AsyncSession):
        """Initialize audit logger with database session.

        Args:
            db: Async SQLAlchemy session for database operations
        """
        self.db = db

    async def log_event(
        self,
        event_type: AuditEventType | str,
        event_data: dict[str, Any],
        *,
        correlation_id: UUID | None = None,
        severity: AuditSeverity | str = AuditSeverity.INFO,
        tenant_id: str | None = None,
        user_id: str | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
    ) -> AuditEvent:
        """Create an immutable audit log entry.

        Args:
            event_type: Type of event (tenant.created, subscription.activated, etc.)
            event_data: Structured event details (must be JSON serializable)
            correlation_id: Request correlation ID (default: current request's)
            severity: Event severity level (default: INFO)
            tenant_id: Tenant ID (null for system events)
            user_id: User ID affected by or triggering the event
            resource_type: Optional resource type (tenant, promo_code, etc.)
            resource_id: Optional resource ID

        Returns:
            Created AuditEvent instance

        Example:
            >>> audit = AuditLogger(session)
            >>> await audit.log_event(
            ...     AuditEventType.SUBSCRIPTION_ACTIVATED,
            ...     {"plan_id": "grower", "reference": "ref_1"},
            ...     tenant_id=tenant.tenant_id,
            ... )
        """
        if isinstance(event_type, AuditEventType):
            event_type = event_type.value
        if isinstance(severity, AuditSeverity):
            severity = severity.value

        event = AuditEvent(
            event_type=event_type,
            severity=severity,
            tenant_id=tenant_id,
            user_id=user_id,
            correlation_id=correlation_id or current_correlation_id(),
            resource_type=resource_type,
            resource_id=resource_id,
            event_data=event_data,
        )

        self.db.add(event)
        await self.db.flush()

        return event

    async def query_events(
        self,
        tenant_id: str | None = None,
        event_type: AuditEventType | str | None = None,
        resource_id: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[AuditEvent]:
        """Query audit events with filters.

        Args:
            tenant_id: Filter by tenant
            event_type: Filter by event type
            resource_id: Filter by resource
            start_date: Filter events after this date
            end_date: Filter events before this date
            limit: Max results (max 1000)
            offset: Pagination offset

        Returns:
            List of matching audit events, newest first
        """
        if isinstance(event_type, AuditEventType):
            event_type = event_type.value

        query = select(AuditEvent).order_by(
            AuditEvent.created_at.desc(),
            AuditEvent.audit_id.desc(),
        )

        if tenant_id is not None:
            query = query.where(AuditEvent.tenant_id == tenant_id)
        if event_type is not None:
            query = query.where(AuditEvent.event_type == event_type)
        if resource_id is not None:
            query = query.where(AuditEvent.resource_id == resource_id)
        if start_date is not None:
            query = query.where(AuditEvent.created_at >= start_date)
        if end_date is not None:
            query = query.where(AuditEvent.created_at <= end_date)

        query = query.limit(min(limit, 1000)).offset(offset)

        result = await self.db.execute(query)
        return list(result.scalars().all())
