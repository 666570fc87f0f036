"""Audit event models for accountability of billing and onboarding changes."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, PortableJSON, PortableUUID


class AuditEventType(str, Enum):
    """Types of audit events tracked in the system."""

    # Tenant and onboarding
    TENANT_CREATED = "tenant.created"
    TENANT_UPDATED = "tenant.updated"
    USER_INVITED = "user.invited"
    INVITATION_RESENT = "user.invitation_resent"
    REGISTRATION_COMPLETED = "user.registration_completed"
    USER_SELF_REGISTERED = "user.self_registered"
    PROFILE_REPAIRED = "user.profile_repaired"
    RECONCILIATION_REQUIRED = "user.reconciliation_required"

    # Billing
    SUBSCRIPTION_ACTIVATED = "subscription.activated"
    SUBSCRIPTION_MIGRATED = "subscription.migrated"
    PROMO_CODE_CREATED = "promo.created"
    PROMO_CODE_UPDATED = "promo.updated"
    PROMO_CODE_APPLIED = "promo.applied"
    PROMO_CODE_REJECTED = "promo.rejected"


class AuditSeverity(str, Enum):
    """Severity levels for audit events."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(Base):
    """Immutable audit log entry.

    Audit events are append-only and are written in the same transaction as
    the change they describe.
    """

    __tablename__ = "audit_events"

    audit_id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid4)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False, default="info")

    # Context
    tenant_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    user_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    correlation_id: Mapped[UUID] = mapped_column(PortableUUID(), nullable=False)

    resource_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    resource_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    event_data: Mapped[dict] = mapped_column(PortableJSON(), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_audit_tenant", "tenant_id"),
        Index("idx_audit_correlation", "correlation_id"),
        Index("idx_audit_event_type", "event_type"),
        Index("idx_audit_created", "created_at"),
        Index("idx_audit_resource", "resource_type", "resource_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuditEvent(id={self.audit_id}, type={self.event_type}, "
            f"severity={self.severity})>"
        )
