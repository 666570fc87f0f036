"""User profile model."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, PortableJSON, TimestampMixin, new_id


class UserProfile(TimestampMixin, Base):
    """One human account, optionally bound to a tenant.

    Invited profiles are created before any authentication identity exists;
    ``auth_uid`` links the profile to the provider identity once the
    invitation is accepted. Self-registered profiles use the provider uid as
    their ``user_id``.
    """

    __tablename__ = "user_profiles"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True, default=new_id)
    tenant_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("tenants.tenant_id"), nullable=True
    )

    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email_address: Mapped[str | None] = mapped_column(String(320), nullable=True)
    roles: Mapped[list] = mapped_column(PortableJSON(), nullable=False, default=list)
    account_status: Mapped[str] = mapped_column(String(32), nullable=False)

    # Invitation
    invitation_token: Mapped[str | None] = mapped_column(String(128), nullable=True, unique=True)
    invitation_sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    registration_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    auth_uid: Mapped[str | None] = mapped_column(String(128), nullable=True, unique=True)

    # Legacy per-user subscription, used when the user has no tenant
    subscription: Mapped[dict | None] = mapped_column(PortableJSON(), nullable=True)

    # Extension officer relationships
    managed_farmer_ids: Mapped[list] = mapped_column(PortableJSON(), nullable=False, default=list)
    managed_by_aeo: Mapped[str | None] = mapped_column(String(128), nullable=True)
    assigned_region: Mapped[str | None] = mapped_column(String(100), nullable=True)
    assigned_district: Mapped[str | None] = mapped_column(String(100), nullable=True)
    organization: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Set when an auth identity could not be linked or cleaned up
    needs_reconciliation: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("idx_user_profiles_tenant", "tenant_id"),
        Index("idx_user_profiles_email_status", "email_address", "account_status"),
    )

    def __repr__(self) -> str:
        return f"<UserProfile(id={self.user_id}, status={self.account_status})>"
