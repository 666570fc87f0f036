"""Initial database schema

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # Create tenants table
    op.create_table(
        "tenants",
        sa.Column("tenant_id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column("region", sa.String(100), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("currency", sa.String(3), nullable=False, server_default="GHS"),
        sa.Column("owner_id", sa.String(128), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("subscription", postgresql.JSONB, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_tenants_owner_id", "tenants", ["owner_id"])

    # Create user_profiles table
    op.create_table(
        "user_profiles",
        sa.Column("user_id", sa.String(128), primary_key=True),
        sa.Column("tenant_id", sa.String(36), nullable=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("email_address", sa.String(320), nullable=True),
        sa.Column("roles", postgresql.JSONB, nullable=False),
        sa.Column("account_status", sa.String(32), nullable=False),
        sa.Column("invitation_token", sa.String(128), nullable=True, unique=True),
        sa.Column("invitation_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("registration_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("auth_uid", sa.String(128), nullable=True, unique=True),
        sa.Column("subscription", postgresql.JSONB, nullable=True),
        sa.Column("managed_farmer_ids", postgresql.JSONB, nullable=False),
        sa.Column("managed_by_aeo", sa.String(128), nullable=True),
        sa.Column("assigned_region", sa.String(100), nullable=True),
        sa.Column("assigned_district", sa.String(100), nullable=True),
        sa.Column("organization", sa.String(255), nullable=True),
        sa.Column(
            "needs_reconciliation", sa.Boolean, nullable=False, server_default=sa.false()
        ),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.tenant_id"]),
    )
    op.create_index("idx_user_profiles_tenant", "user_profiles", ["tenant_id"])
    op.create_index(
        "idx_user_profiles_email_status", "user_profiles", ["email_address", "account_status"]
    )

    # Create promotional_codes table
    op.create_table(
        "promotional_codes",
        sa.Column("promo_code_id", sa.String(36), primary_key=True),
        sa.Column("code", sa.String(64), nullable=False, unique=True),
        sa.Column("discount_type", sa.String(16), nullable=False),
        sa.Column("discount_amount", sa.Float, nullable=False),
        sa.Column("usage_limit", sa.Integer, nullable=False),
        sa.Column("times_used", sa.Integer, nullable=False, server_default="0"),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("description", sa.Text, nullable=True),
        *_timestamps(),
        sa.CheckConstraint("times_used <= usage_limit", name="ck_promo_usage_within_limit"),
    )

    # Create promo_code_usages table
    op.create_table(
        "promo_code_usages",
        sa.Column("usage_id", sa.String(36), primary_key=True),
        sa.Column("promo_code_id", sa.String(36), nullable=False),
        sa.Column("payment_reference", sa.String(128), nullable=False),
        sa.Column("tenant_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(128), nullable=True),
        sa.Column("plan_id", sa.String(32), nullable=False),
        sa.Column(
            "applied_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["promo_code_id"], ["promotional_codes.promo_code_id"]),
        sa.UniqueConstraint(
            "promo_code_id", "payment_reference", name="uq_promo_usage_reference"
        ),
    )

    # Create audit_events table
    op.create_table(
        "audit_events",
        sa.Column("audit_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("severity", sa.String(20), nullable=False, server_default="info"),
        sa.Column("tenant_id", sa.String(36), nullable=True),
        sa.Column("user_id", sa.String(128), nullable=True),
        sa.Column("correlation_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("resource_type", sa.String(50), nullable=True),
        sa.Column("resource_id", sa.String(255), nullable=True),
        sa.Column("event_data", postgresql.JSONB, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("idx_audit_tenant", "audit_events", ["tenant_id"])
    op.create_index("idx_audit_correlation", "audit_events", ["correlation_id"])
    op.create_index("idx_audit_event_type", "audit_events", ["event_type"])
    op.create_index("idx_audit_created", "audit_events", ["created_at"])
    op.create_index("idx_audit_resource", "audit_events", ["resource_type", "resource_id"])


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_table("promo_code_usages")
    op.drop_table("promotional_codes")
    op.drop_table("user_profiles")
    op.drop_table("tenants")
