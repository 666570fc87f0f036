"""Promotional code and usage ledger models."""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, new_id


class PromotionalCode(TimestampMixin, Base):
    """A discount code with a bounded usage counter."""

    __tablename__ = "promotional_codes"

    promo_code_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    discount_type: Mapped[str] = mapped_column(String(16), nullable=False)
    discount_amount: Mapped[float] = mapped_column(Float, nullable=False)
    usage_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    times_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expiry_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("times_used <= usage_limit", name="ck_promo_usage_within_limit"),
    )

    def __repr__(self) -> str:
        return f"<PromotionalCode(code={self.code}, used={self.times_used}/{self.usage_limit})>"


class PromoCodeUsage(Base):
    """One successful application of a code, keyed by payment reference."""

    __tablename__ = "promo_code_usages"

    usage_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    promo_code_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("promotional_codes.promo_code_id"), nullable=False
    )
    payment_reference: Mapped[str] = mapped_column(String(128), nullable=False)
    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False)
    user_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    plan_id: Mapped[str] = mapped_column(String(32), nullable=False)
    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("promo_code_id", "payment_reference", name="uq_promo_usage_reference"),
    )
