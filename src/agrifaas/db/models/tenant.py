"""Tenant model: one farm or cooperative workspace."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, PortableJSON, TimestampMixin, new_id


class Tenant(TimestampMixin, Base):
    """Tenant (farm or organization workspace).

    The tenant is the billing and access-control boundary. Its subscription
    is stored as an embedded JSON document and is always replaced as a
    whole, never mutated in place.
    """

    __tablename__ = "tenants"

    tenant_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Location and locale
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    region: Mapped[str | None] = mapped_column(String(100), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="GHS")

    # Exactly one owner; the owner's profile references this tenant
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    subscription: Mapped[dict | None] = mapped_column(PortableJSON(), nullable=True)

    def __repr__(self) -> str:
        return f"<Tenant(id={self.tenant_id}, name={self.name})>"
