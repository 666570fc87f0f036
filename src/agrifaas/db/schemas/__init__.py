"""Pydantic schemas for validating writes to the store."""

from .promo_code import PromoCodeCreate, PromoCodeUpdate
from .tenant import TenantSettingsUpdate

__all__ = ["PromoCodeCreate", "PromoCodeUpdate", "TenantSettingsUpdate"]
