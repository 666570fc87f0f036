"""Repositories for database access."""

from .base import BaseRepository
from .promo_code import PromoCodeRepository
from .tenant import TenantRepository
from .user import UserProfileRepository

__all__ = [
    "BaseRepository",
    "PromoCodeRepository",
    "TenantRepository",
    "UserProfileRepository",
]
