"""Database models for AgriFAAS Connect."""

from .audit import AuditEvent, AuditEventType, AuditSeverity
from .base import Base, TimestampMixin
from .promo_code import PromoCodeUsage, PromotionalCode
from .tenant import Tenant
from .user import UserProfile

__all__ = [
    "Base",
    "TimestampMixin",
    "AuditEvent",
    "AuditEventType",
    "AuditSeverity",
    "PromoCodeUsage",
    "PromotionalCode",
    "Tenant",
    "UserProfile",
]
