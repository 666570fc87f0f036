"""Admin API schemas: tenants, users, promotional codes and migrations."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from agrifaas.api.schemas.onboarding import ProfileResponse
from agrifaas.db.models.promo_code import PromotionalCode
from agrifaas.db.models.tenant import Tenant


class TenantCreateRequest(BaseModel):
    """Create a tenant and invite its administrator."""

    tenant_name: str = Field(..., min_length=3, max_length=255)
    admin_full_name: str = Field(..., min_length=2, max_length=255)
    admin_email: EmailStr


class TenantCreateResponse(BaseModel):
    tenant_id: str
    user_id: str
    invitation_sent: bool
    message: str


class TenantResponse(BaseModel):
    tenant_id: str
    name: str
    description: str | None = None
    country: str | None = None
    region: str | None = None
    city: str | None = None
    currency: str
    owner_id: str


def tenant_response(tenant: Tenant) -> TenantResponse:
    return TenantResponse(
        tenant_id=tenant.tenant_id,
        name=tenant.name,
        description=tenant.description,
        country=tenant.country,
        region=tenant.region,
        city=tenant.city,
        currency=tenant.currency,
        owner_id=tenant.owner_id,
    )


class UserListResponse(BaseModel):
    users: list[ProfileResponse]
    limit: int
    offset: int


class PromoCodeResponse(BaseModel):
    promo_code_id: str
    code: str
    discount_type: str
    discount_amount: float
    usage_limit: int
    times_used: int
    expiry_date: datetime
    is_active: bool
    description: str | None = None


def promo_code_response(promo: PromotionalCode) -> PromoCodeResponse:
    return PromoCodeResponse(
        promo_code_id=promo.promo_code_id,
        code=promo.code,
        discount_type=promo.discount_type,
        discount_amount=promo.discount_amount,
        usage_limit=promo.usage_limit,
        times_used=promo.times_used,
        expiry_date=promo.expiry_date,
        is_active=promo.is_active,
        description=promo.description,
    )


class PromoCodeListResponse(BaseModel):
    promo_codes: list[PromoCodeResponse]


class MigrationResponse(BaseModel):
    success: bool
    processed_count: int
    message: str
