"""Administration API endpoints.

- POST /v1/admin/tenants - Create a tenant and invite its administrator
- PATCH /v1/admin/tenants/{tenant_id} - Edit a tenant's farm settings
- POST /v1/admin/users/{user_id}/resend-invitation - Reissue an invitation
- GET /v1/admin/tenants/{tenant_id}/users - List a tenant's users
- GET /v1/admin/promo-codes - List promotional codes
- POST /v1/admin/promo-codes - Create a promotional code
- PATCH /v1/admin/promo-codes/{promo_code_id} - Edit a promotional code
- POST /v1/admin/migrations/starter-plan - Give the starter plan to profiles without one
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from agrifaas.accounts.onboarding import OnboardingService
from agrifaas.accounts.profiles import ProfileService
from agrifaas.accounts.tenants import TenantService
from agrifaas.api.dependencies import (
    get_database,
    get_lifecycle,
    get_onboarding_service,
    get_profile_service,
    get_promo_code_service,
    get_request_context,
    get_request_id,
    get_tenant_service,
)
from agrifaas.api.schemas.admin import (
    MigrationResponse,
    PromoCodeListResponse,
    PromoCodeResponse,
    TenantCreateRequest,
    TenantCreateResponse,
    TenantResponse,
    UserListResponse,
    promo_code_response,
    tenant_response,
)
from agrifaas.api.schemas.errors import APIError, ErrorCode, error_detail, result_exception
from agrifaas.api.schemas.onboarding import MessageResponse, profile_response
from agrifaas.billing.lifecycle import SubscriptionLifecycle
from agrifaas.billing.promo_codes import PromoCodeService
from agrifaas.core.context import RequestContext
from agrifaas.db.config import Database
from agrifaas.db.schemas.promo_code import PromoCodeCreate, PromoCodeUpdate
from agrifaas.db.schemas.tenant import TenantSettingsUpdate

logger = structlog.get_logger()

router = APIRouter(prefix="/admin", tags=["admin"])


# =============================================================================
# Tenants and Users
# =============================================================================


@router.post(
    "/tenants",
    response_model=TenantCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a tenant",
    description="""
    Create a tenant on a trial subscription and invite its first
    administrator by email. Fails when an active user already has the
    email address. A failed email does not undo the tenant; the response
    reports `invitation_sent: false` and the invitation can be resent.
    """,
    responses={
        409: {"model": APIError, "description": "Active user with this email exists"},
        500: {"model": APIError, "description": "Base URL not configured or store failure"},
    },
)
async def create_tenant(
    body: TenantCreateRequest,
    onboarding: Annotated[OnboardingService, Depends(get_onboarding_service)],
    request_id: Annotated[str, Depends(get_request_id)],
) -> TenantCreateResponse:
    result = await onboarding.create_tenant(
        body.tenant_name, body.admin_full_name, str(body.admin_email)
    )
    if not result.success or result.data is None:
        raise result_exception(result, request_id)
    return TenantCreateResponse(
        tenant_id=result.data,
        user_id=result.details["user_id"],
        invitation_sent=result.details["invitation_sent"],
        message=result.message,
    )


@router.patch(
    "/tenants/{tenant_id}",
    response_model=TenantResponse,
    summary="Edit farm settings",
    description="""
    Change a tenant's name, description or location. Only the fields in
    the request body change; `description` and `city` can be cleared with
    null. The subscription is managed by billing and cannot be edited here.
    """,
    responses={404: {"model": APIError, "description": "Tenant not found"}},
)
async def update_tenant_settings(
    tenant_id: str,
    body: TenantSettingsUpdate,
    tenants: Annotated[TenantService, Depends(get_tenant_service)],
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    request_id: Annotated[str, Depends(get_request_id)],
) -> TenantResponse:
    result = await tenants.update_tenant_settings(tenant_id, body, updated_by=ctx.actor_id)
    if not result.success or result.data is None:
        raise result_exception(result, request_id)
    return tenant_response(result.data)


@router.post(
    "/users/{user_id}/resend-invitation",
    response_model=MessageResponse,
    summary="Resend an invitation",
    responses={
        400: {"model": APIError, "description": "User is not awaiting registration"},
        404: {"model": APIError, "description": "User not found"},
        502: {"model": APIError, "description": "Email could not be sent"},
    },
)
async def resend_invitation(
    user_id: str,
    onboarding: Annotated[OnboardingService, Depends(get_onboarding_service)],
    request_id: Annotated[str, Depends(get_request_id)],
) -> MessageResponse:
    """Replace the user's invitation token and email the new link."""
    result = await onboarding.resend_invitation(user_id)
    if not result.success:
        raise result_exception(result, request_id)
    return MessageResponse(message=result.message)


@router.get(
    "/tenants/{tenant_id}/users",
    response_model=UserListResponse,
    summary="List a tenant's users",
)
async def list_tenant_users(
    tenant_id: str,
    profiles: Annotated[ProfileService, Depends(get_profile_service)],
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> UserListResponse:
    users = await profiles.list_users(tenant_id, limit=limit, offset=offset)
    return UserListResponse(
        users=[profile_response(u) for u in users], limit=limit, offset=offset
    )


# =============================================================================
# Promotional Codes
# =============================================================================


@router.get(
    "/promo-codes",
    response_model=PromoCodeListResponse,
    summary="List promotional codes",
)
async def list_promo_codes(
    promo_codes: Annotated[PromoCodeService, Depends(get_promo_code_service)],
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> PromoCodeListResponse:
    codes = await promo_codes.list_promo_codes(limit=limit, offset=offset)
    return PromoCodeListResponse(promo_codes=[promo_code_response(p) for p in codes])


@router.post(
    "/promo-codes",
    response_model=PromoCodeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a promotional code",
    responses={409: {"model": APIError, "description": "Code already exists"}},
)
async def create_promo_code(
    body: PromoCodeCreate,
    promo_codes: Annotated[PromoCodeService, Depends(get_promo_code_service)],
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    request_id: Annotated[str, Depends(get_request_id)],
) -> PromoCodeResponse:
    result = await promo_codes.create_promo_code(body, created_by=ctx.actor_id)
    if not result.success or result.data is None:
        raise result_exception(result, request_id)
    return promo_code_response(result.data)


@router.patch(
    "/promo-codes/{promo_code_id}",
    response_model=PromoCodeResponse,
    summary="Edit a promotional code",
    responses={
        400: {"model": APIError, "description": "Invalid discount or usage limit"},
        404: {"model": APIError, "description": "Code not found"},
    },
)
async def update_promo_code(
    promo_code_id: str,
    body: PromoCodeUpdate,
    promo_codes: Annotated[PromoCodeService, Depends(get_promo_code_service)],
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    request_id: Annotated[str, Depends(get_request_id)],
) -> PromoCodeResponse:
    """Change a code's terms. The usage counter cannot be edited."""
    result = await promo_codes.update_promo_code(promo_code_id, body, updated_by=ctx.actor_id)
    if not result.success or result.data is None:
        raise result_exception(result, request_id)
    return promo_code_response(result.data)


# =============================================================================
# Migrations
# =============================================================================


@router.post(
    "/migrations/starter-plan",
    response_model=MigrationResponse,
    summary="Assign the starter plan to profiles without a subscription",
    description="""
    Batch job for legacy profiles. Safe to repeat: profiles that already
    have a subscription are never touched, and a failed run can be resumed.
    """,
    responses={500: {"model": APIError, "description": "Migration stopped part way"}},
)
async def migrate_starter_plan(
    database: Annotated[Database, Depends(get_database)],
    lifecycle: Annotated[SubscriptionLifecycle, Depends(get_lifecycle)],
    request_id: Annotated[str, Depends(get_request_id)],
    batch_size: Annotated[int, Query(ge=1, le=1000)] = 200,
) -> MigrationResponse:
    report = await lifecycle.migrate_missing_subscriptions(database, batch_size=batch_size)
    if not report.success:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=error_detail(
                ErrorCode.INTERNAL_ERROR.value,
                report.message,
                request_id,
                {"processed_count": report.processed_count},
            ),
        )
    return MigrationResponse(
        success=True, processed_count=report.processed_count, message=report.message
    )
