"""User API endpoints.

- GET /v1/users/{user_id}/session - Profile, tenant and feature access
- POST /v1/users/{user_id}/ensure-profile - Repair a missing profile
- POST /v1/users/{user_id}/setup - Set up a farm, cooperative or extension officer
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, status

from agrifaas.accounts.onboarding import OnboardingService
from agrifaas.accounts.profiles import ProfileService
from agrifaas.api.dependencies import (
    get_onboarding_service,
    get_profile_service,
    get_request_id,
)
from agrifaas.api.schemas.billing import (
    EnsureProfileRequest,
    EnsureProfileResponse,
    SessionAccessResponse,
    subscription_view,
)
from agrifaas.api.schemas.errors import APIError, result_exception
from agrifaas.api.schemas.onboarding import TenantSetupRequest, TenantSetupResponse

logger = structlog.get_logger()

router = APIRouter(prefix="/users", tags=["users"])


@router.get(
    "/{user_id}/session",
    response_model=SessionAccessResponse,
    summary="Get session access",
    description="""
    Load the user's profile and tenant and compute which modules the
    session may use. Access is derived from the tenant's subscription (or
    the user's own for users without a tenant) and the user's roles; it is
    never stored.
    """,
    responses={404: {"model": APIError, "description": "User not found"}},
)
async def get_session_access(
    user_id: str,
    profiles: Annotated[ProfileService, Depends(get_profile_service)],
    request_id: Annotated[str, Depends(get_request_id)],
) -> SessionAccessResponse:
    result = await profiles.get_session_access(user_id)
    if not result.success or result.data is None:
        raise result_exception(result, request_id)

    session_access = result.data
    profile = session_access.profile
    return SessionAccessResponse(
        user_id=profile.user_id,
        full_name=profile.full_name,
        email=profile.email_address,
        roles=list(profile.roles or []),
        tenant_id=profile.tenant_id,
        tenant_name=session_access.tenant.name if session_access.tenant else None,
        is_admin=session_access.is_admin,
        subscription=subscription_view(session_access.subscription),
        access=session_access.access,
    )


@router.post(
    "/{user_id}/ensure-profile",
    response_model=EnsureProfileResponse,
    summary="Repair a missing profile",
    responses={500: {"model": APIError, "description": "Store failure"}},
)
async def ensure_profile(
    user_id: str,
    body: EnsureProfileRequest,
    profiles: Annotated[ProfileService, Depends(get_profile_service)],
    request_id: Annotated[str, Depends(get_request_id)],
) -> EnsureProfileResponse:
    """Create a minimal profile for a signed-in identity that has none."""
    result = await profiles.ensure_profile(user_id, body.email, body.display_name)
    if not result.success or result.data is None:
        raise result_exception(result, request_id)
    return EnsureProfileResponse(
        user_id=result.data.user_id,
        created=bool(result.details.get("created")),
        message=result.message,
    )


@router.post(
    "/{user_id}/setup",
    response_model=TenantSetupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Set up a tenant for a user",
    responses={
        404: {"model": APIError, "description": "User not found"},
        409: {"model": APIError, "description": "User already belongs to a tenant"},
    },
)
async def setup_tenant(
    user_id: str,
    body: TenantSetupRequest,
    onboarding: Annotated[OnboardingService, Depends(get_onboarding_service)],
    request_id: Annotated[str, Depends(get_request_id)],
) -> TenantSetupResponse:
    """Create a farm or cooperative tenant, or register an extension officer."""
    result = await onboarding.create_tenant_for_user(
        user_id,
        body.name or "",
        country=body.country,
        region=body.region,
        description=body.description,
        kind=body.kind,
        district=body.district,
        organization=body.organization,
    )
    if not result.success:
        raise result_exception(result, request_id)
    return TenantSetupResponse(tenant_id=result.data, message=result.message)
