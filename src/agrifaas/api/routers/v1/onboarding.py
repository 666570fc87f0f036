"""Onboarding API endpoints (no API key; tokens and credentials authenticate them).

- GET /v1/onboarding/invitations/{token} - Check an invitation link
- POST /v1/onboarding/complete-registration - Accept an invitation
- POST /v1/onboarding/register - Self-serve sign-up
- POST /v1/onboarding/password-reset - Request a password reset email
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, status

from agrifaas.accounts.onboarding import OnboardingService
from agrifaas.api.dependencies import get_onboarding_service, get_request_id
from agrifaas.api.schemas.errors import APIError, result_exception
from agrifaas.api.schemas.onboarding import (
    CompleteRegistrationRequest,
    InvitationResponse,
    MessageResponse,
    PasswordResetRequest,
    ProfileResponse,
    RegisterRequest,
    invitation_response_from_profile,
    profile_response,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


@router.get(
    "/invitations/{token}",
    response_model=InvitationResponse,
    summary="Check an invitation link",
    responses={
        404: {"model": APIError, "description": "Invalid or already used"},
        410: {"model": APIError, "description": "Expired"},
        400: {"model": APIError, "description": "Invitation has no email address"},
    },
)
async def validate_invitation(
    token: str,
    onboarding: Annotated[OnboardingService, Depends(get_onboarding_service)],
    request_id: Annotated[str, Depends(get_request_id)],
) -> InvitationResponse:
    """Return the invited profile so the registration form can be pre-filled."""
    result = await onboarding.validate_invitation_token(token)
    if not result.success or result.data is None:
        raise result_exception(result, request_id)
    return invitation_response_from_profile(result.data)


@router.post(
    "/complete-registration",
    response_model=ProfileResponse,
    summary="Accept an invitation",
    responses={
        404: {"model": APIError, "description": "Invalid or already used invitation"},
        409: {"model": APIError, "description": "Email already registered"},
        410: {"model": APIError, "description": "Expired invitation"},
    },
)
async def complete_registration(
    body: CompleteRegistrationRequest,
    onboarding: Annotated[OnboardingService, Depends(get_onboarding_service)],
    request_id: Annotated[str, Depends(get_request_id)],
) -> ProfileResponse:
    """Create the invited user's login and activate the account."""
    invitation = await onboarding.validate_invitation_token(body.token)
    if not invitation.success or invitation.data is None:
        raise result_exception(invitation, request_id)

    result = await onboarding.complete_registration(
        invitation.data.user_id, body.password, body.full_name
    )
    if not result.success or result.data is None:
        raise result_exception(result, request_id)
    return profile_response(result.data)


@router.post(
    "/register",
    response_model=ProfileResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Self-serve sign-up",
    responses={409: {"model": APIError, "description": "Email already registered"}},
)
async def register(
    body: RegisterRequest,
    onboarding: Annotated[OnboardingService, Depends(get_onboarding_service)],
    request_id: Annotated[str, Depends(get_request_id)],
) -> ProfileResponse:
    """Create an account on a trial, without a tenant."""
    result = await onboarding.register_self_serve(body.full_name, body.email, body.password)
    if not result.success or result.data is None:
        raise result_exception(result, request_id)
    return profile_response(result.data)


@router.post(
    "/password-reset",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Request a password reset email",
)
async def request_password_reset(
    body: PasswordResetRequest,
    onboarding: Annotated[OnboardingService, Depends(get_onboarding_service)],
) -> MessageResponse:
    """Always answers the same way so account existence is not revealed."""
    result = await onboarding.request_password_reset(body.email)
    return MessageResponse(message=result.message)
