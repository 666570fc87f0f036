"""Onboarding API schemas.

Request and response bodies for invitations, registration, self-serve
sign-up and workspace setup.
"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, model_validator

from agrifaas.accounts.types import TenantKind
from agrifaas.db.models.user import UserProfile


class InvitationResponse(BaseModel):
    """The invited profile behind a valid token."""

    user_id: str
    tenant_id: str | None
    full_name: str
    email: str
    invitation_sent_at: datetime | None


def invitation_response_from_profile(profile: UserProfile) -> InvitationResponse:
    return InvitationResponse(
        user_id=profile.user_id,
        tenant_id=profile.tenant_id,
        full_name=profile.full_name,
        email=profile.email_address or "",
        invitation_sent_at=profile.invitation_sent_at,
    )


class CompleteRegistrationRequest(BaseModel):
    """Accept an invitation by choosing a password."""

    token: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=2, max_length=255)
    password: str = Field(..., min_length=6, max_length=128)
    confirm_password: str

    @model_validator(mode="after")
    def passwords_match(self) -> "CompleteRegistrationRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match.")
        return self


class RegisterRequest(BaseModel):
    """Self-serve sign-up without an invitation."""

    full_name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


class ProfileResponse(BaseModel):
    """Public view of a user profile."""

    user_id: str
    tenant_id: str | None
    full_name: str
    email: str | None
    roles: list[str]
    account_status: str
    registration_date: datetime | None = None


def profile_response(profile: UserProfile) -> ProfileResponse:
    return ProfileResponse(
        user_id=profile.user_id,
        tenant_id=profile.tenant_id,
        full_name=profile.full_name,
        email=profile.email_address,
        roles=list(profile.roles or []),
        account_status=profile.account_status,
        registration_date=profile.registration_date,
    )


class PasswordResetRequest(BaseModel):
    email: EmailStr


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str


class TenantSetupRequest(BaseModel):
    """Set up a workspace after self-serve sign-up.

    Farms and cooperatives need a name, country and region; cooperatives and
    extension officers also need a district.
    """

    kind: TenantKind = TenantKind.FARM
    name: str | None = Field(default=None, max_length=255)
    country: str | None = Field(default=None, max_length=100)
    region: str | None = Field(default=None, max_length=100)
    district: str | None = Field(default=None, max_length=100)
    organization: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def required_for_kind(self) -> "TenantSetupRequest":
        missing = []
        if self.kind != TenantKind.AEO:
            if not self.name or len(self.name.strip()) < 3:
                missing.append("name")
            if not self.country or len(self.country.strip()) < 2:
                missing.append("country")
        if not self.region or len(self.region.strip()) < 2:
            missing.append("region")
        if self.kind != TenantKind.FARM and (
            not self.district or len(self.district.strip()) < 2
        ):
            missing.append("district")
        if missing:
            raise ValueError(f"Missing or too short for {self.kind.value}: {', '.join(missing)}")
        return self


class TenantSetupResponse(BaseModel):
    tenant_id: str | None
    message: str
