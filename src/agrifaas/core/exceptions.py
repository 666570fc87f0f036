"""Core exceptions for tenants, onboarding and billing."""

from enum import Enum

from agrifaas.utils.exceptions import AgrifaasError


class ContextNotSetError(AgrifaasError):
    """Raised when attempting to access request context that is not set."""

    def __init__(self, message: str = "Request context is not set"):
        super().__init__(message)


class UserNotFoundError(AgrifaasError):
    """Raised when a user profile does not exist."""

    def __init__(self, user_id: str):
        super().__init__(f"User profile not found: {user_id}")
        self.user_id = user_id


class DuplicateActiveUserError(AgrifaasError):
    """Raised when an active account already uses an email address."""

    def __init__(self, email: str):
        super().__init__("An active user with this email address already exists on the platform.")
        self.email = email


class TenantAlreadyAssignedError(AgrifaasError):
    """Raised when a user who already belongs to a tenant tries to create another."""

    def __init__(self, user_id: str, tenant_id: str):
        super().__init__(f"User {user_id} already belongs to tenant {tenant_id}")
        self.user_id = user_id
        self.tenant_id = tenant_id


class InvitationErrorReason(str, Enum):
    """Why an invitation token was rejected."""

    INVALID_OR_CONSUMED = "invalid_or_consumed"
    EXPIRED = "expired"
    INCOMPLETE = "incomplete_invitation"


INVITATION_ERROR_MESSAGES: dict[InvitationErrorReason, str] = {
    InvitationErrorReason.INVALID_OR_CONSUMED: (
        "This invitation link is invalid or has already been used. "
        "Please request a new invitation if needed."
    ),
    InvitationErrorReason.EXPIRED: (
        "This invitation link has expired. Please ask your administrator to send a new one."
    ),
    InvitationErrorReason.INCOMPLETE: (
        "This invitation is missing an email address. Please contact support."
    ),
}


class InvitationError(AgrifaasError):
    """Raised when an invitation token cannot be used.

    Attributes:
        reason: The specific rejection reason
    """

    def __init__(self, reason: InvitationErrorReason):
        super().__init__(INVITATION_ERROR_MESSAGES[reason])
        self.reason = reason


class AuthenticationError(AgrifaasError):
    """Raised when API authentication fails."""

    def __init__(self, reason: str = "Authentication failed"):
        super().__init__(reason)
        self.reason = reason


class EmailAlreadyInUseError(AgrifaasError):
    """Raised when the authentication provider already has an identity for an email."""

    def __init__(self, email: str):
        super().__init__("This email address is already registered. Please sign in instead.")
        self.email = email


class WebhookPayloadError(AgrifaasError):
    """Raised when a webhook body cannot be parsed or lacks required metadata."""

    pass
