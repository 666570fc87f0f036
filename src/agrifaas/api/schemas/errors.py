"""Error response schemas for API."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from fastapi import HTTPException
from pydantic import BaseModel, Field

from agrifaas.core.results import ActionResult


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Authentication & Authorization
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"

    # Request errors
    INVALID_REQUEST = "invalid_request"
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"
    CONFLICT = "conflict"

    # Domain errors
    USER_NOT_FOUND = "user_not_found"
    INVITATION_INVALID = "invitation_invalid"

    # Provider errors
    PROVIDER_ERROR = "provider_error"

    # System errors
    CONFIGURATION_ERROR = "configuration_error"
    INTERNAL_ERROR = "internal_error"


class APIError(BaseModel):
    """Standardized API error response format.

    All API errors return this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | None = Field(
        default=None, description="Additional error context"
    )
    request_id: str = Field(..., description="Request ID for tracing")
    timestamp: datetime = Field(..., description="When the error occurred")

    model_config = {"json_schema_extra": {"example": {
        "error_code": "duplicate_active_user",
        "message": "An active user with this email address already exists on the platform.",
        "details": None,
        "request_id": "7d0f9a51-3c1e-4a8e-9a4f-2f0f8f9c6b11",
        "timestamp": "2026-01-30T12:00:00Z",
    }}}


# Service error codes that map to something other than 400
_STATUS_BY_ERROR_CODE: dict[str, int] = {
    "configuration_error": 500,
    "store_error": 500,
    "provider_error": 502,
    "duplicate_active_user": 409,
    "email_in_use": 409,
    "promo_duplicate": 409,
    "tenant_already_assigned": 409,
    "user_not_found": 404,
    "promo_not_found": 404,
    "tenant_not_found": 404,
    "invalid_or_consumed": 404,
    "expired": 410,
    "email_failed": 502,
}


def error_detail(
    error_code: str,
    message: str,
    request_id: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """HTTPException detail in the APIError shape."""
    return {
        "error_code": error_code,
        "message": message,
        "details": details,
        "request_id": request_id,
        "timestamp": datetime.now(UTC).isoformat(),
    }


def result_exception(result: ActionResult, request_id: str) -> HTTPException:
    """HTTPException for a failed service result."""
    error_code = result.error_code or ErrorCode.INVALID_REQUEST.value
    return HTTPException(
        status_code=_STATUS_BY_ERROR_CODE.get(error_code, 400),
        detail=error_detail(error_code, result.message, request_id, result.details or None),
    )
