"""Error handling middleware for mapping exceptions to HTTP responses."""

from collections.abc import Callable
from datetime import UTC, datetime
from uuid import UUID

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.middleware.base import BaseHTTPMiddleware

from agrifaas.api.schemas.errors import APIError, ErrorCode
from agrifaas.core.exceptions import (
    AuthenticationError,
    ContextNotSetError,
    InvitationError,
    UserNotFoundError,
)
from agrifaas.utils.exceptions import ConfigurationError, ProviderError

logger = structlog.get_logger()


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware that catches exceptions and returns standardized error responses.

    Services report expected failures as ActionResult values, so anything
    reaching this middleware is either a domain exception raised outside a
    service boundary or a bug.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and handle any exceptions."""
        try:
            return await call_next(request)
        except Exception as exc:
            return self._handle_exception(request, exc)

    def _handle_exception(self, request: Request, exc: Exception) -> JSONResponse:
        """Convert exception to JSON error response."""
        request_id = self._get_request_id(request)
        status_code, error_code, message, details = self._map_exception(exc, request)

        if status_code >= 500:
            logger.error(
                "unhandled_exception",
                request_id=request_id,
                path=request.url.path,
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=exc,
            )

        error = APIError(
            error_code=error_code,
            message=message,
            details=details,
            request_id=request_id,
            timestamp=datetime.now(UTC),
        )
        return JSONResponse(
            status_code=status_code,
            content=error.model_dump(mode="json"),
            headers={"X-Request-ID": request_id},
        )

    def _get_request_id(self, request: Request) -> str:
        """Extract request ID from state or generate placeholder."""
        if hasattr(request.state, "request_id"):
            rid = request.state.request_id
            return str(rid) if isinstance(rid, UUID) else rid
        return "unknown"

    def _map_exception(
        self, exc: Exception, request: Request
    ) -> tuple[int, str, str, dict | None]:
        """Map exception to (status_code, error_code, message, details)."""
        if isinstance(exc, AuthenticationError):
            return 401, ErrorCode.UNAUTHORIZED.value, str(exc), None

        if isinstance(exc, UserNotFoundError):
            return 404, ErrorCode.USER_NOT_FOUND.value, str(exc), {"user_id": exc.user_id}

        if isinstance(exc, InvitationError):
            return (
                400,
                ErrorCode.INVITATION_INVALID.value,
                str(exc),
                {"reason": exc.reason.value},
            )

        if isinstance(exc, ValidationError):
            return (
                422,
                ErrorCode.VALIDATION_ERROR.value,
                "Request validation failed",
                {"errors": exc.errors(include_url=False, include_context=False)},
            )

        if isinstance(exc, ProviderError):
            return 502, ErrorCode.PROVIDER_ERROR.value, str(exc), None

        if isinstance(exc, ConfigurationError):
            return 500, ErrorCode.CONFIGURATION_ERROR.value, str(exc), None

        if isinstance(exc, ContextNotSetError):
            return (
                500,
                ErrorCode.INTERNAL_ERROR.value,
                "Internal server error: context not initialized",
                None,
            )

        return (
            500,
            ErrorCode.INTERNAL_ERROR.value,
            "Internal server error",
            {"type": type(exc).__name__} if request.app.state.settings.DEBUG else None,
        )
