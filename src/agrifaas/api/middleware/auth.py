"""Authentication middleware for API key validation."""

import hashlib
import hmac
import re
from collections.abc import Callable
from datetime import UTC, datetime

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from agrifaas.api.schemas.errors import APIError, ErrorCode
from agrifaas.core.context import ActorType

# Paths that don't require authentication
SKIP_AUTH_PATHS = {
    "/health",
    "/health/db",
    "/docs",
    "/redoc",
    "/openapi.json",
}

# Paths that start with these prefixes don't require auth
SKIP_AUTH_PREFIXES = (
    "/docs",
    "/redoc",
    "/v1/webhooks",  # Payment webhooks use signature validation, not API auth
    "/v1/onboarding",  # Invitation tokens and credentials authenticate these
)


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """Middleware that validates Bearer token authentication.

    The token is the shared API secret held by the web application server
    and by operators. An optional ``X-Actor-ID`` header names the user on
    whose behalf the call is made, for logs and audit events.

    Sets:
        request.state.actor_id: Identifier of the authenticated actor
        request.state.actor_type: Type of actor (HUMAN, SERVICE, PROVIDER, SYSTEM)
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and validate authentication."""
        path = request.url.path
        if self._should_skip_auth(path):
            if path.startswith("/v1/webhooks"):
                request.state.actor_id = "paystack"
                request.state.actor_type = ActorType.PROVIDER
            else:
                request.state.actor_id = None
                request.state.actor_type = ActorType.HUMAN
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if not auth_header:
            return self._unauthorized_response("Missing Authorization header")

        match = re.match(r"^Bearer\s+(.+)$", auth_header, re.IGNORECASE)
        if not match:
            return self._unauthorized_response("Invalid Authorization header format")

        token = match.group(1).strip()
        if not self._validate_token(token, request):
            return self._unauthorized_response("Invalid API key")

        actor_id = request.headers.get("X-Actor-ID")
        request.state.actor_id = actor_id or self._get_actor_id_from_token(token)
        request.state.actor_type = ActorType.HUMAN if actor_id else ActorType.SERVICE
        return await call_next(request)

    def _should_skip_auth(self, path: str) -> bool:
        """Check if path should skip authentication."""
        return path in SKIP_AUTH_PATHS or path.startswith(SKIP_AUTH_PREFIXES)

    def _validate_token(self, token: str, request: Request) -> bool:
        """Validate API token against the configured secret.

        Without a configured secret, any non-empty token is accepted in
        debug mode only.
        """
        settings = request.app.state.settings
        if settings.API_SECRET_KEY is None:
            return bool(token) and settings.DEBUG
        expected = settings.API_SECRET_KEY.get_secret_value()
        return hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))

    def _get_actor_id_from_token(self, token: str) -> str:
        """Stable, non-reversible actor id for a service token."""
        return "service:" + hashlib.sha256(token.encode()).hexdigest()[:16]

    def _unauthorized_response(self, message: str) -> JSONResponse:
        """Create a 401 unauthorized response."""
        error = APIError(
            error_code=ErrorCode.UNAUTHORIZED.value,
            message=message,
            details=None,
            request_id="unknown",  # Request ID not yet assigned
            timestamp=datetime.now(UTC),
        )
        return JSONResponse(
            status_code=401,
            content=error.model_dump(mode="json"),
            headers={"WWW-Authenticate": "Bearer"},
        )
