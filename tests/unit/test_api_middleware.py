"""Unit tests for API middleware components."""

from unittest.mock import MagicMock

import pytest
from fastapi import Request
from pydantic import BaseModel, ValidationError

from agrifaas.api.middleware.auth import SKIP_AUTH_PATHS, AuthenticationMiddleware
from agrifaas.api.middleware.errors import ErrorHandlingMiddleware
from agrifaas.core.exceptions import (
    AuthenticationError,
    ContextNotSetError,
    InvitationError,
    InvitationErrorReason,
    UserNotFoundError,
)
from agrifaas.utils.exceptions import ConfigurationError, ProviderError


def mock_request(debug: bool = False) -> Request:
    request = MagicMock(spec=Request)
    request.app.state.settings.DEBUG = debug
    return request


class TestAuthenticationMiddleware:
    """Tests for AuthenticationMiddleware."""

    def test_skip_auth_paths_defined(self):
        """Verify health endpoints skip authentication."""
        assert {"/health", "/health/db"}.issubset(SKIP_AUTH_PATHS)

    @pytest.mark.parametrize(
        ("path", "skipped"),
        [
            ("/v1/webhooks/paystack", True),
            ("/v1/onboarding/register", True),
            ("/docs/oauth2-redirect", True),
            ("/v1/admin/tenants", False),
            ("/v1/users/u-1/session", False),
        ],
    )
    def test_should_skip_auth(self, path: str, skipped: bool):
        """Test public prefixes are recognised."""
        middleware = AuthenticationMiddleware(app=MagicMock())
        assert middleware._should_skip_auth(path) is skipped

    def test_service_actor_id_is_stable(self):
        """Test the service actor id is derived from the token without exposing it."""
        middleware = AuthenticationMiddleware(app=MagicMock())

        actor_id = middleware._get_actor_id_from_token("secret-token")

        assert actor_id == middleware._get_actor_id_from_token("secret-token")
        assert actor_id.startswith("service:")
        assert "secret-token" not in actor_id

    def test_no_secret_accepts_token_only_in_debug(self):
        """Test an unconfigured secret is tolerated only in debug mode."""
        middleware = AuthenticationMiddleware(app=MagicMock())
        request = mock_request(debug=True)
        request.app.state.settings.API_SECRET_KEY = None

        assert middleware._validate_token("anything", request) is True
        request.app.state.settings.DEBUG = False
        assert middleware._validate_token("anything", request) is False


class _Body(BaseModel):
    amount: int


class TestErrorHandlingMiddleware:
    """Tests for exception mapping."""

    @pytest.mark.parametrize(
        ("exc", "status_code", "error_code"),
        [
            (AuthenticationError(), 401, "unauthorized"),
            (UserNotFoundError("u-1"), 404, "user_not_found"),
            (InvitationError(InvitationErrorReason.EXPIRED), 400, "invitation_invalid"),
            (ProviderError("paystack down"), 502, "provider_error"),
            (ConfigurationError("PAYSTACK_SECRET_KEY"), 500, "configuration_error"),
            (ContextNotSetError(), 500, "internal_error"),
            (RuntimeError("boom"), 500, "internal_error"),
        ],
    )
    def test_exception_mapping(self, exc, status_code, error_code):
        """Test each exception maps to its status and error code."""
        middleware = ErrorHandlingMiddleware(app=MagicMock())

        status, code, _, _ = middleware._map_exception(exc, mock_request())

        assert (status, code) == (status_code, error_code)

    def test_invitation_reason_in_details(self):
        """Test invitation errors carry the rejection reason."""
        middleware = ErrorHandlingMiddleware(app=MagicMock())

        _, _, _, details = middleware._map_exception(
            InvitationError(InvitationErrorReason.INVALID_OR_CONSUMED), mock_request()
        )

        assert details == {"reason": "invalid_or_consumed"}

    def test_validation_error(self):
        """Test pydantic validation errors map to 422 with the field errors."""
        middleware = ErrorHandlingMiddleware(app=MagicMock())
        try:
            _Body.model_validate({"amount": "lots"})
        except ValidationError as e:
            exc = e

        status, _, _, details = middleware._map_exception(exc, mock_request())

        assert status == 422
        assert details["errors"][0]["loc"] == ("amount",)

    def test_internal_error_type_only_in_debug(self):
        """Test unexpected exception types are only revealed in debug mode."""
        middleware = ErrorHandlingMiddleware(app=MagicMock())

        _, _, _, hidden = middleware._map_exception(KeyError("x"), mock_request(debug=False))
        _, _, _, shown = middleware._map_exception(KeyError("x"), mock_request(debug=True))

        assert hidden is None
        assert shown == {"type": "KeyError"}
