"""Unit tests for authentication providers."""

import json

import httpx
import pytest

from agrifaas.core.exceptions import AuthenticationError, EmailAlreadyInUseError
from agrifaas.integrations.auth_provider import (
    AuthIdentity,
    IdentityToolkitAuthProvider,
    InMemoryAuthProvider,
)
from agrifaas.utils.exceptions import ProviderError


def toolkit(handler) -> IdentityToolkitAuthProvider:
    return IdentityToolkitAuthProvider(
        "api-key",
        base_url="https://identity.test/v1",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def error(message: str) -> httpx.Response:
    return httpx.Response(400, json={"error": {"code": 400, "message": message}})


class TestIdentityToolkitAuthProvider:
    """Tests for the REST-backed provider."""

    @pytest.mark.asyncio
    async def test_create_identity(self):
        """Test sign-up sends the key and returns the new uid and token."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json={"localId": "uid-1", "email": "ama@example.com", "idToken": "tok"}
            )

        identity = await toolkit(handler).create_identity("ama@example.com", "pw123456", "Ama")

        assert identity == AuthIdentity("uid-1", "ama@example.com", "Ama", "tok")
        assert seen[0].url.path == "/v1/accounts:signUp"
        assert seen[0].url.params["key"] == "api-key"
        assert json.loads(seen[0].content)["displayName"] == "Ama"

    @pytest.mark.asyncio
    async def test_email_exists(self):
        """Test EMAIL_EXISTS maps to EmailAlreadyInUseError."""
        provider = toolkit(lambda request: error("EMAIL_EXISTS"))

        with pytest.raises(EmailAlreadyInUseError):
            await provider.create_identity("ama@example.com", "pw123456")

    @pytest.mark.asyncio
    async def test_other_signup_error(self):
        """Test other failures map to ProviderError."""
        provider = toolkit(lambda request: error("WEAK_PASSWORD : too short"))

        with pytest.raises(ProviderError, match="WEAK_PASSWORD"):
            await provider.create_identity("ama@example.com", "pw")

    @pytest.mark.asyncio
    async def test_sign_in_bad_credentials(self):
        """Test credential errors map to AuthenticationError."""
        provider = toolkit(lambda request: error("INVALID_LOGIN_CREDENTIALS"))

        with pytest.raises(AuthenticationError):
            await provider.sign_in("ama@example.com", "wrong")

    @pytest.mark.asyncio
    async def test_delete_requires_token(self):
        """Test an identity without a credential cannot be deleted."""
        provider = toolkit(lambda request: httpx.Response(200, json={}))

        with pytest.raises(ProviderError):
            await provider.delete_identity(AuthIdentity("uid-1", "ama@example.com"))

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        """Test network errors map to ProviderError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ProviderError, match="unreachable"):
            await toolkit(handler).send_password_reset("ama@example.com")


class TestInMemoryAuthProvider:
    """Tests for the in-memory provider."""

    @pytest.mark.asyncio
    async def test_lifecycle(self):
        """Test create, duplicate, sign-in and delete."""
        provider = InMemoryAuthProvider()

        identity = await provider.create_identity("Ama@Example.com", "pw123456")
        with pytest.raises(EmailAlreadyInUseError):
            await provider.create_identity("ama@example.com", "other")

        assert (await provider.sign_in("ama@example.com", "pw123456")).uid == identity.uid
        with pytest.raises(AuthenticationError):
            await provider.sign_in("ama@example.com", "wrong")

        await provider.delete_identity(identity)
        assert provider.identities == {}
        with pytest.raises(ProviderError):
            await provider.delete_identity(identity)

    @pytest.mark.asyncio
    async def test_password_reset_only_for_known_emails(self):
        """Test resets are recorded only for registered addresses."""
        provider = InMemoryAuthProvider()
        await provider.create_identity("ama@example.com", "pw123456")

        await provider.send_password_reset("ama@example.com")
        await provider.send_password_reset("nobody@example.com")

        assert provider.password_resets == ["ama@example.com"]
