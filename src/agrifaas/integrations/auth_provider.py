"""Authentication provider: identities keyed by email and password.

``IdentityToolkitAuthProvider`` talks to the Firebase Identity Toolkit REST
API. ``InMemoryAuthProvider`` keeps identities in a dict for development and
tests.
"""

import secrets
import time
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import structlog

from agrifaas.core.exceptions import AuthenticationError, EmailAlreadyInUseError
from agrifaas.core.logging import log_external_call
from agrifaas.utils.exceptions import ProviderError

logger = structlog.get_logger()


@dataclass
class AuthIdentity:
    """An identity held by the authentication provider.

    ``id_token`` is a short-lived credential for the identity, present right
    after sign-up or sign-in; it is what allows the identity to be deleted
    again without admin credentials.
    """

    uid: str
    email: str
    display_name: str | None = None
    id_token: str | None = None


class AuthProvider(Protocol):
    """Operations the onboarding workflow needs from the identity provider."""

    async def create_identity(
        self, email: str, password: str, display_name: str | None = None
    ) -> AuthIdentity:
        """Create an identity.

        Raises:
            EmailAlreadyInUseError: If the email is already registered
            ProviderError: On any other provider failure
        """
        ...

    async def delete_identity(self, identity: AuthIdentity) -> None:
        """Delete an identity created by ``create_identity``.

        Raises:
            ProviderError: If the identity could not be deleted
        """
        ...

    async def sign_in(self, email: str, password: str) -> AuthIdentity:
        """Check credentials.

        Raises:
            AuthenticationError: If the credentials are wrong
        """
        ...

    async def send_password_reset(self, email: str) -> None:
        """Ask the provider to email a password reset link.

        Raises:
            ProviderError: If the provider rejected the request
        """
        ...


_ERROR_EMAIL_EXISTS = "EMAIL_EXISTS"
_CREDENTIAL_ERRORS = frozenset(
    {"EMAIL_NOT_FOUND", "INVALID_PASSWORD", "INVALID_LOGIN_CREDENTIALS", "USER_DISABLED"}
)


class IdentityToolkitAuthProvider:
    """AuthProvider backed by the Identity Toolkit REST API (httpx)."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://identitytoolkit.googleapis.com/v1",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST to ``accounts:<method>`` and return the decoded body.

        Raises:
            _IdentityToolkitError: If the API answered with an error body
            ProviderError: On transport failures
        """
        start = time.perf_counter()
        try:
            response = await self._client.post(
                f"{self._base_url}/accounts:{method}",
                params={"key": self._api_key},
                json=payload,
            )
        except httpx.HTTPError as e:
            log_external_call(
                logger, "identity_toolkit", method, (time.perf_counter() - start) * 1000, False
            )
            raise ProviderError(f"Authentication provider unreachable: {e}") from e

        duration_ms = (time.perf_counter() - start) * 1000
        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {}
        if response.is_error:
            code = str(body.get("error", {}).get("message", response.status_code))
            log_external_call(
                logger, "identity_toolkit", method, duration_ms, False, error_code=code
            )
            raise _IdentityToolkitError(code)

        log_external_call(logger, "identity_toolkit", method, duration_ms, True)
        return body

    async def create_identity(
        self, email: str, password: str, display_name: str | None = None
    ) -> AuthIdentity:
        payload: dict[str, Any] = {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        }
        if display_name:
            payload["displayName"] = display_name
        try:
            body = await self._call("signUp", payload)
        except _IdentityToolkitError as e:
            if e.code == _ERROR_EMAIL_EXISTS:
                raise EmailAlreadyInUseError(email) from e
            raise ProviderError(f"Could not create account: {e.code}") from e

        return AuthIdentity(
            uid=body["localId"],
            email=body.get("email", email),
            display_name=display_name,
            id_token=body.get("idToken"),
        )

    async def delete_identity(self, identity: AuthIdentity) -> None:
        if not identity.id_token:
            raise ProviderError(f"No credential available to delete identity {identity.uid}")
        try:
            await self._call("delete", {"idToken": identity.id_token})
        except _IdentityToolkitError as e:
            raise ProviderError(f"Could not delete identity {identity.uid}: {e.code}") from e

    async def sign_in(self, email: str, password: str) -> AuthIdentity:
        try:
            body = await self._call(
                "signInWithPassword",
                {"email": email, "password": password, "returnSecureToken": True},
            )
        except _IdentityToolkitError as e:
            if e.code.split(":")[0].strip() in _CREDENTIAL_ERRORS:
                raise AuthenticationError("Invalid email or password.") from e
            raise ProviderError(f"Sign-in failed: {e.code}") from e

        return AuthIdentity(
            uid=body["localId"],
            email=body.get("email", email),
            display_name=body.get("displayName"),
            id_token=body.get("idToken"),
        )

    async def send_password_reset(self, email: str) -> None:
        try:
            await self._call("sendOobCode", {"requestType": "PASSWORD_RESET", "email": email})
        except _IdentityToolkitError as e:
            raise ProviderError(f"Password reset failed: {e.code}") from e


class _IdentityToolkitError(Exception):
    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


class InMemoryAuthProvider:
    """AuthProvider keeping identities in memory.

    Passwords are stored in plain text; use only in development and tests.
    """

    def __init__(self) -> None:
        self.identities: dict[str, AuthIdentity] = {}
        self._passwords: dict[str, str] = {}
        self.password_resets: list[str] = []

    def _find(self, email: str) -> AuthIdentity | None:
        normalized = email.strip().lower()
        return next(
            (i for i in self.identities.values() if i.email.lower() == normalized),
            None,
        )

    async def create_identity(
        self, email: str, password: str, display_name: str | None = None
    ) -> AuthIdentity:
        if self._find(email) is not None:
            raise EmailAlreadyInUseError(email)
        identity = AuthIdentity(
            uid=secrets.token_hex(14),
            email=email,
            display_name=display_name,
            id_token=secrets.token_urlsafe(16),
        )
        self.identities[identity.uid] = identity
        self._passwords[identity.uid] = password
        return identity

    async def delete_identity(self, identity: AuthIdentity) -> None:
        if self.identities.pop(identity.uid, None) is None:
            raise ProviderError(f"Unknown identity {identity.uid}")
        self._passwords.pop(identity.uid, None)

    async def sign_in(self, email: str, password: str) -> AuthIdentity:
        identity = self._find(email)
        if identity is None or self._passwords.get(identity.uid) != password:
            raise AuthenticationError("Invalid email or password.")
        return identity

    async def send_password_reset(self, email: str) -> None:
        if self._find(email) is not None:
            self.password_resets.append(email)
