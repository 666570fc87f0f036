"""Paystack REST client (transaction initialize and verify)."""

import time
from dataclasses import dataclass
from typing import Any

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from agrifaas.core.logging import log_external_call
from agrifaas.utils.exceptions import ProviderError

logger = structlog.get_logger()


class PaystackUnavailableError(ProviderError):
    """Transport failure or 5xx from Paystack; safe to retry for reads."""

    pass


@dataclass
class InitializedTransaction:
    """Where to send the payer, and the reference identifying the payment."""

    authorization_url: str
    access_code: str
    reference: str


@dataclass
class VerifiedTransaction:
    """Status of a transaction as reported by Paystack."""

    reference: str
    status: str
    amount: int
    currency: str
    metadata: dict[str, Any]

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


class PaystackClient:
    """Async Paystack client authenticated with the secret key."""

    def __init__(
        self,
        secret_key: str,
        base_url: str = "https://api.paystack.co",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {secret_key}",
            "Content-Type": "application/json",
        }
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        operation = f"{method} {path}"
        start = time.perf_counter()
        try:
            response = await self._client.request(
                method, f"{self._base_url}{path}", headers=self._headers, **kwargs
            )
        except httpx.HTTPError as e:
            log_external_call(
                logger, "paystack", operation, (time.perf_counter() - start) * 1000, False
            )
            raise PaystackUnavailableError(f"A network error occurred: {e}") from e

        duration_ms = (time.perf_counter() - start) * 1000
        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 500:
            log_external_call(logger, "paystack", operation, duration_ms, False)
            raise PaystackUnavailableError(f"Paystack returned {response.status_code}")
        if response.is_error or not body.get("status"):
            log_external_call(
                logger, "paystack", operation, duration_ms, False, status=response.status_code
            )
            raise ProviderError(
                body.get("message") or "An error occurred while contacting Paystack."
            )

        log_external_call(logger, "paystack", operation, duration_ms, True)
        return body.get("data") or {}

    async def initialize_transaction(
        self,
        *,
        email: str,
        amount_minor: int,
        currency: str,
        metadata: dict[str, Any],
        callback_url: str,
    ) -> InitializedTransaction:
        """Start a payment and get the hosted checkout URL.

        Not retried: a retry could create a second transaction.

        Args:
            email: Payer email address
            amount_minor: Amount in the currency's minor unit
            currency: ISO currency code
            metadata: Echoed back on the charge webhook
            callback_url: Where Paystack redirects the payer afterwards

        Raises:
            ProviderError: If Paystack rejected the request or is unreachable
        """
        data = await self._request(
            "POST",
            "/transaction/initialize",
            json={
                "email": email,
                "amount": amount_minor,
                "currency": currency,
                "metadata": metadata,
                "callback_url": callback_url,
            },
        )
        return InitializedTransaction(
            authorization_url=data["authorization_url"],
            access_code=data["access_code"],
            reference=data["reference"],
        )

    @retry(
        retry=retry_if_exception_type(PaystackUnavailableError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True,
    )
    async def verify_transaction(self, reference: str) -> VerifiedTransaction:
        """Fetch the status of a transaction by reference.

        Raises:
            ProviderError: If Paystack does not know the reference or stays unreachable
        """
        data = await self._request("GET", f"/transaction/verify/{reference}")
        metadata = data.get("metadata")
        return VerifiedTransaction(
            reference=data.get("reference", reference),
            status=data.get("status", "unknown"),
            amount=int(data.get("amount") or 0),
            currency=data.get("currency", ""),
            metadata=metadata if isinstance(metadata, dict) else {},
        )
