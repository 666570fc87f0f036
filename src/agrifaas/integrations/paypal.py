"""PayPal Orders v2 client (create and capture)."""

import time
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from agrifaas.core.logging import log_external_call
from agrifaas.utils.exceptions import ProviderError

logger = structlog.get_logger()


class PayPalUnavailableError(ProviderError):
    """Transport failure talking to PayPal."""

    pass


@dataclass
class CaptureResult:
    """Outcome of capturing an approved order."""

    completed: bool
    status: str
    data: dict[str, Any] = field(default_factory=dict)


class PayPalClient:
    """Async PayPal client using client-credentials OAuth."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        base_url: str = "https://api-m.sandbox.paypal.com",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._client_id = client_id
        self._client_secret = client_secret
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    @retry(
        retry=retry_if_exception_type(PayPalUnavailableError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True,
    )
    async def get_access_token(self) -> str:
        """Exchange the client credentials for a bearer token.

        Raises:
            ProviderError: If PayPal rejected the credentials
        """
        start = time.perf_counter()
        try:
            response = await self._client.post(
                f"{self._base_url}/v1/oauth2/token",
                data={"grant_type": "client_credentials"},
                auth=(self._client_id, self._client_secret),
            )
        except httpx.HTTPError as e:
            log_external_call(
                logger, "paypal", "oauth2_token", (time.perf_counter() - start) * 1000, False
            )
            raise PayPalUnavailableError(f"PayPal unreachable: {e}") from e

        duration_ms = (time.perf_counter() - start) * 1000
        if response.is_error:
            log_external_call(
                logger, "paypal", "oauth2_token", duration_ms, False, status=response.status_code
            )
            raise ProviderError("Failed to get PayPal access token.")
        log_external_call(logger, "paypal", "oauth2_token", duration_ms, True)
        return response.json()["access_token"]

    async def _post(self, path: str, operation: str, payload: dict[str, Any] | None = None):
        token = await self.get_access_token()
        start = time.perf_counter()
        try:
            response = await self._client.post(
                f"{self._base_url}{path}",
                json=payload,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            log_external_call(
                logger, "paypal", operation, (time.perf_counter() - start) * 1000, False
            )
            raise PayPalUnavailableError(f"PayPal unreachable: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        log_external_call(
            logger,
            "paypal",
            operation,
            (time.perf_counter() - start) * 1000,
            not response.is_error,
            status=response.status_code,
        )
        return response, body

    async def create_order(
        self, amount_usd: float, plan_id: str, billing_cycle: str
    ) -> str:
        """Create a CAPTURE-intent order and return its id.

        Raises:
            ProviderError: If PayPal rejected the order
        """
        payload = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "amount": {"currency_code": "USD", "value": f"{amount_usd:.2f}"},
                    "custom_id": f"{plan_id}__{billing_cycle}",
                    "description": f"AgriFAAS Connect Subscription: {plan_id} ({billing_cycle})",
                }
            ],
        }
        response, body = await self._post("/v2/checkout/orders", "create_order", payload)
        if response.is_error or "id" not in body:
            raise ProviderError(body.get("message") or "Failed to create PayPal order.")
        return body["id"]

    async def capture_order(self, order_id: str) -> CaptureResult:
        """Capture the payment of an approved order.

        Raises:
            ProviderError: If PayPal is unreachable
        """
        response, body = await self._post(
            f"/v2/checkout/orders/{order_id}/capture", "capture_order"
        )
        status = body.get("status", "UNKNOWN")
        return CaptureResult(
            completed=not response.is_error and status == "COMPLETED",
            status=status,
            data=body,
        )
