"""Unit tests for the PayPal client."""

import json

import httpx
import pytest

from agrifaas.integrations.paypal import PayPalClient
from agrifaas.utils.exceptions import ProviderError


def paypal(routes: dict[str, httpx.Response]) -> PayPalClient:
    def handler(request: httpx.Request) -> httpx.Response:
        return routes[request.url.path]

    return PayPalClient(
        "client-id",
        "client-secret",
        base_url="https://paypal.test",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def token() -> httpx.Response:
    return httpx.Response(200, json={"access_token": "token-1"})


class TestPayPalClient:
    """Tests for order creation and capture."""

    @pytest.mark.asyncio
    async def test_create_order(self):
        """Test the order carries the USD amount and plan in custom_id."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.path == "/v1/oauth2/token":
                return httpx.Response(200, json={"access_token": "token-1"})
            return httpx.Response(201, json={"id": "ORDER-1", "status": "CREATED"})

        client = PayPalClient(
            "client-id",
            "client-secret",
            base_url="https://paypal.test",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        order_id = await client.create_order(13.93, "grower", "monthly")

        assert order_id == "ORDER-1"
        order_request = seen[1]
        assert order_request.headers["Authorization"] == "Bearer token-1"
        unit = json.loads(order_request.content)["purchase_units"][0]
        assert unit["amount"] == {"currency_code": "USD", "value": "13.93"}
        assert unit["custom_id"] == "grower__monthly"

    @pytest.mark.asyncio
    async def test_bad_credentials(self):
        """Test a rejected token request raises ProviderError."""
        client = paypal({"/v1/oauth2/token": httpx.Response(401, json={"error": "invalid"})})

        with pytest.raises(ProviderError, match="access token"):
            await client.create_order(10.0, "grower", "monthly")

    @pytest.mark.asyncio
    async def test_capture_completed(self):
        """Test a COMPLETED capture is reported as completed."""
        client = paypal(
            {
                "/v1/oauth2/token": token(),
                "/v2/checkout/orders/ORDER-1/capture": httpx.Response(
                    201, json={"id": "ORDER-1", "status": "COMPLETED"}
                ),
            }
        )

        result = await client.capture_order("ORDER-1")

        assert result.completed
        assert result.data["id"] == "ORDER-1"

    @pytest.mark.asyncio
    async def test_capture_declined(self):
        """Test an error response is not completed."""
        client = paypal(
            {
                "/v1/oauth2/token": token(),
                "/v2/checkout/orders/ORDER-2/capture": httpx.Response(
                    422, json={"name": "UNPROCESSABLE_ENTITY"}
                ),
            }
        )

        result = await client.capture_order("ORDER-2")

        assert not result.completed
        assert result.status == "UNKNOWN"
