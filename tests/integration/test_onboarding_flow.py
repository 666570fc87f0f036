"""End-to-end tests for tenant onboarding and paid activation over the API."""

import json

import pytest
from httpx import AsyncClient

from agrifaas.billing.reconciler import compute_signature
from agrifaas.config.settings import Settings
from agrifaas.db.models.user import UserProfile


async def create_green_acres(client: AsyncClient, email: str = "ama@example.com") -> dict:
    response = await client.post(
        "/v1/admin/tenants",
        json={
            "tenant_name": "Green Acres Farm",
            "admin_full_name": "Ama Owusu",
            "admin_email": email,
        },
    )
    assert response.status_code == 201
    return response.json()


class TestGreenAcresOnboarding:
    """An admin invites a farm owner who registers, trials and then pays."""

    @pytest.mark.asyncio
    async def test_invite_register_trial_and_pay(
        self,
        authenticated_client: AsyncClient,
        test_client: AsyncClient,
        test_settings: Settings,
        load,
    ):
        """Test the whole path from invitation to an active grower plan."""
        created = await create_green_acres(authenticated_client)
        user_id, tenant_id = created["user_id"], created["tenant_id"]
        token = (await load(UserProfile, user_id)).invitation_token

        invitation = await test_client.get(f"/v1/onboarding/invitations/{token}")
        assert invitation.status_code == 200
        assert invitation.json()["full_name"] == "Ama Owusu"

        registered = await test_client.post(
            "/v1/onboarding/complete-registration",
            json={
                "token": token,
                "full_name": "Ama Owusu",
                "password": "harvest-2026",
                "confirm_password": "harvest-2026",
            },
        )
        assert registered.status_code == 200
        assert registered.json()["account_status"] == "Active"

        trial = (await authenticated_client.get(f"/v1/users/{user_id}/session")).json()
        assert trial["tenant_id"] == tenant_id
        assert trial["subscription"]["plan_id"] == "business"
        assert trial["subscription"]["status"] == "Trialing"
        assert all(trial["access"].values())

        body = json.dumps(
            {
                "event": "charge.success",
                "data": {
                    "reference": "ref_green_acres",
                    "metadata": {
                        "tenant_id": tenant_id,
                        "user_id": user_id,
                        "plan_id": "grower",
                        "billing_cycle": "monthly",
                    },
                },
            }
        ).encode()
        signature = compute_signature(body, test_settings.PAYSTACK_SECRET_KEY.get_secret_value())
        webhook = await test_client.post(
            "/v1/webhooks/paystack",
            content=body,
            headers={"x-paystack-signature": signature, "Content-Type": "application/json"},
        )
        assert webhook.status_code == 200

        paid = (await authenticated_client.get(f"/v1/users/{user_id}/session")).json()
        assert paid["subscription"]["plan_id"] == "grower"
        assert paid["subscription"]["status"] == "Active"
        assert paid["subscription"]["trial_ends"] is None
        assert paid["access"] == {
            "can_access_farm_ops": True,
            "can_access_animal_ops": True,
            "can_access_office_ops": False,
            "can_access_hr_ops": False,
            "can_access_aeo_tools": False,
        }

    @pytest.mark.asyncio
    async def test_token_cannot_be_reused(
        self, authenticated_client: AsyncClient, test_client: AsyncClient, load
    ):
        """Test an accepted invitation link stops working."""
        created = await create_green_acres(authenticated_client)
        token = (await load(UserProfile, created["user_id"])).invitation_token
        body = {
            "token": token,
            "full_name": "Ama Owusu",
            "password": "harvest-2026",
            "confirm_password": "harvest-2026",
        }

        first = await test_client.post("/v1/onboarding/complete-registration", json=body)
        second = await test_client.post("/v1/onboarding/complete-registration", json=body)
        lookup = await test_client.get(f"/v1/onboarding/invitations/{token}")

        assert first.status_code == 200
        assert second.status_code == 404
        assert lookup.status_code == 404


class TestDuplicateUsers:
    """Email uniqueness across invitations and registrations."""

    @pytest.mark.asyncio
    async def test_registered_email_cannot_be_invited_again(
        self, authenticated_client: AsyncClient, test_client: AsyncClient
    ):
        """Test a self-registered email blocks a new tenant invitation."""
        registered = await test_client.post(
            "/v1/onboarding/register",
            json={"full_name": "Ama Owusu", "email": "ama@example.com", "password": "pass1234"},
        )
        assert registered.status_code == 201

        response = await authenticated_client.post(
            "/v1/admin/tenants",
            json={
                "tenant_name": "Second Farm",
                "admin_full_name": "Ama Owusu",
                "admin_email": "AMA@example.com",
            },
        )

        assert response.status_code == 409
        assert response.json()["detail"]["error_code"] == "duplicate_active_user"

    @pytest.mark.asyncio
    async def test_pending_invitation_does_not_block(self, authenticated_client: AsyncClient):
        """Test an invited but unregistered email can be invited to another tenant."""
        await create_green_acres(authenticated_client)

        second = await create_green_acres(authenticated_client)

        assert second["invitation_sent"] is True
