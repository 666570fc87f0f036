"""Tests for administration endpoints."""

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from agrifaas.accounts.types import AccountStatus
from agrifaas.db.models.promo_code import PromotionalCode
from agrifaas.db.models.tenant import Tenant
from agrifaas.db.models.user import UserProfile


class TestCreateTenant:
    """Tests for POST /v1/admin/tenants."""

    @pytest.mark.asyncio
    async def test_creates_tenant_and_invites(
        self, authenticated_client: AsyncClient, email_sender: AsyncMock, load
    ):
        """Test the tenant, invited profile and invitation email are created."""
        response = await authenticated_client.post(
            "/v1/admin/tenants",
            json={
                "tenant_name": "Green Acres Farm",
                "admin_full_name": "Ama Owusu",
                "admin_email": "Ama@Example.com",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["invitation_sent"] is True
        profile = await load(UserProfile, data["user_id"])
        assert profile.tenant_id == data["tenant_id"]
        assert profile.account_status == AccountStatus.INVITED.value
        assert profile.email_address == "ama@example.com"
        to, subject, html = email_sender.send_email.call_args.args
        assert to == "ama@example.com"
        assert subject == "You're invited to manage Green Acres Farm on AgriFAAS Connect!"
        assert f"token={profile.invitation_token}" in html

    @pytest.mark.asyncio
    async def test_duplicate_active_user(self, authenticated_client: AsyncClient, make_profile):
        """Test an email held by an active user is a conflict."""
        await make_profile(email="ama@example.com")

        response = await authenticated_client.post(
            "/v1/admin/tenants",
            json={
                "tenant_name": "Green Acres Farm",
                "admin_full_name": "Ama Owusu",
                "admin_email": "ama@example.com",
            },
        )

        assert response.status_code == 409
        assert response.json()["detail"]["error_code"] == "duplicate_active_user"

    @pytest.mark.asyncio
    async def test_invalid_body(self, authenticated_client: AsyncClient):
        """Test request validation errors are reported as 422."""
        response = await authenticated_client.post(
            "/v1/admin/tenants",
            json={"tenant_name": "GA", "admin_full_name": "Ama", "admin_email": "not-an-email"},
        )

        assert response.status_code == 422


class TestTenantSettings:
    """Tests for PATCH /v1/admin/tenants/{tenant_id}."""

    @pytest.mark.asyncio
    async def test_updates_farm_settings(
        self, authenticated_client: AsyncClient, make_tenant, load
    ):
        """Test the provided fields change and the subscription is untouched."""
        tenant = await make_tenant()

        response = await authenticated_client.patch(
            f"/v1/admin/tenants/{tenant.tenant_id}",
            json={"name": "Green Acres Co-op", "region": "Ashanti", "city": "Kumasi"},
            headers={"X-Actor-ID": "owner-1"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Green Acres Co-op"
        assert data["city"] == "Kumasi"
        stored = await load(Tenant, tenant.tenant_id)
        assert stored.region == "Ashanti"
        assert stored.subscription == tenant.subscription

    @pytest.mark.asyncio
    async def test_unknown_tenant(self, authenticated_client: AsyncClient):
        """Test editing a missing tenant is a 404."""
        response = await authenticated_client.patch(
            "/v1/admin/tenants/missing", json={"name": "Nowhere Farm"}
        )

        assert response.status_code == 404
        assert response.json()["detail"]["error_code"] == "tenant_not_found"

    @pytest.mark.asyncio
    async def test_short_name_is_rejected(self, authenticated_client: AsyncClient, make_tenant):
        """Test the farm name must be at least three characters."""
        tenant = await make_tenant()

        response = await authenticated_client.patch(
            f"/v1/admin/tenants/{tenant.tenant_id}", json={"name": "GA"}
        )

        assert response.status_code == 422


class TestTenantUsers:
    """Tests for user listing and invitation resend."""

    @pytest.mark.asyncio
    async def test_list_users(self, authenticated_client: AsyncClient, make_tenant, make_profile):
        """Test only the tenant's users are listed."""
        tenant = await make_tenant()
        await make_profile(user_id="u-1", email="a@example.com", tenant_id=tenant.tenant_id)
        await make_profile(user_id="u-2", email="b@example.com")

        response = await authenticated_client.get(f"/v1/admin/tenants/{tenant.tenant_id}/users")

        assert response.status_code == 200
        assert [u["user_id"] for u in response.json()["users"]] == ["u-1"]

    @pytest.mark.asyncio
    async def test_resend_to_active_user(self, authenticated_client: AsyncClient, make_profile):
        """Test resending to a registered user is refused."""
        await make_profile(user_id="u-1")

        response = await authenticated_client.post("/v1/admin/users/u-1/resend-invitation")

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_resend_unknown_user(self, authenticated_client: AsyncClient):
        """Test resending to an unknown user is a 404."""
        response = await authenticated_client.post("/v1/admin/users/missing/resend-invitation")

        assert response.status_code == 404


class TestPromoCodeAdmin:
    """Tests for promotional code administration."""

    @pytest.mark.asyncio
    async def test_create_and_update(self, authenticated_client: AsyncClient, load):
        """Test a code is created normalized and can be edited."""
        response = await authenticated_client.post(
            "/v1/admin/promo-codes",
            json={
                "code": " harvest20 ",
                "discount_type": "percentage",
                "discount_amount": 20,
                "usage_limit": 5,
                "expiry_date": "2099-01-01",
            },
            headers={"X-Actor-ID": "admin-1"},
        )

        assert response.status_code == 201
        created = response.json()
        assert created["code"] == "HARVEST20"
        assert created["times_used"] == 0

        response = await authenticated_client.patch(
            f"/v1/admin/promo-codes/{created['promo_code_id']}",
            json={"usage_limit": 10},
        )

        assert response.status_code == 200
        assert response.json()["usage_limit"] == 10
        assert (await load(PromotionalCode, created["promo_code_id"])).usage_limit == 10

    @pytest.mark.asyncio
    async def test_duplicate_code(self, authenticated_client: AsyncClient, make_promo_code):
        """Test creating an existing code is a conflict."""
        await make_promo_code()

        response = await authenticated_client.post(
            "/v1/admin/promo-codes",
            json={
                "code": "HARVEST20",
                "discount_type": "fixed",
                "discount_amount": 50,
                "usage_limit": 1,
                "expiry_date": "2099-01-01",
            },
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_update_unknown(self, authenticated_client: AsyncClient):
        """Test editing an unknown code is a 404."""
        response = await authenticated_client.patch(
            "/v1/admin/promo-codes/missing", json={"usage_limit": 3}
        )

        assert response.status_code == 404


class TestStarterMigration:
    """Tests for POST /v1/admin/migrations/starter-plan."""

    @pytest.mark.asyncio
    async def test_migrates_then_noop(self, authenticated_client: AsyncClient, make_profile, load):
        """Test profiles without a plan get starter, and a repeat run does nothing."""
        await make_profile(user_id="u-1", email="a@example.com")
        await make_profile(user_id="u-2", email="b@example.com")

        first = await authenticated_client.post("/v1/admin/migrations/starter-plan")
        second = await authenticated_client.post("/v1/admin/migrations/starter-plan")

        assert first.json()["processed_count"] == 2
        assert second.json()["processed_count"] == 0
        assert (await load(UserProfile, "u-1")).subscription["plan_id"] == "starter"
