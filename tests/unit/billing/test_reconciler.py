"""Unit tests for Paystack webhook reconciliation."""

import json
from datetime import date
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from agrifaas.billing.reconciler import (
    PaymentWebhookReconciler,
    ReconcileStatus,
    compute_signature,
    extract_metadata,
    verify_signature,
)
from agrifaas.billing.types import PlanId, PromoApplyOutcome
from agrifaas.core.exceptions import WebhookPayloadError
from agrifaas.db.models.audit import AuditEvent
from agrifaas.db.models.promo_code import PromoCodeUsage, PromotionalCode
from agrifaas.db.models.tenant import Tenant

SECRET = "sk_test_reconciler"


def charge_event(tenant_id: str, reference: str = "ref_001", **metadata) -> bytes:
    body = {
        "event": "charge.success",
        "data": {
            "reference": reference,
            "amount": 20900,
            "metadata": {
                "tenant_id": tenant_id,
                "plan_id": "grower",
                "billing_cycle": "monthly",
                "user_id": "owner-1",
                **metadata,
            },
        },
    }
    return json.dumps(body).encode()


@pytest.fixture
def reconciler(database, lifecycle) -> PaymentWebhookReconciler:
    return PaymentWebhookReconciler(database, SECRET, lifecycle=lifecycle)


class TestSignature:
    """Tests for webhook signature verification."""

    def test_valid_signature(self):
        """Test the HMAC-SHA512 of the raw body is accepted."""
        body = b'{"event":"charge.success"}'
        assert verify_signature(body, compute_signature(body, SECRET), SECRET).valid is True

    def test_signature_is_case_insensitive_hex(self):
        """Test upper-case hex digests are accepted."""
        body = b"{}"
        signature = compute_signature(body, SECRET).upper()
        assert verify_signature(body, signature, SECRET).valid is True

    def test_missing_signature(self):
        """Test a missing header fails with a specific error."""
        result = verify_signature(b"{}", None, SECRET)
        assert result.valid is False
        assert result.error == "Missing webhook signature"

    def test_tampered_body(self):
        """Test a signature over different bytes is rejected."""
        signature = compute_signature(b'{"amount":1}', SECRET)
        assert verify_signature(b'{"amount":2}', signature, SECRET).valid is False


class TestExtractMetadata:
    """Tests for extract_metadata."""

    def test_metadata_as_json_string(self):
        """Test metadata echoed back as a JSON string is decoded."""
        metadata = extract_metadata(
            {"metadata": json.dumps({"tenant_id": "t1", "plan_id": "business",
                                     "billing_cycle": "annually", "promo_code": " harvest20 "})}
        )
        assert metadata.plan_id == PlanId.BUSINESS
        assert metadata.promo_code == "HARVEST20"

    @pytest.mark.parametrize(
        "metadata",
        [
            None,
            {"plan_id": "grower", "billing_cycle": "monthly"},
            {"tenant_id": "  ", "plan_id": "grower", "billing_cycle": "monthly"},
            {"tenant_id": "t1", "plan_id": "platinum", "billing_cycle": "monthly"},
        ],
    )
    def test_incomplete_metadata(self, metadata):
        """Test missing or invalid fields are rejected."""
        with pytest.raises(WebhookPayloadError, match="metadata"):
            extract_metadata({"metadata": metadata})


class TestProcess:
    """Tests for PaymentWebhookReconciler.process."""

    async def test_charge_success_activates_plan(
        self, reconciler, make_tenant, load, now
    ):
        """Test a verified charge makes the tenant's paid plan Active."""
        tenant = await make_tenant()
        body = charge_event(tenant.tenant_id)

        outcome = await reconciler.process(body, compute_signature(body, SECRET), now=now)

        assert outcome.status == ReconcileStatus.APPLIED
        assert outcome.http_status == 200
        assert outcome.body() == {"status": "success"}
        stored = await load(Tenant, tenant.tenant_id)
        assert stored.subscription == {
            "plan_id": "grower",
            "status": "Active",
            "billing_cycle": "monthly",
            "next_billing_date": "2026-04-01",
            "trial_ends": None,
        }
        assert outcome.subscription.next_billing_date == date(2026, 4, 1)

    async def test_replay_is_harmless(
        self, reconciler, make_tenant, make_promo_code, load, now
    ):
        """Test a redelivered event leaves the same state and counts the code once."""
        tenant = await make_tenant()
        promo = await make_promo_code(code="HARVEST20")
        body = charge_event(tenant.tenant_id, promo_code="harvest20")
        signature = compute_signature(body, SECRET)

        first = await reconciler.process(body, signature, now=now)
        second = await reconciler.process(body, signature, now=now)

        assert first.promo_outcome == PromoApplyOutcome.APPLIED
        assert second.promo_outcome == PromoApplyOutcome.ALREADY_APPLIED
        assert second.status == ReconcileStatus.APPLIED
        assert (await load(PromotionalCode, promo.promo_code_id)).times_used == 1
        assert (await load(Tenant, tenant.tenant_id)).subscription["status"] == "Active"

    async def test_exhausted_code_still_activates(
        self, reconciler, make_tenant, make_promo_code, load, now
    ):
        """Test the plan activates even when the paid-with code is already exhausted."""
        tenant = await make_tenant()
        promo = await make_promo_code(code="LAST5", usage_limit=5, times_used=5)
        body = charge_event(tenant.tenant_id, promo_code="LAST5")

        outcome = await reconciler.process(body, compute_signature(body, SECRET), now=now)

        assert outcome.status == ReconcileStatus.APPLIED
        assert outcome.promo_outcome == PromoApplyOutcome.LIMIT_EXCEEDED
        assert (await load(PromotionalCode, promo.promo_code_id)).times_used == 5
        assert (await load(Tenant, tenant.tenant_id)).subscription["plan_id"] == "grower"

    async def test_full_discount_code_is_not_tracked(self, reconciler, make_tenant, now):
        """Test hard-wired codes without a stored record are ignored by the ledger."""
        tenant = await make_tenant()
        body = charge_event(tenant.tenant_id, promo_code="FREEBIZYEAR")

        outcome = await reconciler.process(body, compute_signature(body, SECRET), now=now)

        assert outcome.status == ReconcileStatus.APPLIED
        assert outcome.promo_outcome is None

    async def test_invalid_signature_changes_nothing(self, reconciler, make_tenant, load):
        """Test a bad signature is rejected with 401 before parsing."""
        tenant = await make_tenant()
        body = charge_event(tenant.tenant_id)

        outcome = await reconciler.process(body, "0" * 128)

        assert outcome.status == ReconcileStatus.INVALID_SIGNATURE
        assert outcome.http_status == 401
        assert outcome.body()["status"] == "error"
        assert (await load(Tenant, tenant.tenant_id)).subscription["status"] == "Trialing"

    async def test_missing_signature(self, reconciler):
        """Test a missing signature header is rejected with 401."""
        outcome = await reconciler.process(b"{}", None)
        assert outcome.http_status == 401

    async def test_non_charge_event_is_acknowledged(self, reconciler):
        """Test other events are acknowledged without any change."""
        body = json.dumps({"event": "transfer.success", "data": {}}).encode()

        outcome = await reconciler.process(body, compute_signature(body, SECRET))

        assert outcome.status == ReconcileStatus.NO_OP
        assert outcome.http_status == 200

    async def test_missing_metadata_is_rejected(self, reconciler):
        """Test a charge without a tenant in its metadata is a 400."""
        body = json.dumps(
            {"event": "charge.success", "data": {"reference": "ref_x", "metadata": {}}}
        ).encode()

        outcome = await reconciler.process(body, compute_signature(body, SECRET))

        assert outcome.status == ReconcileStatus.MISSING_METADATA
        assert outcome.http_status == 400
        assert outcome.reference == "ref_x"

    async def test_invalid_json_is_rejected(self, reconciler):
        """Test an undecodable body is a 400."""
        body = b"not json"
        outcome = await reconciler.process(body, compute_signature(body, SECRET))
        assert outcome.status == ReconcileStatus.INVALID_PAYLOAD
        assert outcome.http_status == 400

    async def test_unknown_tenant_is_acknowledged_and_not_audited(self, reconciler, database):
        """Test an unknown tenant is acknowledged so the provider stops retrying."""
        body = charge_event("no-such-tenant")

        outcome = await reconciler.process(body, compute_signature(body, SECRET))

        assert outcome.status == ReconcileStatus.TENANT_NOT_FOUND
        assert outcome.http_status == 200
        async with database.session() as session:
            events = (await session.execute(select(AuditEvent))).scalars().all()
        assert events == []

    async def test_missing_secret_is_a_server_error(self, database):
        """Test an unconfigured secret asks the provider to retry later."""
        reconciler = PaymentWebhookReconciler(database, None)
        outcome = await reconciler.process(b"{}", "sig")
        assert outcome.status == ReconcileStatus.NOT_CONFIGURED
        assert outcome.http_status == 500

    async def test_activation_is_audited(self, reconciler, make_tenant, database, now):
        """Test the activation writes an audit event for the tenant."""
        tenant = await make_tenant()
        body = charge_event(tenant.tenant_id, reference="ref_audit")

        await reconciler.process(body, compute_signature(body, SECRET), now=now)

        async with database.session() as session:
            events = (
                await session.execute(
                    select(AuditEvent).where(AuditEvent.tenant_id == tenant.tenant_id)
                )
            ).scalars().all()
        assert [e.event_type for e in events] == ["subscription.activated"]
        assert events[0].event_data["payment_reference"] == "ref_audit"

    async def test_promo_failure_rolls_back_activation(
        self, reconciler, make_tenant, make_promo_code, load, now
    ):
        """Test a store failure in the promo step leaves the tenant on its trial."""
        tenant = await make_tenant()
        await make_promo_code(code="HARVEST20")
        body = charge_event(tenant.tenant_id, promo_code="HARVEST20")
        failure = OperationalError("UPDATE promotional_codes", {}, Exception("database is locked"))

        with patch(
            "agrifaas.billing.reconciler.PromoCodeLedger.apply_usage",
            new=AsyncMock(side_effect=failure),
        ):
            outcome = await reconciler.process(body, compute_signature(body, SECRET), now=now)

        assert outcome.status == ReconcileStatus.FAILED
        assert outcome.http_status == 500
        stored = await load(Tenant, tenant.tenant_id)
        assert stored.subscription["status"] == "Trialing"
        assert stored.subscription["plan_id"] == "business"

    async def test_last_slot_goes_to_first_payment(
        self, reconciler, make_tenant, make_promo_code, load, database, now
    ):
        """Test two payments with one remaining use count the code only once."""
        first_tenant = await make_tenant(name="Green Acres Farm", owner_id="owner-1")
        second_tenant = await make_tenant(name="Blue Hills Farm", owner_id="owner-2")
        promo = await make_promo_code(code="ONEONLY", usage_limit=1)
        first_body = charge_event(first_tenant.tenant_id, reference="ref_a", promo_code="ONEONLY")
        second_body = charge_event(
            second_tenant.tenant_id, reference="ref_b", promo_code="ONEONLY"
        )

        first = await reconciler.process(
            first_body, compute_signature(first_body, SECRET), now=now
        )
        second = await reconciler.process(
            second_body, compute_signature(second_body, SECRET), now=now
        )

        assert first.promo_outcome == PromoApplyOutcome.APPLIED
        assert second.promo_outcome == PromoApplyOutcome.LIMIT_EXCEEDED
        assert second.status == ReconcileStatus.APPLIED
        assert (await load(PromotionalCode, promo.promo_code_id)).times_used == 1
        assert (await load(Tenant, second_tenant.tenant_id)).subscription["status"] == "Active"
        async with database.session() as session:
            usages = (await session.execute(select(PromoCodeUsage))).scalars().all()
        assert [u.payment_reference for u in usages] == ["ref_a"]
