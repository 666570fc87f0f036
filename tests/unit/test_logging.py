"""Unit tests for structured logging."""

import structlog

from agrifaas.core.context import ActorType, create_context, request_context
from agrifaas.core.logging import (
    LogContext,
    add_request_context,
    drop_color_message_key,
    log_external_call,
)


class TestAddRequestContext:
    """Tests for add_request_context processor."""

    def test_adds_context_when_available(self):
        """Test context fields are added when RequestContext is set."""
        ctx = create_context(tenant_id="tenant-1", actor_id="admin-1")

        with request_context(ctx):
            result = add_request_context(None, "info", {})

        assert result["request_id"] == str(ctx.request_id)
        assert result["correlation_id"] == str(ctx.correlation_id)
        assert result["tenant_id"] == "tenant-1"
        assert result["actor_id"] == "admin-1"

    def test_explicit_tenant_is_kept(self):
        """Test a tenant id passed to the log call wins over the context."""
        ctx = create_context(tenant_id="tenant-1", actor_type=ActorType.PROVIDER)

        with request_context(ctx):
            result = add_request_context(None, "info", {"tenant_id": "tenant-2"})

        assert result["tenant_id"] == "tenant-2"

    def test_no_context(self):
        """Test entries pass through unchanged outside a request."""
        assert add_request_context(None, "info", {"event": "x"}) == {"event": "x"}


class TestProcessors:
    """Tests for small processors and helpers."""

    def test_drop_color_message_key(self):
        """Test uvicorn's color_message key is removed."""
        result = drop_color_message_key(None, "info", {"event": "x", "color_message": "y"})
        assert result == {"event": "x"}

    def test_log_context_binds_and_unbinds(self):
        """Test LogContext binds contextvars only inside the block."""
        with LogContext(operation="reconcile_webhook"):
            assert structlog.contextvars.get_contextvars()["operation"] == "reconcile_webhook"
        assert "operation" not in structlog.contextvars.get_contextvars()

    def test_log_external_call_levels(self):
        """Test failed external calls are logged as warnings."""
        with structlog.testing.capture_logs() as logs:
            logger = structlog.get_logger()
            log_external_call(logger, "paystack", "POST /transaction/initialize", 12.345, True)
            log_external_call(logger, "paystack", "GET /transaction/verify", 5.0, False)

        assert [entry["log_level"] for entry in logs] == ["info", "warning"]
        assert logs[0]["duration_ms"] == 12.35
        assert logs[1]["success"] is False
