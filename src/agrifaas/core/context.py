"""Request context for async-safe propagation of request identity.

This module provides request context propagation using Python's contextvars
so that logs and audit events can be correlated across an async call chain.

Usage:
    from agrifaas.core.context import create_context, request_context

    ctx = create_context(tenant_id="t-123", actor_id="u-456")
    with request_context(ctx):
        current = get_current_context()
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from agrifaas.core.exceptions import ContextNotSetError


class ActorType(str, Enum):
    """Type of actor performing the operation."""

    HUMAN = "human"  # Human user via UI or API
    SERVICE = "service"  # Admin API key or internal service call
    PROVIDER = "provider"  # Payment provider webhook
    SYSTEM = "system"  # System-initiated operation (e.g., migration)


class RequestContext(BaseModel):
    """Context for a single request/operation."""

    request_id: UUID = Field(default_factory=uuid4)
    correlation_id: UUID = Field(default_factory=uuid4)
    tenant_id: str | None = None
    actor_id: str | None = None
    actor_type: ActorType = ActorType.HUMAN
    initiated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def to_audit_dict(self) -> dict[str, Any]:
        """Convert context to a dictionary for audit logging."""
        return {
            "request_id": str(self.request_id),
            "correlation_id": str(self.correlation_id),
            "tenant_id": self.tenant_id,
            "actor_id": self.actor_id,
            "actor_type": self.actor_type.value,
            "initiated_at": self.initiated_at.isoformat(),
        }


# =============================================================================
# Context Variable Management
# =============================================================================

_request_context: ContextVar[RequestContext | None] = ContextVar("request_context", default=None)


def get_current_context() -> RequestContext:
    """Get the current request context.

    Raises:
        ContextNotSetError: If no context is set in the current execution context
    """
    ctx = _request_context.get()
    if ctx is None:
        raise ContextNotSetError()
    return ctx


def get_current_context_or_none() -> RequestContext | None:
    """Get the current request context, or None if not set."""
    return _request_context.get()


@contextmanager
def request_context(ctx: RequestContext) -> Iterator[RequestContext]:
    """Set the request context for the duration of a block."""
    token = _request_context.set(ctx)
    try:
        yield ctx
    finally:
        _request_context.reset(token)


def create_context(
    tenant_id: str | None = None,
    actor_id: str | None = None,
    actor_type: ActorType = ActorType.HUMAN,
    correlation_id: UUID | None = None,
) -> RequestContext:
    """Create a new RequestContext with a fresh request ID."""
    return RequestContext(
        tenant_id=tenant_id,
        actor_id=actor_id,
        actor_type=actor_type,
        correlation_id=correlation_id or uuid4(),
    )


def current_correlation_id() -> UUID:
    """Correlation ID of the current request, or a fresh one outside a request."""
    ctx = _request_context.get()
    return ctx.correlation_id if ctx is not None else uuid4()
