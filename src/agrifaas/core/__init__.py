"""Core services and utilities for AgriFAAS Connect."""

from .audit import AuditLogger
from .context import (
    ActorType,
    RequestContext,
    create_context,
    get_current_context,
    get_current_context_or_none,
    request_context,
)
from .exceptions import (
    ContextNotSetError,
    DuplicateActiveUserError,
    InvitationError,
    InvitationErrorReason,
    UserNotFoundError,
)
from .results import ActionResult

__all__ = [
    # Audit
    "AuditLogger",
    # Context
    "ActorType",
    "RequestContext",
    "create_context",
    "get_current_context",
    "get_current_context_or_none",
    "request_context",
    # Exceptions
    "ContextNotSetError",
    "DuplicateActiveUserError",
    "InvitationError",
    "InvitationErrorReason",
    "UserNotFoundError",
    # Results
    "ActionResult",
]
