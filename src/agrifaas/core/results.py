"""Explicit result values returned by externally callable operations."""

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass
class ActionResult(Generic[T]):
    """Outcome of a service operation.

    Callers (routers, admin tooling) translate the result into a
    user-visible message or an HTTP status code. ``error_code`` is a stable
    machine-readable tag for failures.
    """

    success: bool
    message: str
    data: T | None = None
    error_code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str, data: T | None = None, **details: Any) -> "ActionResult[T]":
        """Create a successful result."""
        return cls(success=True, message=message, data=data, details=details)

    @classmethod
    def fail(cls, message: str, error_code: str, **details: Any) -> "ActionResult[T]":
        """Create a failed result."""
        return cls(success=False, message=message, error_code=error_code, details=details)
