"""API request and response schemas."""

from .errors import APIError, ErrorCode
from .health import ComponentHealth, HealthDetailResponse, HealthResponse, HealthStatus
from .webhook import WebhookAck

__all__ = [
    "APIError",
    "ComponentHealth",
    "ErrorCode",
    "HealthDetailResponse",
    "HealthResponse",
    "HealthStatus",
    "WebhookAck",
]
