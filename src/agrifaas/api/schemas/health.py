"""Health check response schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class HealthStatus(str, Enum):
    """Health status indicators."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: HealthStatus = Field(..., description="Overall health status")
    version: str = Field(..., description="Application version")
    environment: str = Field(..., description="Deployment environment")
    timestamp: datetime = Field(..., description="Check timestamp")

    model_config = {"json_schema_extra": {"example": {
        "status": "healthy",
        "version": "0.1.0",
        "environment": "production",
        "timestamp": "2026-01-30T12:00:00Z",
    }}}


class ComponentHealth(BaseModel):
    """Individual component health status."""

    status: HealthStatus
    message: str | None = None
    latency_ms: float | None = None


class HealthDetailResponse(HealthResponse):
    """Health check response with database connectivity."""

    database: ComponentHealth = Field(..., description="Database health")
