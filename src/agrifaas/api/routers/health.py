"""Health check endpoints."""

import time
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agrifaas import __version__
from agrifaas.api.dependencies import get_app_settings, get_db
from agrifaas.api.schemas.health import (
    ComponentHealth,
    HealthDetailResponse,
    HealthResponse,
    HealthStatus,
)
from agrifaas.config.settings import Settings

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Basic health check",
    description="Returns basic liveness status. No authentication required.",
)
async def health_check(
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> HealthResponse:
    """Basic liveness check endpoint.

    Returns 200 if the application is running, regardless of
    dependency health.
    """
    return HealthResponse(
        status=HealthStatus.HEALTHY,
        version=__version__,
        environment=settings.ENVIRONMENT,
        timestamp=datetime.now(UTC),
    )


@router.get(
    "/health/db",
    response_model=HealthDetailResponse,
    summary="Database health check",
    description="Checks database connectivity. No authentication required.",
)
async def health_db(
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> HealthDetailResponse:
    """Database connectivity check with latency."""
    db_health = await _check_database(db)
    return HealthDetailResponse(
        status=db_health.status,
        version=__version__,
        environment=settings.ENVIRONMENT,
        timestamp=datetime.now(UTC),
        database=db_health,
    )


async def _check_database(db: AsyncSession) -> ComponentHealth:
    start = time.perf_counter()
    try:
        await db.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status=HealthStatus.UNHEALTHY,
            message=f"Database connection failed: {str(e)[:100]}",
            latency_ms=round(latency_ms, 2),
        )
    latency_ms = (time.perf_counter() - start) * 1000
    return ComponentHealth(
        status=HealthStatus.HEALTHY,
        message="Database connection successful",
        latency_ms=round(latency_ms, 2),
    )
