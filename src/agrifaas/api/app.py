"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import agrifaas
from agrifaas.api.middleware import (
    AuthenticationMiddleware,
    ErrorHandlingMiddleware,
    RequestContextMiddleware,
    RequestLoggingMiddleware,
)
from agrifaas.api.routers import health_router, v1_router
from agrifaas.config.settings import Settings, get_settings
from agrifaas.config.validation import validate_or_raise
from agrifaas.core.logging import setup_logging
from agrifaas.db.config import Database
from agrifaas.integrations.auth_provider import (
    AuthProvider,
    IdentityToolkitAuthProvider,
    InMemoryAuthProvider,
)
from agrifaas.integrations.email import EmailSender, SmtpEmailSender
from agrifaas.integrations.paypal import PayPalClient
from agrifaas.integrations.paystack import PaystackClient
from agrifaas.utils.exceptions import ConfigurationError

logger = structlog.get_logger("agrifaas.api")


def create_app(
    settings: Settings | None = None,
    *,
    database: Database | None = None,
    auth_provider: AuthProvider | None = None,
    email_sender: EmailSender | None = None,
    paystack: PaystackClient | None = None,
    paypal: PayPalClient | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    This is the application factory that assembles all components:
    - Collaborators (database, authentication provider, email, payment clients)
    - Middleware (in correct order)
    - Routers
    - Lifespan management

    Collaborators not passed in are built from the settings. Payment
    clients are only built when their credentials are configured; the
    endpoints that need them answer with a configuration error otherwise.

    Args:
        settings: Optional settings override (useful for testing)
        database: Database handle override
        auth_provider: Authentication provider override
        email_sender: Email sender override
        paystack: Paystack client override
        paypal: PayPal client override

    Returns:
        Configured FastAPI application

    Example:
        # Run with uvicorn
        uvicorn agrifaas.api.app:create_app --factory
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="AgriFAAS Connect API",
        description="Multi-tenant farm management platform: onboarding, billing and access",
        version=agrifaas.__version__,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=_lifespan,
    )

    # Store settings and collaborators on app state for access in dependencies
    app.state.settings = settings
    app.state.database = database or Database.from_settings(settings)
    app.state.auth_provider = auth_provider or _build_auth_provider(settings)
    app.state.email_sender = email_sender or SmtpEmailSender(settings)
    app.state.paystack = paystack or _build_paystack(settings)
    app.state.paypal = paypal or _build_paypal(settings)

    # Configure middleware (order matters - outermost to innermost)
    _configure_middleware(app, settings)

    # Include routers
    _configure_routers(app)

    return app


def _build_auth_provider(settings: Settings) -> AuthProvider:
    try:
        api_key = settings.require_auth_api_key()
    except ConfigurationError:
        logger.warning("auth_provider_in_memory", environment=settings.ENVIRONMENT)
        return InMemoryAuthProvider()
    return IdentityToolkitAuthProvider(
        api_key,
        base_url=settings.AUTH_BASE_URL,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )


def _build_paystack(settings: Settings) -> PaystackClient | None:
    try:
        secret = settings.require_paystack_secret()
    except ConfigurationError:
        return None
    return PaystackClient(
        secret, base_url=settings.PAYSTACK_BASE_URL, timeout=settings.HTTP_TIMEOUT_SECONDS
    )


def _build_paypal(settings: Settings) -> PayPalClient | None:
    try:
        client_id, client_secret = settings.require_paypal_credentials()
    except ConfigurationError:
        return None
    return PayPalClient(
        client_id,
        client_secret,
        base_url=settings.PAYPAL_BASE_URL,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Validates configuration and checks the database on startup; closes
    outbound clients and database connections on shutdown.
    """
    settings: Settings = app.state.settings
    database: Database = app.state.database

    setup_logging(log_level=settings.log_level)
    validate_or_raise(settings)
    logger.info("api_starting", environment=settings.ENVIRONMENT, version=agrifaas.__version__)

    await database.init()
    if settings.ENVIRONMENT in ("development", "test"):
        await database.create_all()
    logger.info("database_initialized")

    yield

    logger.info("api_stopping")
    for client in (app.state.paystack, app.state.paypal, app.state.auth_provider):
        aclose = getattr(client, "aclose", None)
        if aclose is not None:
            await aclose()
    await database.dispose()
    logger.info("database_connections_closed")


def _configure_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure middleware stack.

    Middleware order (outermost to innermost execution):
    1. RequestLoggingMiddleware - Logs all requests
    2. ErrorHandlingMiddleware - Converts exceptions to HTTP responses
    3. CORSMiddleware - Handles CORS (if configured)
    4. AuthenticationMiddleware - Validates Bearer token
    5. RequestContextMiddleware - Sets ContextVar for request context

    Note: Middleware is added in reverse order because Starlette
    processes them from last-added to first-added.
    """
    # Innermost: Request context (needs actor from authentication)
    app.add_middleware(RequestContextMiddleware)

    app.add_middleware(AuthenticationMiddleware)

    if settings.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Error handling (catches exceptions from all inner middleware)
    app.add_middleware(ErrorHandlingMiddleware)

    # Outermost: Request logging
    app.add_middleware(RequestLoggingMiddleware)


def _configure_routers(app: FastAPI) -> None:
    # Health check endpoints (no prefix - at root level)
    app.include_router(health_router)

    # API v1 routers (webhooks, onboarding, users, billing, admin)
    app.include_router(v1_router)
