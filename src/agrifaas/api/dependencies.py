"""FastAPI dependencies for API endpoints.

Long-lived collaborators (the Database handle, provider clients) are built
once by the application lifespan and kept on ``app.state``; services are
cheap and constructed per request around them.
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from agrifaas.accounts.onboarding import OnboardingService
from agrifaas.accounts.profiles import ProfileService
from agrifaas.accounts.tenants import TenantService
from agrifaas.billing.checkout import CheckoutService
from agrifaas.billing.lifecycle import SubscriptionLifecycle
from agrifaas.billing.promo_codes import PromoCodeService
from agrifaas.billing.reconciler import PaymentWebhookReconciler
from agrifaas.config.settings import Settings
from agrifaas.core.audit import AuditLogger
from agrifaas.core.context import RequestContext, get_current_context
from agrifaas.db.config import Database

__all__ = [
    "get_app_settings",
    "get_database",
    "get_db",
    "get_request_context",
    "get_audit_logger",
    "get_request_id",
    "get_lifecycle",
    "get_onboarding_service",
    "get_profile_service",
    "get_promo_code_service",
    "get_checkout_service",
    "get_reconciler",
]


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


def get_database(request: Request) -> Database:
    """The Database handle built at startup."""
    return request.app.state.database


async def get_db(
    database: Annotated[Database, Depends(get_database)],
) -> AsyncGenerator[AsyncSession, None]:
    """A plain session for read-only endpoints."""
    async with database.session() as session:
        yield session


def get_request_context() -> RequestContext:
    """Get the current request context from ContextVar.

    This dependency requires RequestContextMiddleware to be active.

    Raises:
        ContextNotSetError: If middleware hasn't set the context
    """
    return get_current_context()


def get_audit_logger(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AuditLogger:
    """Get an AuditLogger instance with the request's database session."""
    return AuditLogger(db)


def get_request_id(request: Request) -> str:
    """Get the request ID set by RequestContextMiddleware."""
    return str(getattr(request.state, "request_id", "unknown"))


def get_lifecycle(
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> SubscriptionLifecycle:
    return SubscriptionLifecycle(settings.billing)


def get_onboarding_service(
    request: Request,
    database: Annotated[Database, Depends(get_database)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    lifecycle: Annotated[SubscriptionLifecycle, Depends(get_lifecycle)],
) -> OnboardingService:
    return OnboardingService(
        database,
        request.app.state.auth_provider,
        request.app.state.email_sender,
        settings,
        lifecycle=lifecycle,
    )


def get_profile_service(
    database: Annotated[Database, Depends(get_database)],
) -> ProfileService:
    return ProfileService(database)


def get_tenant_service(
    database: Annotated[Database, Depends(get_database)],
) -> TenantService:
    return TenantService(database)


def get_promo_code_service(
    database: Annotated[Database, Depends(get_database)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> PromoCodeService:
    return PromoCodeService(database, settings.billing)


def get_checkout_service(
    request: Request,
    settings: Annotated[Settings, Depends(get_app_settings)],
    promo_codes: Annotated[PromoCodeService, Depends(get_promo_code_service)],
) -> CheckoutService:
    return CheckoutService(
        settings,
        promo_codes,
        paystack=request.app.state.paystack,
        paypal=request.app.state.paypal,
    )


def get_reconciler(
    database: Annotated[Database, Depends(get_database)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    lifecycle: Annotated[SubscriptionLifecycle, Depends(get_lifecycle)],
) -> PaymentWebhookReconciler:
    secret = (
        settings.PAYSTACK_SECRET_KEY.get_secret_value()
        if settings.PAYSTACK_SECRET_KEY is not None
        else None
    )
    return PaymentWebhookReconciler(database, secret, lifecycle=lifecycle)
