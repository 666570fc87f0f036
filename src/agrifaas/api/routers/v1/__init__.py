"""API v1 routers."""

from fastapi import APIRouter

from .admin import router as admin_router
from .billing import router as billing_router
from .onboarding import router as onboarding_router
from .payment_webhook import router as payment_webhook_router
from .users import router as users_router

# Create v1 router that includes all v1 endpoints
router = APIRouter(prefix="/v1")

router.include_router(payment_webhook_router)
router.include_router(onboarding_router)
router.include_router(users_router)
router.include_router(billing_router)
router.include_router(admin_router)

__all__ = [
    "router",
    "admin_router",
    "billing_router",
    "onboarding_router",
    "payment_webhook_router",
    "users_router",
]
