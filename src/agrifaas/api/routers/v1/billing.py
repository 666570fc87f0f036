"""Billing API endpoints.

- POST /v1/billing/promo-codes/validate - Check a promotional code
- POST /v1/billing/checkout - Start a Paystack payment
- POST /v1/billing/checkout/verify - Check a Paystack payment after redirect
- POST /v1/billing/paypal/orders - Create a PayPal order
- POST /v1/billing/paypal/orders/{order_id}/capture - Capture a PayPal order
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from agrifaas.api.dependencies import (
    get_checkout_service,
    get_database,
    get_promo_code_service,
    get_request_id,
)
from agrifaas.api.schemas.billing import (
    CheckoutRequest,
    CheckoutResponse,
    PayPalCaptureResponse,
    PayPalOrderRequest,
    PayPalOrderResponse,
    PromoValidateRequest,
    PromoValidateResponse,
    VerifyRequest,
    VerifyResponse,
)
from agrifaas.api.schemas.errors import APIError, ErrorCode, error_detail, result_exception
from agrifaas.billing.checkout import CheckoutService
from agrifaas.billing.promo_codes import PromoCodeService
from agrifaas.db.config import Database
from agrifaas.db.repositories.user import UserProfileRepository

logger = structlog.get_logger()

router = APIRouter(prefix="/billing", tags=["billing"])


# =============================================================================
# Promotional Codes
# =============================================================================


@router.post(
    "/promo-codes/validate",
    response_model=PromoValidateResponse,
    summary="Check a promotional code",
    description="""
    Check whether a code can be used now. Nothing is recorded: usage is
    only counted when the payment succeeds. When a plan and cycle are given
    the response includes the discount in currency units.
    """,
    responses={400: {"model": APIError, "description": "Code cannot be used"}},
)
async def validate_promo_code(
    body: PromoValidateRequest,
    promo_codes: Annotated[PromoCodeService, Depends(get_promo_code_service)],
    request_id: Annotated[str, Depends(get_request_id)],
) -> PromoValidateResponse:
    result = await promo_codes.validate_promo_code(body.code, body.plan_id, body.billing_cycle)
    if not result.success or result.data is None:
        raise result_exception(result, request_id)
    quote = result.data
    return PromoValidateResponse(
        code=quote.code,
        message=result.message,
        discount_type=quote.discount_type,
        discount_amount=quote.discount_amount,
        is_full_discount=quote.is_full_discount,
        discount_value=quote.discount_value,
    )


# =============================================================================
# Paystack
# =============================================================================


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    summary="Start a Paystack payment",
    description="""
    Price the plan, apply the promotional code and initialize a Paystack
    transaction. The subscription is activated later by the
    `charge.success` webhook, never by this call.
    """,
    responses={
        400: {"model": APIError, "description": "Invalid plan, code or profile"},
        404: {"model": APIError, "description": "User not found"},
        502: {"model": APIError, "description": "Paystack rejected the request"},
    },
)
async def initialize_checkout(
    body: CheckoutRequest,
    database: Annotated[Database, Depends(get_database)],
    checkout: Annotated[CheckoutService, Depends(get_checkout_service)],
    request_id: Annotated[str, Depends(get_request_id)],
) -> CheckoutResponse:
    async with database.session() as session:
        profile = await UserProfileRepository(session).get(body.user_id)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_detail(
                ErrorCode.USER_NOT_FOUND.value,
                f"User profile not found: {body.user_id}",
                request_id,
            ),
        )

    result = await checkout.initialize_checkout(
        profile, body.plan_id, body.billing_cycle, body.promo_code
    )
    if not result.success or result.data is None:
        raise result_exception(result, request_id)
    return CheckoutResponse(
        authorization_url=result.data.authorization_url,
        access_code=result.data.access_code,
        reference=result.data.reference,
    )


@router.post(
    "/checkout/verify",
    response_model=VerifyResponse,
    summary="Check a Paystack payment",
    responses={400: {"model": APIError, "description": "Payment not successful or mismatched"}},
)
async def verify_checkout(
    body: VerifyRequest,
    checkout: Annotated[CheckoutService, Depends(get_checkout_service)],
    request_id: Annotated[str, Depends(get_request_id)],
) -> VerifyResponse:
    """Report a payment's status to the returning payer."""
    result = await checkout.verify_transaction(body.reference, body.plan_id, body.billing_cycle)
    if not result.success or result.data is None:
        raise result_exception(result, request_id)
    return VerifyResponse(
        reference=result.data.reference,
        status=result.data.status,
        amount=result.data.amount,
        currency=result.data.currency,
        message=result.message,
    )


# =============================================================================
# PayPal
# =============================================================================


@router.post(
    "/paypal/orders",
    response_model=PayPalOrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a PayPal order",
)
async def create_paypal_order(
    body: PayPalOrderRequest,
    checkout: Annotated[CheckoutService, Depends(get_checkout_service)],
    request_id: Annotated[str, Depends(get_request_id)],
) -> PayPalOrderResponse:
    result = await checkout.create_paypal_order(body.amount_ghs, body.plan_id, body.billing_cycle)
    if not result.success or result.data is None:
        raise result_exception(result, request_id)
    return PayPalOrderResponse(order_id=result.data, amount_usd=result.details["amount_usd"])


@router.post(
    "/paypal/orders/{order_id}/capture",
    response_model=PayPalCaptureResponse,
    summary="Capture a PayPal order",
)
async def capture_paypal_order(
    order_id: str,
    checkout: Annotated[CheckoutService, Depends(get_checkout_service)],
    request_id: Annotated[str, Depends(get_request_id)],
) -> PayPalCaptureResponse:
    result = await checkout.capture_paypal_order(order_id)
    if not result.success or result.data is None:
        raise result_exception(result, request_id)
    return PayPalCaptureResponse(
        order_id=order_id, status=result.data.status, message=result.message
    )
