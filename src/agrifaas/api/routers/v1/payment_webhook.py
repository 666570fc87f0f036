"""Payment webhook endpoint.

- POST /v1/webhooks/paystack - Receive a Paystack event
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from agrifaas.api.dependencies import get_reconciler, get_request_id
from agrifaas.api.schemas.webhook import WebhookAck
from agrifaas.billing.reconciler import SIGNATURE_HEADER, PaymentWebhookReconciler

logger = structlog.get_logger()

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post(
    "/paystack",
    response_model=WebhookAck,
    summary="Receive Paystack webhook",
    description="""
    Receive a Paystack event.

    The body is verified against the `x-paystack-signature` header (hex
    HMAC-SHA512 of the raw body with the Paystack secret key) before it is
    parsed. Only `charge.success` events change state; the tenant's
    subscription is activated and any promotional code usage recorded in one
    transaction. Repeated deliveries of the same payment are harmless.
    """,
    responses={
        200: {"model": WebhookAck, "description": "Event acknowledged"},
        400: {"model": WebhookAck, "description": "Malformed payload or missing metadata"},
        401: {"model": WebhookAck, "description": "Missing or invalid signature"},
        500: {"model": WebhookAck, "description": "Not configured or store failure; retry"},
    },
)
async def receive_paystack_webhook(
    request: Request,
    reconciler: Annotated[PaymentWebhookReconciler, Depends(get_reconciler)],
    request_id: Annotated[str, Depends(get_request_id)],
) -> JSONResponse:
    """Verify, reconcile and acknowledge one Paystack delivery.

    The raw body is read unparsed so the signature is computed over the
    exact bytes Paystack signed.
    """
    raw_body = await request.body()
    outcome = await reconciler.process(raw_body, request.headers.get(SIGNATURE_HEADER))

    logger.info(
        "paystack_webhook_handled",
        request_id=request_id,
        status=outcome.status.value,
        http_status=outcome.http_status,
        webhook_event=outcome.event,
        reference=outcome.reference,
        tenant_id=outcome.tenant_id,
    )
    return JSONResponse(status_code=outcome.http_status, content=outcome.body())
