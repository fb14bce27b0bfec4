"""
Webhooks Router

Stripe event ingestion. The raw body is verified before anything is parsed.
"""

from fastapi import APIRouter, Depends, Request

from storefront.logging import get_logger
from storefront.routers.deps import get_webhook_processor
from storefront.services.webhooks import SIGNATURE_HEADER, WebhookProcessor

logger = get_logger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    processor: WebhookProcessor = Depends(get_webhook_processor),
):
    """
    Handle Stripe webhook.

    Missing or invalid signatures are rejected with 400 (SignatureError).
    Every verified event is acknowledged, handled or not.
    """
    raw_body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)

    outcome = processor.process(raw_body, signature)
    logger.info(f"Stripe webhook processed: {outcome.value}")
    return {"received": True}
