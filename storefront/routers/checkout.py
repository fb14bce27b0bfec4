"""
Checkout Router

Payment configuration, checkout session creation and session lookup.
"""
import json

from fastapi import APIRouter, Depends, Request

from storefront.config import Settings
from storefront.errors import ERROR_INVALID_JSON, ConfigurationError, ValidationError
from storefront.logging import get_logger
from storefront.routers.deps import get_app_settings, get_checkout_service
from storefront.services.checkout import CheckoutService

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["checkout"])


@router.get("/config")
async def get_config(settings: Settings = Depends(get_app_settings)):
    """Publishable key for the browser."""
    if not settings.stripe_publishable_key:
        logger.error("STRIPE_PUBLISHABLE_KEY is not configured")
        raise ConfigurationError()
    return {"publishableKey": settings.stripe_publishable_key}


@router.post("/create-checkout-session")
async def create_checkout_session(
    request: Request,
    service: CheckoutService = Depends(get_checkout_service),
):
    """
    Create a checkout session from the browser cart.

    Body: {"items": [{"name", "price", "quantity"?, "description"?, "image"?}, ...]}
    """
    raw_body = await request.body()
    try:
        payload = json.loads(raw_body or b"null")
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError(ERROR_INVALID_JSON, reason="invalid_json") from e

    session = await service.create_session(payload)
    return {"sessionId": session.session_id, "url": session.url}


@router.get("/checkout-session/{session_id}")
async def get_checkout_session(
    session_id: str,
    service: CheckoutService = Depends(get_checkout_service),
):
    """Minimal session status for the success page."""
    return await service.get_session_status(session_id)
