"""
Shared Dependencies for Routers

Lazy-loaded singletons; override them in tests through
`app.dependency_overrides`.
"""

from typing import Optional, TYPE_CHECKING

from fastapi import Depends

from storefront.config import Settings, get_settings

if TYPE_CHECKING:
    from storefront.services.checkout import CheckoutService
    from storefront.services.webhooks import WebhookProcessor


# ==================== LAZY SINGLETONS ====================

_checkout_service: Optional["CheckoutService"] = None
_webhook_processor: Optional["WebhookProcessor"] = None


def get_app_settings() -> Settings:
    """Settings for the current app (create_app pins its own through an override)."""
    return get_settings()


def get_checkout_service(settings: Settings = Depends(get_app_settings)) -> "CheckoutService":
    """Get or create CheckoutService singleton (lazy loaded)"""
    global _checkout_service
    if _checkout_service is None or _checkout_service.settings is not settings:
        from storefront.services.checkout import CheckoutService
        from storefront.services.gateway import StripeGateway

        gateway = StripeGateway(settings.stripe_secret_key, timeout=settings.stripe_timeout_seconds)
        _checkout_service = CheckoutService(settings, gateway)
    return _checkout_service


def get_webhook_processor(settings: Settings = Depends(get_app_settings)) -> "WebhookProcessor":
    """Get or create WebhookProcessor singleton (lazy loaded)"""
    global _webhook_processor
    if _webhook_processor is None or _webhook_processor.webhook_secret != settings.stripe_webhook_secret:
        from storefront.services.webhooks import WebhookProcessor

        _webhook_processor = WebhookProcessor(settings.stripe_webhook_secret)
    return _webhook_processor


def reset_services() -> None:
    """Drop cached singletons (settings changed, tests)."""
    global _checkout_service, _webhook_processor
    _checkout_service = None
    _webhook_processor = None
    get_settings.cache_clear()
