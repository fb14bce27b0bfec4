# Services Module
from .checkout import CheckoutService
from .gateway import PaymentGateway, PaymentSession, StripeGateway
from .webhooks import WebhookProcessor, WebhookOutcome

__all__ = [
    "CheckoutService",
    "PaymentGateway",
    "PaymentSession",
    "StripeGateway",
    "WebhookProcessor",
    "WebhookOutcome",
]
