"""
Common Error Constants and Exceptions

Centralized user-facing messages and the server-side error taxonomy.
Every message here is safe to show to a shopper: no processor detail,
no identifiers, no stack traces.
"""

# Cart messages (client side)
MSG_ITEM_ADDED = "{name} added to cart"
MSG_QUANTITY_LIMIT = "Maximum quantity reached ({limit})"
MSG_ITEM_LIMIT = "Cart is limited to {limit} different items"
MSG_SAVE_FAILED = "Could not save your cart"
MSG_CART_EMPTY = "Your cart is empty"

# Checkout messages (client side)
MSG_CONFIG_UNAVAILABLE = "Unable to load payment configuration"
MSG_CONFIG_INVALID = "Invalid payment configuration"
MSG_SESSION_FAILED = "Error while creating the checkout session"
MSG_INVALID_PAYMENT_URL = "Invalid payment URL"
MSG_GENERIC_RETRY = "An error occurred. Please try again."

# Server messages
ERROR_INVALID_ITEMS = "Invalid cart items"
ERROR_EMPTY_CART = "Cart is empty"
ERROR_TOO_MANY_ITEMS = "Too many items in cart"
ERROR_INVALID_JSON = "Request body must be valid JSON"
ERROR_INVALID_SESSION_ID = "Invalid session id"
ERROR_SESSION_NOT_FOUND = "Checkout session not found"
ERROR_PAYMENT_NOT_CONFIGURED = "Payment configuration unavailable"
ERROR_PAYMENT_FAILED = "Payment service error. Please try again later."
ERROR_MISSING_SIGNATURE = "Missing signature"
ERROR_INVALID_SIGNATURE = "Webhook signature verification failed"
ERROR_RATE_LIMITED = "Too many requests. Please try again later."
ERROR_INTERNAL = "Internal server error"
ERROR_NOT_FOUND = "Not found"


class StorefrontError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500
    reason = "internal_error"

    def __init__(self, message: str = ERROR_INTERNAL, reason: str | None = None):
        super().__init__(message)
        self.message = message
        if reason is not None:
            self.reason = reason

    def to_dict(self) -> dict:
        return {"error": self.message, "reason": self.reason}


class ValidationError(StorefrontError):
    """Malformed or out-of-bound client input."""

    status_code = 400
    reason = "invalid_request"


class NotFoundError(StorefrontError):
    status_code = 404
    reason = "not_found"


class ConfigurationError(StorefrontError):
    """Processor keys are missing. Logged; callers only see a generic message."""

    status_code = 500
    reason = "not_configured"

    def __init__(self, message: str = ERROR_PAYMENT_NOT_CONFIGURED, reason: str | None = None):
        super().__init__(message, reason)


class UpstreamError(StorefrontError):
    """The payment processor call failed or was rejected."""

    status_code = 500
    reason = "upstream_error"

    def __init__(self, message: str = ERROR_PAYMENT_FAILED, reason: str | None = None):
        super().__init__(message, reason)


class SignatureError(StorefrontError):
    """Webhook signature missing or invalid. The event is discarded."""

    status_code = 400
    reason = "invalid_signature"


__all__ = [
    "StorefrontError",
    "ValidationError",
    "NotFoundError",
    "ConfigurationError",
    "UpstreamError",
    "SignatureError",
]
