"""
Checkout Service

Validates a cart payload from the browser, builds a Stripe Checkout Session
request and returns the redirect URL. Also exposes a minimal, non-sensitive
view of an existing session for the success page.

The cart is never trusted: names are sanitized, prices and quantities are
bounded, and nothing reaches the processor unless the whole payload is valid.
"""
import json
import re
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urljoin, urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator

from storefront.config import CURRENCY, Settings
from storefront.errors import (
    ERROR_EMPTY_CART,
    ERROR_INVALID_ITEMS,
    ERROR_INVALID_SESSION_ID,
    ERROR_SESSION_NOT_FOUND,
    ERROR_TOO_MANY_ITEMS,
    ConfigurationError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from storefront.logging import get_logger, sanitize_id_for_logging, sanitize_string_for_logging
from .gateway import RESOURCE_MISSING, GatewayError, PaymentGateway, PaymentSession
from .money import to_minor_units

logger = get_logger(__name__)

# Server-side limits (independent of the client cart limits)
SERVER_MAX_ITEMS = 100
MAX_PRICE = Decimal("100000")
MAX_LINE_QUANTITY = 100
MAX_NAME_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 500
METADATA_VALUE_LIMIT = 500  # Stripe metadata value limit

SESSION_ID_PATTERN = re.compile(r"cs_[A-Za-z0-9_]{1,252}")

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_WHITESPACE = re.compile(r"\s+")


def sanitize_text(value: str) -> str:
    """Strip control characters and angle brackets, collapse whitespace."""
    cleaned = _CONTROL_CHARS.sub(" ", value)
    cleaned = cleaned.replace("<", "").replace(">", "")
    return _WHITESPACE.sub(" ", cleaned).strip()


class CheckoutItem(BaseModel):
    """One cart line as submitted by the browser."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: str
    price: Decimal = Field(gt=0, le=MAX_PRICE)
    quantity: Optional[int] = Field(default=None, ge=1, le=MAX_LINE_QUANTITY, strict=True)
    description: Optional[str] = None
    image: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _clean_name(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("name must be a string")
        cleaned = sanitize_text(value)
        if not cleaned or len(cleaned) > MAX_NAME_LENGTH:
            raise ValueError(f"name must be 1-{MAX_NAME_LENGTH} characters")
        return cleaned

    @field_validator("price")
    @classmethod
    def _check_chargeable(cls, value: Decimal) -> Decimal:
        if to_minor_units(value) < 1:
            raise ValueError("price must be at least 0.01")
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _clean_description(cls, value: Any) -> Optional[str]:
        if not isinstance(value, str):
            return None
        cleaned = sanitize_text(value)[:MAX_DESCRIPTION_LENGTH]
        return cleaned or None

    @field_validator("image", mode="before")
    @classmethod
    def _clean_image(cls, value: Any) -> Optional[str]:
        if not isinstance(value, str) or not value.strip():
            return None
        return value.strip()

    @property
    def units(self) -> int:
        return self.quantity or 1


def _describe_error(error: PydanticValidationError) -> str:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "item"
    message = first.get("msg", "invalid value")
    # Pydantic prefixes custom validator messages with "Value error, "
    message = message.removeprefix("Value error, ")
    return f"{field}: {message}"


def _field(obj: Any, name: str) -> Any:
    # Nested processor objects may be SDK objects rather than dicts
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


class CheckoutService:
    """Cart payload -> Stripe Checkout Session."""

    def __init__(self, settings: Settings, gateway: PaymentGateway):
        self.settings = settings
        self.gateway = gateway

    # ==================== VALIDATION ====================

    def validate_items(self, payload: Any) -> List[CheckoutItem]:
        """
        Validate the request body.

        Raises:
            ValidationError: with a machine-readable reason
        """
        items = payload.get("items") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            raise ValidationError(ERROR_INVALID_ITEMS, reason="invalid_items")
        if not items:
            raise ValidationError(ERROR_EMPTY_CART, reason="empty_cart")
        if len(items) > SERVER_MAX_ITEMS:
            raise ValidationError(ERROR_TOO_MANY_ITEMS, reason="too_many_items")

        validated: List[CheckoutItem] = []
        for index, raw in enumerate(items, start=1):
            if not isinstance(raw, dict):
                raise ValidationError(f"Item {index}: must be an object", reason="invalid_item")
            try:
                validated.append(CheckoutItem.model_validate(raw))
            except PydanticValidationError as e:
                raise ValidationError(f"Item {index}: {_describe_error(e)}", reason="invalid_item") from e
        return validated

    # ==================== SESSION REQUEST ====================

    def _image_url(self, image: Optional[str]) -> Optional[str]:
        """Processor needs absolute URLs; site-relative paths are resolved against the base URL."""
        if not image:
            return None
        parsed = urlparse(image)
        if parsed.scheme in ("http", "https") and parsed.netloc:
            return image
        if parsed.scheme or parsed.netloc:
            return None
        return urljoin(self.settings.base_url + "/", image.lstrip("/"))

    def _line_item(self, item: CheckoutItem) -> Dict[str, Any]:
        product_data: Dict[str, Any] = {"name": item.name}
        if item.description:
            product_data["description"] = item.description
        image_url = self._image_url(item.image)
        if image_url:
            product_data["images"] = [image_url]

        return {
            "price_data": {
                "currency": CURRENCY.lower(),
                "product_data": product_data,
                "unit_amount": to_minor_units(item.price),
            },
            "quantity": item.units,
        }

    @staticmethod
    def build_metadata(items: List[CheckoutItem]) -> Dict[str, str]:
        """Compact name/quantity summary for reconciliation, kept under the metadata limit."""
        summary = [{"name": item.name, "quantity": item.units} for item in items]
        encoded = json.dumps(summary, separators=(",", ":"), ensure_ascii=False)
        while len(encoded) > METADATA_VALUE_LIMIT and summary:
            summary.pop()
            encoded = json.dumps(summary, separators=(",", ":"), ensure_ascii=False)

        metadata = {"items": encoded, "item_count": str(len(items))}
        if len(summary) < len(items):
            metadata["items_truncated"] = "true"
        return metadata

    def build_session_params(self, items: List[CheckoutItem]) -> Dict[str, Any]:
        base_url = self.settings.base_url
        return {
            "payment_method_types": ["card"],
            "mode": "payment",
            "line_items": [self._line_item(item) for item in items],
            "success_url": f"{base_url}/success.html?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{base_url}/cancel.html",
            "shipping_address_collection": {
                "allowed_countries": list(self.settings.allowed_countries),
            },
            "metadata": self.build_metadata(items),
        }

    # ==================== OPERATIONS ====================

    def _require_secret_key(self) -> None:
        if not self.settings.stripe_secret_key:
            logger.error("STRIPE_SECRET_KEY is not configured")
            raise ConfigurationError()

    async def create_session(self, payload: Any) -> PaymentSession:
        """
        Create a checkout session for a cart payload.

        Raises:
            ValidationError: invalid payload (no processor call is made)
            ConfigurationError: secret key missing
            UpstreamError: processor call failed
        """
        items = self.validate_items(payload)
        self._require_secret_key()
        params = self.build_session_params(items)

        try:
            session = await self.gateway.create_checkout_session(params)
        except GatewayError as e:
            logger.error(f"Stripe session creation failed ({e.code}): {sanitize_string_for_logging(str(e), 200)}")
            raise UpstreamError() from e

        logger.info(
            f"Checkout session {sanitize_id_for_logging(session.session_id)} created "
            f"for {len(items)} item(s)"
        )
        return session

    async def get_session_status(self, session_id: str) -> Dict[str, Any]:
        """
        Minimal projection of a session: id, status, payment status, email, amount.

        Raises:
            ValidationError: malformed session id (no processor call)
            NotFoundError: processor does not know the session
            UpstreamError: any other processor failure
        """
        if not isinstance(session_id, str) or not SESSION_ID_PATTERN.fullmatch(session_id):
            raise ValidationError(ERROR_INVALID_SESSION_ID, reason="invalid_session_id")
        self._require_secret_key()

        try:
            session = await self.gateway.retrieve_checkout_session(session_id)
        except GatewayError as e:
            if e.code == RESOURCE_MISSING:
                raise NotFoundError(ERROR_SESSION_NOT_FOUND, reason="session_not_found") from e
            logger.error(f"Stripe session lookup failed ({e.code}): {sanitize_string_for_logging(str(e), 200)}")
            raise UpstreamError() from e

        customer_email = session.get("customer_email") or _field(session.get("customer_details"), "email")
        return {
            "id": session.get("id"),
            "status": session.get("status"),
            "payment_status": session.get("payment_status"),
            "customer_email": customer_email,
            "amount_total": session.get("amount_total"),
        }
