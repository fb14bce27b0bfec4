"""
Checkout Client

Turns a cart snapshot into a redirect to the processor's hosted payment page:
config check -> session creation -> navigation. One attempt at a time.
"""
from enum import Enum
from typing import Callable, Optional, Protocol

import httpx

from storefront.cart.models import Cart, CheckoutRequest
from storefront.cart.service import CartStore, Severity
from storefront.errors import (
    MSG_CART_EMPTY,
    MSG_CONFIG_INVALID,
    MSG_CONFIG_UNAVAILABLE,
    MSG_GENERIC_RETRY,
    MSG_INVALID_PAYMENT_URL,
    MSG_SESSION_FAILED,
)
from storefront.logging import get_logger, sanitize_string_for_logging

logger = get_logger(__name__)

CONFIG_PATH = "/api/config"
CREATE_SESSION_PATH = "/api/create-checkout-session"


class CheckoutUI(Protocol):
    """What the client needs from the page: notifications and the checkout button."""

    checkout_label: str

    def notify(self, message: str, severity: Severity = Severity.SUCCESS) -> object: ...

    def clear_notification(self) -> None: ...

    def set_checkout_busy(self, busy: bool, label: Optional[str] = None) -> None: ...


class CheckoutOutcome(str, Enum):
    REDIRECTED = "redirected"
    EMPTY_CART = "empty_cart"
    FAILED = "failed"
    IGNORED = "ignored"  # another attempt is in flight


class CheckoutError(Exception):
    """A checkout step failed; message is shown to the user as-is."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class CheckoutClient:
    """Client side of the checkout flow."""

    def __init__(
        self,
        ui: CheckoutUI,
        navigate: Callable[[str], None],
        base_url: str = "http://localhost:3000",
        http_client: Optional[httpx.AsyncClient] = None,
        store: Optional[CartStore] = None,
        clear_on_redirect: bool = False,
    ):
        self.ui = ui
        self.navigate = navigate
        self.base_url = base_url.rstrip("/")
        self.store = store
        self.clear_on_redirect = clear_on_redirect
        self._http_client = http_client
        self._owns_client = http_client is None
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def _get_http_client(self) -> httpx.AsyncClient:
        """Lazy creation of the httpx client with timeouts."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(15.0, connect=5.0),
            )
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def initiate_checkout(self, cart: Cart) -> CheckoutOutcome:
        """
        Run one checkout attempt for a cart snapshot.

        Either the browser is sent to the payment page, or the user sees a
        single error and the checkout button is restored for a retry.
        """
        if self._in_flight:
            return CheckoutOutcome.IGNORED

        self.ui.clear_notification()

        if cart.is_empty():
            self.ui.notify(MSG_CART_EMPTY, Severity.ERROR)
            return CheckoutOutcome.EMPTY_CART

        request = CheckoutRequest.from_cart(cart)
        original_label = self.ui.checkout_label

        self._in_flight = True
        self.ui.set_checkout_busy(True)
        try:
            await self._fetch_publishable_key()
            url = await self._create_session(request)
        except CheckoutError as e:
            self._fail(e.message, original_label)
            return CheckoutOutcome.FAILED
        except httpx.HTTPError as e:
            logger.warning(f"Checkout request failed: {type(e).__name__}: {e}")
            self._fail(MSG_GENERIC_RETRY, original_label)
            return CheckoutOutcome.FAILED
        finally:
            self._in_flight = False

        if self.clear_on_redirect and self.store is not None:
            self.store.clear()

        logger.info("Redirecting to payment page")
        self.navigate(url)
        return CheckoutOutcome.REDIRECTED

    def _fail(self, message: str, original_label: str) -> None:
        self.ui.notify(message, Severity.ERROR)
        self.ui.set_checkout_busy(False, original_label)

    async def _fetch_publishable_key(self) -> str:
        client = self._get_http_client()
        response = await client.get(CONFIG_PATH)
        if not response.is_success:
            logger.warning(f"Payment config request returned {response.status_code}")
            raise CheckoutError(MSG_CONFIG_UNAVAILABLE)

        data = _json_or_empty(response)
        key = data.get("publishableKey")
        if not isinstance(key, str) or not key:
            raise CheckoutError(MSG_CONFIG_INVALID)
        return key

    async def _create_session(self, request: CheckoutRequest) -> str:
        client = self._get_http_client()
        response = await client.post(CREATE_SESSION_PATH, json=request.to_payload())
        data = _json_or_empty(response)

        if not response.is_success:
            error = data.get("error")
            logger.warning(
                f"Checkout session request returned {response.status_code}: "
                f"{sanitize_string_for_logging(error if isinstance(error, str) else None)}"
            )
            raise CheckoutError(error if isinstance(error, str) and error else MSG_SESSION_FAILED)

        url = data.get("url")
        if not isinstance(url, str) or not url.startswith(("https://", "http://")):
            raise CheckoutError(MSG_INVALID_PAYMENT_URL)
        return url


def _json_or_empty(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
