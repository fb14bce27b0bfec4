"""Pytest configuration and fixtures"""
import hashlib
import hmac
import json
import os
import time
from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest

# Set test environment variables
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_PUBLISHABLE_KEY", "pk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("FRONTEND_URL", "https://shop.example.com")

from storefront.cart import CartStore, MemoryStorage  # noqa: E402
from storefront.config import Settings  # noqa: E402
from storefront.services.gateway import PaymentSession  # noqa: E402

WEBHOOK_SECRET = "whsec_test_secret"


# ==================== TEST DOUBLES ====================

class FakeGateway:
    """PaymentGateway double that records every call."""

    def __init__(
        self,
        session: Optional[PaymentSession] = None,
        error: Optional[Exception] = None,
        retrieved: Optional[Dict[str, Any]] = None,
    ):
        self.session = session or PaymentSession(
            session_id="cs_test_a1b2c3",
            url="https://checkout.stripe.com/c/pay/cs_test_a1b2c3",
        )
        self.error = error
        self.retrieved = retrieved or {}
        self.created: List[Dict[str, Any]] = []
        self.retrieved_ids: List[str] = []

    @property
    def calls(self) -> int:
        return len(self.created) + len(self.retrieved_ids)

    async def create_checkout_session(self, params: Dict[str, Any]) -> PaymentSession:
        self.created.append(params)
        if self.error:
            raise self.error
        return self.session

    async def retrieve_checkout_session(self, session_id: str) -> Dict[str, Any]:
        self.retrieved_ids.append(session_id)
        if self.error:
            raise self.error
        return self.retrieved


class RecordingView:
    """CartView double."""

    def __init__(self):
        self.models = []
        self.shown = []
        self.hidden = []

    @property
    def last(self):
        return self.models[-1]

    def render(self, model) -> None:
        self.models.append(model)

    def show_notification(self, notification) -> None:
        self.shown.append(notification)

    def hide_notification(self, notification) -> None:
        self.hidden.append(notification)


class FakeScheduler:
    """Captures scheduled callbacks instead of waiting."""

    def __init__(self):
        self.pending = []

    def __call__(self, delay, callback):
        self.pending.append((delay, callback))
        return len(self.pending)

    def run_all(self) -> None:
        pending, self.pending = self.pending, []
        for _, callback in pending:
            callback()


class RecordingRecorder:
    """PaymentEventRecorder double."""

    def __init__(self, fail: bool = False):
        self.calls = []
        self.fail = fail

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if self.fail:
            raise RuntimeError("ledger unavailable")

    def session_completed(self, event) -> None:
        self._record("session_completed", event)

    def payment_succeeded(self, event) -> None:
        self._record("payment_succeeded", event)

    def payment_failed(self, event, reason) -> None:
        self._record("payment_failed", event, reason)

    def unhandled(self, event) -> None:
        self._record("unhandled", event)


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header for a payload."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def make_event(event_type: str, obj: Optional[Dict[str, Any]] = None, event_id: str = "evt_test_1") -> str:
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": obj or {"id": "cs_test_a1b2c3", "object": "checkout.session"}},
    })


# ==================== FIXTURES ====================

@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage):
    cart_store = CartStore(storage)
    cart_store.load()
    return cart_store


@pytest.fixture
def sample_product():
    """Sample product data"""
    return {
        "id": "mural-001",
        "name": "Street Mural Print",
        "price": 10.0,
        "description": "Limited edition print",
        "image": "images/mural-001.jpg",
    }


@pytest.fixture
def settings():
    return Settings(
        stripe_secret_key="sk_test_dummy",
        stripe_publishable_key="pk_test_dummy",
        stripe_webhook_secret=WEBHOOK_SECRET,
        frontend_url="https://shop.example.com",
    )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def view():
    return RecordingView()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def valid_item():
    return {"id": "mural-001", "name": "Street Mural Print", "price": 19.99, "quantity": 2}


def product(product_id: str, price: Any = Decimal("10")) -> Dict[str, Any]:
    return {"id": product_id, "name": f"Product {product_id}", "price": price}
