"""
Payment Gateway - Stripe Checkout integration.

Only two processor calls are used: create a Checkout Session and retrieve
one. Calls are single-shot (no SDK retries) with a bounded timeout and run
in a worker thread so the event loop stays free.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import stripe

from storefront.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)

RESOURCE_MISSING = "resource_missing"


@dataclass(frozen=True)
class PaymentSession:
    """Processor-issued checkout session handle."""
    session_id: str
    url: str


class GatewayError(Exception):
    """Processor call failed. `code` carries the processor error code when there is one."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class PaymentGateway(Protocol):
    async def create_checkout_session(self, params: Dict[str, Any]) -> PaymentSession: ...

    async def retrieve_checkout_session(self, session_id: str) -> Dict[str, Any]: ...


class StripeGateway:
    """PaymentGateway backed by the Stripe SDK."""

    def __init__(self, secret_key: str, timeout: float = 20.0):
        self.secret_key = secret_key
        self.timeout = timeout
        # Module-level client settings: no automatic retries, bounded requests
        stripe.max_network_retries = 0
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)

    async def create_checkout_session(self, params: Dict[str, Any]) -> PaymentSession:
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                api_key=self.secret_key,
                **params,
            )
        except stripe.StripeError as e:
            raise GatewayError(str(e), code=getattr(e, "code", None)) from e

        logger.info(f"Stripe checkout session created: {sanitize_id_for_logging(session.id)}")
        return PaymentSession(session_id=session.id, url=session.url)

    async def retrieve_checkout_session(self, session_id: str) -> Dict[str, Any]:
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.retrieve,
                session_id,
                api_key=self.secret_key,
            )
        except stripe.StripeError as e:
            raise GatewayError(str(e), code=getattr(e, "code", None)) from e
        return session.to_dict()
