"""
Webhook Processor

Verifies Stripe-signed events and dispatches them by type. One event per
call, no state kept between calls.

    Received -> (no signature: reject) -> (bad signature: reject)
             -> Verified -> Dispatched -> Acknowledged

Once an event is verified it is always acknowledged, even when the handler
fails: a failed handler is logged, not retried here.
"""
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol

import stripe

from storefront.errors import (
    ERROR_INVALID_SIGNATURE,
    ERROR_MISSING_SIGNATURE,
    ConfigurationError,
    SignatureError,
)
from storefront.logging import get_logger, sanitize_id_for_logging, sanitize_string_for_logging

logger = get_logger(__name__)

SIGNATURE_HEADER = "Stripe-Signature"


class PaymentEventType(str, Enum):
    SESSION_COMPLETED = "checkout.session.completed"
    PAYMENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_FAILED = "payment_intent.payment_failed"
    OTHER = "other"

    @classmethod
    def parse(cls, raw_type: Optional[str]) -> "PaymentEventType":
        for member in cls:
            if member.value == raw_type and member is not cls.OTHER:
                return member
        return cls.OTHER


class WebhookOutcome(str, Enum):
    COMPLETED = "completed"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    UNHANDLED = "unhandled"
    HANDLER_ERROR = "handler_error"


@dataclass(frozen=True)
class PaymentEvent:
    """A verified processor notification."""
    type: PaymentEventType
    raw_type: str
    event_id: str
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def object_id(self) -> Optional[str]:
        return self.payload.get("id")

    @property
    def failure_reason(self) -> str:
        error = self.payload.get("last_payment_error") or {}
        return error.get("message") or "unknown"

    @classmethod
    def from_payload(cls, event: Dict[str, Any]) -> "PaymentEvent":
        """Build from the decoded event JSON (plain dicts, whatever the SDK object type)."""
        raw_type = event.get("type") or ""
        data = event.get("data") or {}
        payload = data.get("object") or {}
        return cls(
            type=PaymentEventType.parse(raw_type),
            raw_type=raw_type,
            event_id=event.get("id") or "",
            payload=payload,
        )


class PaymentEventRecorder(Protocol):
    """Receives verified events. Order ledgers, emails etc. plug in here."""

    def session_completed(self, event: PaymentEvent) -> None: ...

    def payment_succeeded(self, event: PaymentEvent) -> None: ...

    def payment_failed(self, event: PaymentEvent, reason: str) -> None: ...

    def unhandled(self, event: PaymentEvent) -> None: ...


class LoggingEventRecorder:
    """Default recorder: log the transition and nothing else."""

    def session_completed(self, event: PaymentEvent) -> None:
        logger.info(
            f"Payment successful: session {sanitize_id_for_logging(event.object_id)} "
            f"(event {sanitize_id_for_logging(event.event_id)}, "
            f"amount_total={event.payload.get('amount_total')}, "
            f"payment_status={event.payload.get('payment_status')})"
        )

    def payment_succeeded(self, event: PaymentEvent) -> None:
        logger.info(f"PaymentIntent {sanitize_id_for_logging(event.object_id)} succeeded")

    def payment_failed(self, event: PaymentEvent, reason: str) -> None:
        logger.warning(
            f"PaymentIntent {sanitize_id_for_logging(event.object_id)} failed: "
            f"{sanitize_string_for_logging(reason, 200)}"
        )

    def unhandled(self, event: PaymentEvent) -> None:
        logger.info(f"Unhandled event type {sanitize_string_for_logging(event.raw_type)}")


EventVerifier = Callable[[bytes, str, str], Any]


class WebhookProcessor:
    """Signature check + dispatch for Stripe events."""

    def __init__(
        self,
        webhook_secret: str,
        recorder: Optional[PaymentEventRecorder] = None,
        verifier: Optional[EventVerifier] = None,
    ):
        self.webhook_secret = webhook_secret
        self.recorder = recorder or LoggingEventRecorder()
        self.verifier = verifier or stripe.Webhook.construct_event

    def verify(self, raw_body: bytes, signature: Optional[str]) -> Any:
        """
        Verify the signature against the raw body.

        Raises:
            SignatureError: header missing or signature invalid
            ConfigurationError: no signing secret configured
        """
        if not signature:
            logger.warning("Webhook rejected: missing signature header")
            raise SignatureError(ERROR_MISSING_SIGNATURE, reason="missing_signature")

        if not self.webhook_secret:
            logger.error("STRIPE_WEBHOOK_SECRET is not configured")
            raise ConfigurationError()

        try:
            return self.verifier(raw_body, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Webhook signature verification failed: {sanitize_string_for_logging(str(e), 200)}")
            raise SignatureError(ERROR_INVALID_SIGNATURE) from e
        except ValueError as e:
            # Signed header present but the body is not a JSON event
            logger.warning(f"Webhook payload rejected: {sanitize_string_for_logging(str(e), 200)}")
            raise SignatureError(ERROR_INVALID_SIGNATURE) from e

    def process(self, raw_body: bytes, signature: Optional[str]) -> WebhookOutcome:
        """Verify then dispatch one event. Rejections raise; verified events always return."""
        self.verify(raw_body, signature)

        try:
            payment_event = PaymentEvent.from_payload(json.loads(raw_body))
            return self.dispatch(payment_event)
        except Exception as e:
            logger.error(f"Webhook handler failed: {e}", exc_info=True)
            return WebhookOutcome.HANDLER_ERROR

    def dispatch(self, event: PaymentEvent) -> WebhookOutcome:
        if event.type == PaymentEventType.SESSION_COMPLETED:
            self.recorder.session_completed(event)
            return WebhookOutcome.COMPLETED
        if event.type == PaymentEventType.PAYMENT_SUCCEEDED:
            self.recorder.payment_succeeded(event)
            return WebhookOutcome.SUCCEEDED
        if event.type == PaymentEventType.PAYMENT_FAILED:
            self.recorder.payment_failed(event, event.failure_reason)
            return WebhookOutcome.FAILED
        self.recorder.unhandled(event)
        return WebhookOutcome.UNHANDLED
