"""
Logging for the storefront API and cart library.

One stdout handler is installed on first import, unless the host
application already configured the root logger. The level comes from
LOG_LEVEL. Everything that ends up in a log line and came from a shopper,
a browser or the processor goes through one of the sanitizers below.

Usage:
    from storefront.logging import get_logger, sanitize_id_for_logging
    logger = get_logger(__name__)

    logger.info(f"Checkout session {sanitize_id_for_logging(session_id)} created")
"""

import logging
import os
import sys
from functools import cache

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that log every request at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "stripe")

# Stripe session and event ids share an 8-char prefix (cs_test_, evt_1Nx...)
_ID_LOG_LENGTH = 16


def _configure_root_logger() -> None:
    root = logging.getLogger()
    if root.handlers:
        return

    level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.setLevel(level)
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


_configure_root_logger()


@cache
def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _escape(value: str) -> str:
    """Neutralize line breaks so one value cannot forge extra log lines (CWE-117)."""
    return (
        value.replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
        .replace("\x00", "")
    )


def sanitize_id_for_logging(id_value: str | None) -> str:
    """
    Shorten a processor id (session, payment intent, event) for logs.

    The first 16 chars are enough to find the object in the Stripe
    dashboard without writing full ids to log storage.
    """
    if not id_value:
        return "N/A"
    return _escape(str(id_value))[:_ID_LOG_LENGTH]


def sanitize_string_for_logging(value: str | None, max_length: int = 50) -> str:
    """Escape and truncate free text (client IPs, paths, processor messages)."""
    if not value:
        return "N/A"
    safe_value = _escape(str(value))
    if len(safe_value) <= max_length:
        return safe_value
    return safe_value[:max_length] + "..."


def describe_secret(value: str | None) -> str:
    """Presence and mode of a Stripe key, never the key itself."""
    if not value:
        return "MISSING"
    if "_live_" in value:
        return "configured (live)"
    if "_test_" in value:
        return "configured (test)"
    return "configured"


__all__ = [
    "describe_secret",
    "get_logger",
    "sanitize_id_for_logging",
    "sanitize_string_for_logging",
]
