"""Checkout client package."""
from .client import CheckoutClient, CheckoutError, CheckoutOutcome, CheckoutUI

__all__ = ["CheckoutClient", "CheckoutError", "CheckoutOutcome", "CheckoutUI"]
