"""Integration shortcuts."""

from .stripe_client import CheckoutSession, LineItem, StripeClient, StripeClientError

__all__ = [
    "CheckoutSession",
    "LineItem",
    "StripeClient",
    "StripeClientError",
]
