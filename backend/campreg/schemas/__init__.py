"""Schema exports."""

from campreg.schemas.registration import (
    CamperQuote,
    CheckoutAddon,
    CheckoutCamper,
    CheckoutData,
    CheckoutParent,
    CheckoutPickup,
    CheckoutRequest,
    CheckoutResponse,
    CheckoutTotals,
    QuoteData,
    QuoteResponse,
)

__all__ = [
    "CamperQuote",
    "CheckoutAddon",
    "CheckoutCamper",
    "CheckoutData",
    "CheckoutParent",
    "CheckoutPickup",
    "CheckoutRequest",
    "CheckoutResponse",
    "CheckoutTotals",
    "QuoteData",
    "QuoteResponse",
]
