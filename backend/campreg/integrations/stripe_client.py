"""Stripe Checkout wrapper with a demo mode for unconfigured environments."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

import stripe

logger = logging.getLogger(__name__)

SESSION_ID_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"


@dataclass(slots=True)
class LineItem:
    """One Stripe Checkout line item priced in cents."""

    name: str
    unit_amount: int
    quantity: int = 1
    description: str | None = None

    def to_stripe(self, currency: str) -> dict[str, Any]:
        product_data: dict[str, Any] = {"name": self.name}
        if self.description:
            product_data["description"] = self.description
        return {
            "price_data": {
                "currency": currency,
                "product_data": product_data,
                "unit_amount": self.unit_amount,
            },
            "quantity": self.quantity,
        }


@dataclass(slots=True)
class CheckoutSession:
    """Hosted checkout session returned to the browser."""

    id: str
    url: str
    metadata: dict[str, Any] = field(default_factory=dict)


class StripeClientError(RuntimeError):
    """Raised when Stripe interaction fails."""


def _append_query(url: str, query: str) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{query}"


class StripeClient:
    """Explicitly constructed Stripe client.

    Without a usable secret key the client runs in demo mode and hands back a
    local session that redirects straight to the success page.
    """

    def __init__(
        self,
        secret_key: str | None,
        *,
        webhook_secret: str | None = None,
        currency: str = "usd",
        idempotency_prefix: str = "campreg",
    ) -> None:
        self._secret_key = secret_key or None
        self._webhook_secret = webhook_secret
        self._currency = currency
        self._idempotency_prefix = idempotency_prefix

    @property
    def is_configured(self) -> bool:
        key = self._secret_key or ""
        return key.startswith("sk_") or key.startswith("rk_")

    @property
    def currency(self) -> str:
        return self._currency

    @property
    def webhook_secret(self) -> str | None:
        return self._webhook_secret

    def _idempotency_key(self, seed: str | uuid.UUID | None) -> str | None:
        if seed is None:
            return None
        return f"{self._idempotency_prefix}_{seed}"

    def create_checkout_session(
        self,
        *,
        line_items: list[LineItem],
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
        customer_email: str | None = None,
        reference: str | uuid.UUID | None = None,
        idempotency_seed: str | uuid.UUID | None = None,
    ) -> CheckoutSession:
        """Create a hosted payment-mode checkout session."""
        if not self.is_configured:
            session_id = f"demo_{reference or uuid.uuid4().hex}_{int(time.time() * 1000)}"
            logger.info("Stripe not configured; issuing demo session %s", session_id)
            return CheckoutSession(
                id=session_id,
                url=_append_query(success_url, f"session_id={session_id}&demo=true"),
                metadata=dict(metadata),
            )

        params: dict[str, Any] = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [item.to_stripe(self._currency) for item in line_items],
            "success_url": _append_query(
                success_url, f"session_id={SESSION_ID_PLACEHOLDER}"
            ),
            "cancel_url": cancel_url,
            "metadata": metadata,
            "payment_intent_data": {"metadata": metadata},
        }
        if customer_email:
            params["customer_email"] = customer_email
        try:
            session = stripe.checkout.Session.create(
                api_key=self._secret_key,
                idempotency_key=self._idempotency_key(idempotency_seed),
                **params,
            )
        except stripe.StripeError as exc:
            raise StripeClientError(
                getattr(exc, "user_message", None) or str(exc)
            ) from exc
        if not session.url:
            raise StripeClientError("Stripe did not return a checkout URL")
        return CheckoutSession(id=str(session.id), url=str(session.url), metadata=dict(metadata))

    def construct_event(self, payload: bytes, signature: str) -> Any:
        if not self._webhook_secret:
            raise StripeClientError("Webhook secret is not configured")
        try:
            event = stripe.Webhook.construct_event(
                payload=payload,
                sig_header=signature,
                secret=self._webhook_secret,
            )
        except (ValueError, stripe.SignatureVerificationError) as exc:
            raise StripeClientError("Invalid webhook signature") from exc
        return event
