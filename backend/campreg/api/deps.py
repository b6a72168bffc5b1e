"""Common API dependencies."""

from __future__ import annotations

import logging
import uuid
from typing import Annotated
from collections.abc import AsyncGenerator

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from sqlalchemy.ext.asyncio import AsyncSession

from campreg.core.config import get_settings
from campreg.core.security import decode_access_token
from campreg.core.settings import get_payment_settings
from campreg.db.session import get_session
from campreg.integrations import StripeClient
from campreg.services.party_service import AuthUser

logger = logging.getLogger(__name__)

settings = get_settings()

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.api_v1_prefix}/auth/token", auto_error=False
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide an async database session."""
    async for session in get_session():
        yield session


def get_stripe_client() -> StripeClient:
    """Build a Stripe client from the current payment settings."""
    payment_settings = get_payment_settings()
    return StripeClient(
        payment_settings.stripe_secret_key,
        webhook_secret=payment_settings.stripe_webhook_secret,
        currency=payment_settings.currency,
    )


async def get_optional_user(
    token: Annotated[str | None, Depends(oauth2_scheme)],
) -> AuthUser | None:
    """Return the bearer token's identity, or ``None`` for anonymous callers.

    Checkout is open to guests, so an invalid token degrades to anonymous
    instead of failing the request.
    """
    if not token:
        return None
    try:
        payload = decode_access_token(token)
    except JWTError:
        logger.info("Ignoring invalid bearer token on public route")
        return None

    subject = payload.get("sub")
    try:
        user_id = uuid.UUID(str(subject))
    except (ValueError, TypeError):
        return None
    email = payload.get("email")
    return AuthUser(id=user_id, email=email if isinstance(email, str) else None)
