"""JWT helpers for identifying the calling parent account."""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import jwt

from campreg.core.config import get_settings

ACCESS_TOKEN_TTL = timedelta(minutes=60)


def create_access_token(
    subject: str, expires_delta: timedelta | None = None, **extra: Any
) -> str:
    """Create a JWT access token."""
    settings = get_settings()
    expire = datetime.now(UTC) + (expires_delta or ACCESS_TOKEN_TTL)
    claims: dict[str, Any] = {"sub": subject, "exp": expire}
    claims.update(extra)
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode a JWT token, raising JWTError on failure."""
    settings = get_settings()
    return jwt.decode(
        token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
    )
