"""JWT helpers for resolving the calling user."""

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from auctionhouse.core.config import settings


def create_access_token(subject: str, expires_minutes: int | None = None) -> str:
    """Issue a signed token whose ``sub`` claim is the user id."""
    minutes = expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    to_encode = {"sub": subject, "exp": expire}
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode a token, returning None when it is invalid or expired."""
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
