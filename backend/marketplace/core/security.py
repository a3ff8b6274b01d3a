"""JWT token management."""

from datetime import datetime, timedelta, timezone
from uuid import UUID

from jose import jwt

from marketplace.core.config import settings


def create_access_token(
    user_id: UUID,
    role: str,
    permissions: list[str],
    vendor_id: UUID | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload = {
        "sub": str(user_id),
        "role": role,
        "permissions": permissions,
        "exp": expire,
    }
    if vendor_id is not None:
        payload["vendor_id"] = str(vendor_id)
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Decode and validate JWT. Raises JWTError on failure."""
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
