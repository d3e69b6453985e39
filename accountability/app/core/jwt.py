"""
JWT access tokens.

A token carries the principal (`user_id`) plus the email (`sub`) and
display name so the API can answer without a user lookup.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from accountability.app.core.config import settings


def create_access_token(
    user_id: int,
    email: str,
    name: str,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Sign a token for the user; expires after `access_token_expire_minutes` by default."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    claims = {"sub": email, "user_id": user_id, "name": name, "exp": expire}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the verified claims, or None for a bad signature or an expired token."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
