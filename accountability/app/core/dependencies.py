"""
Authentication dependencies for FastAPI.

This module turns a bearer token into a verified principal. The core
never sees credentials: it only receives the resulting user id.
"""

from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from accountability.app.core.jwt import decode_access_token
from accountability.app.db.session import get_db
from accountability.app.models.user import User

# HTTP Bearer security scheme (missing header handled below as 401)
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Checks:
    1. A bearer token is present
    2. The token signature and expiry are valid
    3. The user still exists in the database

    Returns:
        Decoded token payload containing `user_id`, `sub` (email) and `name`

    Raises:
        HTTPException: 401 if authentication fails for any reason
    """
    if credentials is None:
        raise _unauthorized("Unauthorized")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Invalid or expired token")

    user_id = payload.get("user_id")
    if not user_id:
        raise _unauthorized("Invalid token payload")

    result = await db.execute(select(User.id).where(User.id == user_id))
    if result.scalar_one_or_none() is None:
        raise _unauthorized("User not found")

    return payload
