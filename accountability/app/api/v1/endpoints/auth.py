"""
Authentication API endpoints.

Register (at most two accounts), login and current-user info.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from accountability.app.db.session import get_db
from accountability.app.models.user import User
from accountability.app.schemas.auth import UserRegister, UserLogin, TokenResponse, UserResponse
from accountability.app.core.jwt import create_access_token
from accountability.app.core.dependencies import get_current_user
from accountability.app.services.pairing import PairingService

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _token_response(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user.id, user.email, user.name),
        token_type="bearer",
        user=UserResponse.model_validate(user)
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db)
):
    """
    Register one of the two users.

    - 403 once two accounts exist, whatever email is used
    - 409 if the email is already registered
    """
    user = await PairingService.register(db, user_data.email, user_data.name, user_data.password)
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """Login with email and password and return a JWT token."""
    user = await PairingService.authenticate(db, credentials.email, credentials.password)
    return _token_response(user)


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get current authenticated user information."""
    user = await PairingService.get_user(db, current_user["user_id"])

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return UserResponse.model_validate(user)
