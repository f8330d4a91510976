from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import update
from sqlalchemy.sql import func

from app.core.db import get_db
from app.schemas.response_schemas import ApiResponse, MessageResponse, ok
from app.schemas.user_schemas import UserLogin, RefreshRequest, TokenResponse, UserOut
from app.services.auth_service import (
    authenticate_user,
    create_tokens,
    refresh_access_token,
    logout_user,
)
from app.utils.get_user import get_current_user
from app.utils.activity_helpers import log_user_activity
from app.models.user_models import User

router = APIRouter(prefix="/auth", tags=["Auth"])


# --------------------------
# LOGIN
# --------------------------
@router.post("/login", response_model=ApiResponse[TokenResponse], status_code=status.HTTP_200_OK)
async def login(request: Request, data: UserLogin, db: AsyncSession = Depends(get_db)):
    """Authenticate user and issue access + refresh tokens."""
    user = await authenticate_user(db, data.username, data.password)

    await db.execute(
        update(User)
        .where(User.id == user.id)
        .values(last_login=func.now())
    )

    access_token, refresh_token = create_tokens(user)

    await log_user_activity(
        db=db,
        user_id=user.id,
        username=user.username,
        message=f"User '{user.username}' logged in.",
    )
    await db.commit()

    return ok("Login successful", TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        role=user.role,
    ))


# --------------------------
# REFRESH TOKEN
# --------------------------
@router.post("/refresh", response_model=ApiResponse[TokenResponse], status_code=status.HTTP_200_OK)
async def refresh_token_endpoint(data: RefreshRequest, db: AsyncSession = Depends(get_db)):
    """Issue a new token pair from a refresh token."""
    user, access_token, refresh_token = await refresh_access_token(db, data.refresh_token)

    await log_user_activity(
        db=db,
        user_id=user.id,
        username=user.username,
        message="User refreshed access token.",
    )
    await db.commit()

    return ok("Token refreshed", TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        role=user.role,
    ))


# --------------------------
# ME
# --------------------------
@router.get("/me", response_model=ApiResponse[UserOut])
async def me(current_user=Depends(get_current_user)):
    return ok("Current user", UserOut.model_validate(current_user))


# --------------------------
# LOGOUT
# --------------------------
@router.post("/logout", response_model=MessageResponse, status_code=status.HTTP_200_OK)
async def logout(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Logout user; every token issued so far stops working."""
    await logout_user(db, current_user)

    await log_user_activity(
        db=db,
        user_id=current_user.id,
        username=current_user.username,
        message=f"User '{current_user.username}' logged out.",
    )
    await db.commit()
    return MessageResponse(message="Logged out successfully")
