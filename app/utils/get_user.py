# app/utils/get_user.py
from typing import Optional

from fastapi import Request, Depends, HTTPException, Header
from jose import jwt, JWTError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.models.user_models import User
from app.core.db import get_db
from app.core.config import JWT_SECRET, JWT_ALGORITHM


def _extract_token(token: Optional[str], authorization: Optional[str]) -> Optional[str]:
    # Support either header
    if token:
        return token
    if authorization and authorization.startswith("Bearer "):
        return authorization.split("Bearer ")[1]
    return None


async def _load_user(raw_token: str, db: AsyncSession) -> User:
    try:
        payload = jwt.decode(raw_token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        username = payload.get("sub")
        token_version = payload.get("token_version")
        if not username or token_version is None or payload.get("type") != "access":
            raise HTTPException(status_code=401, detail="Invalid token payload")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    result = await db.execute(select(User).where(User.username == username))
    user = result.scalars().first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if user.token_version != token_version:
        raise HTTPException(status_code=401, detail="Token invalidated. Please log in again.")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="User account is inactive.")
    return user


async def get_current_user(
    request: Request,
    token: str | None = Header(default=None),
    authorization: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> User:
    raw_token = _extract_token(token, authorization)
    if not raw_token:
        raise HTTPException(status_code=401, detail="Missing access token")

    user = await _load_user(raw_token, db)
    request.state.user = user
    return user


async def get_optional_user(
    request: Request,
    token: str | None = Header(default=None),
    authorization: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Same as get_current_user, but anonymous callers get None instead of 401."""
    raw_token = _extract_token(token, authorization)
    if not raw_token:
        return None

    user = await _load_user(raw_token, db)
    request.state.user = user
    return user
