from __future__ import annotations

from typing import Any

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from vibeshare.core.config import settings
from vibeshare.db.session import get_db
from vibeshare.models.user import User


bearer = HTTPBearer(auto_error=False)


def create_access_token(user_id: int, **claims: Any) -> str:
    payload: dict[str, Any] = {"sub": str(user_id), **claims}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _decode_token(token: str) -> dict[str, Any]:
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            leeway=settings.jwt_exp_leeway_seconds,
            options={"verify_aud": False},
        )
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    return payload


def _parse_user_id(payload: dict[str, Any]) -> int:
    raw_id = payload.get("user_id") or payload.get("sub")
    try:
        return int(raw_id)
    except Exception as exc:
        raise HTTPException(status_code=401, detail="Invalid user id claim") from exc


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: AsyncSession = Depends(get_db),
) -> User:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Missing bearer token")

    user_id = _parse_user_id(_decode_token(credentials.credentials))
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user
