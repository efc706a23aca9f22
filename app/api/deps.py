from typing import Annotated
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ErrorCode, HTTPError, forbidden, unauthorized
from app.core.security import decode_access_token
from app.db.session import get_db
from app.models.user import User
from app.services.users import get_user_by_id

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    if credentials is None:
        raise unauthorized("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPError(
            status_code=401,
            code=ErrorCode.INVALID_TOKEN,
            message="Invalid authentication token",
        )

    try:
        user_id = UUID(payload.get("sub", ""))
    except ValueError:
        raise HTTPError(
            status_code=401,
            code=ErrorCode.INVALID_TOKEN,
            message="Invalid token payload",
        )

    user = await get_user_by_id(db, user_id)
    if user is None:
        raise unauthorized("User not found")

    if not user.is_active:
        raise unauthorized("User is inactive")

    # Tokens issued before a password change are rejected
    if payload.get("tv", 0) != user.token_version:
        raise HTTPError(
            status_code=401,
            code=ErrorCode.INVALID_TOKEN,
            message="Token has been revoked",
        )

    return user


async def require_admin(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    if not current_user.is_admin:
        raise forbidden("Admin access required")
    return current_user
