"""User management API (admin only)."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_admin
from app.core.errors import conflict, not_found, validation_error
from app.db.session import get_db
from app.models.user import User
from app.schemas.user import LockStatusResponse, UserListResponse, UserResponse, UserUpdate
from app.services import rate_limit
from app.services.users import (
    UserAlreadyExistsError,
    count_users,
    delete_user,
    get_user_by_id,
    list_users,
    normalize_email,
    update_user,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=UserListResponse)
async def list_all_users(
    db: Annotated[AsyncSession, Depends(get_db)],
    _: Annotated[User, Depends(require_admin)],
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    """List users, newest first."""
    users = await list_users(db, limit=limit, offset=offset)
    total = await count_users(db)
    return UserListResponse(
        users=[UserResponse.model_validate(u) for u in users],
        total=total,
    )


@router.get("/lock-status/{email}", response_model=LockStatusResponse)
async def get_lock_status(
    email: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    _: Annotated[User, Depends(require_admin)],
):
    """Whether logins for this email are currently blocked by the rate limiter."""
    email = normalize_email(email)
    lock = await rate_limit.get_status(db, email, rate_limit.LOGIN_ACTION)
    return LockStatusResponse(
        email=email,
        locked=lock.locked,
        attempts=lock.attempts,
        blocked_until=lock.blocked_until,
    )


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    _: Annotated[User, Depends(require_admin)],
):
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise not_found("User")
    return UserResponse.model_validate(user)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user_by_admin(
    user_id: UUID,
    data: UserUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
):
    """Update profile fields, role or active state."""
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise not_found("User")

    if user.id == current_user.id and data.role is not None and data.role != user.role:
        raise validation_error("Cannot change your own role")
    if user.id == current_user.id and data.is_active is False:
        raise validation_error("Cannot deactivate your own account")

    try:
        user = await update_user(db, user, **data.model_dump(exclude_unset=True))
    except ValueError as e:
        raise validation_error(str(e))
    except UserAlreadyExistsError:
        raise conflict("User already exists")

    return UserResponse.model_validate(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_user(
    user_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
):
    if user_id == current_user.id:
        raise validation_error("Cannot delete your own account")

    if not await delete_user(db, user_id):
        raise not_found("User")
    logger.info("User %s deleted by %s", user_id, current_user.id)


@router.post("/{user_id}/unlock")
async def unlock_user(
    user_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
):
    """Clear the login rate-limit block for a user."""
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise not_found("User")

    await rate_limit.reset(db, user.email, rate_limit.LOGIN_ACTION)
    logger.info("User %s unlocked by %s", user.id, current_user.id)
    return {"message": "User unlocked"}
