"""
User account data access.

Emails are stored lowercase; every lookup normalizes its input the same way.
"""

import logging
from collections.abc import Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import get_password_hash
from app.models.user import User, UserRole

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {
    "email",
    "first_name",
    "last_name",
    "password",
    "profile_image",
    "role",
    "is_active",
    "email_verified",
}


class UserAlreadyExistsError(Exception):
    """Raised when an email address is already registered."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"User with email {email} already exists")


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def get_user_by_id(db: AsyncSession, user_id: UUID) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def create_user(
    db: AsyncSession,
    email: str,
    password: str,
    first_name: str | None = None,
    last_name: str | None = None,
    profile_image: str | None = None,
    role: UserRole = UserRole.USER,
    email_verified: bool = False,
) -> User:
    """Create a user with a bcrypt-hashed password."""
    email = normalize_email(email)
    user = User(
        email=email,
        password_hash=get_password_hash(password),
        first_name=first_name or None,
        last_name=last_name or None,
        profile_image=profile_image or None,
        role=role.value,
        email_verified=email_verified,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise UserAlreadyExistsError(email) from e
    await db.refresh(user)
    logger.info("Created user %s", user.id)
    return user


async def update_user(db: AsyncSession, user: User, **changes: Any) -> User:
    """
    Apply ``changes`` to ``user``.

    A new password is hashed and bumps ``token_version`` so that tokens issued
    before the change stop working. A new email is normalized.
    """
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    # Resolve every value first so a bad one leaves the user untouched
    values = {}
    for field, value in changes.items():
        if value is None and field in ("email", "password", "role", "is_active", "email_verified"):
            continue
        if field == "password":
            values["password_hash"] = get_password_hash(value)
        elif field == "email":
            values["email"] = normalize_email(value)
        elif field == "role":
            values["role"] = UserRole(value).value
        else:
            values[field] = value

    for field, value in values.items():
        setattr(user, field, value)
    if "password_hash" in values:
        user.token_version += 1

    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise UserAlreadyExistsError(changes["email"]) from e
    await db.refresh(user)
    return user


async def delete_user(db: AsyncSession, user_id: UUID) -> bool:
    result = await db.execute(delete(User).where(User.id == user_id))
    await db.commit()
    return result.rowcount > 0


async def list_users(db: AsyncSession, limit: int = 50, offset: int = 0) -> Sequence[User]:
    result = await db.execute(
        select(User).order_by(User.created_at.desc()).limit(limit).offset(offset)
    )
    return result.scalars().all()


async def count_users(db: AsyncSession) -> int:
    result = await db.execute(select(func.count()).select_from(User))
    return result.scalar() or 0


async def mark_email_verified(db: AsyncSession, user_id: UUID) -> bool:
    user = await get_user_by_id(db, user_id)
    if user is None:
        return False
    user.email_verified = True
    await db.commit()
    return True


async def update_two_factor(
    db: AsyncSession,
    user: User,
    enabled: bool,
    secret: str | None = None,
    backup_codes: list[str] | None = None,
) -> User:
    """
    Set the 2FA state of ``user``.

    A pending setup stores the secret with ``enabled=False``; disabling without
    a secret clears the secret and the backup codes.
    """
    user.two_factor_enabled = enabled
    user.two_factor_secret = secret
    user.two_factor_backup_codes = backup_codes if enabled else None
    await db.commit()
    await db.refresh(user)
    return user
