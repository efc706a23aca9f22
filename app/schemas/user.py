from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: EmailStr
    first_name: str | None = None
    last_name: str | None = None
    display_name: str
    profile_image: str | None = None
    role: str
    is_active: bool
    email_verified: bool
    two_factor_enabled: bool
    created_at: datetime


class UserListResponse(BaseModel):
    users: list[UserResponse]
    total: int


class UserUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    role: str | None = None
    is_active: bool | None = None


class LockStatusResponse(BaseModel):
    email: str
    locked: bool
    attempts: int
    blocked_until: datetime | None = None
