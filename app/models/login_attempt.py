"""
Login attempt ledger.

Append-only record of every authentication attempt, successful or not.
Rows are never updated; the retention sweep deletes them by age.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.utils.time import utc_now


class FailureReason(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_LOCKED = "account_locked"
    RATE_LIMITED = "rate_limited"
    TWO_FACTOR_REQUIRED = "two_factor_required"
    INVALID_TWO_FACTOR = "invalid_two_factor"
    SERVICE_UNAVAILABLE = "service_unavailable"


class LoginAttempt(Base):
    """One authentication attempt."""

    __tablename__ = "login_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    ip_address: Mapped[str] = mapped_column(String(45), index=True, nullable=False)  # IPv6 max length
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    failure_reason: Mapped[str | None] = mapped_column(String(50), nullable=True)
    attempted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, server_default=func.now(), index=True, nullable=False
    )

    __table_args__ = (
        Index("ix_login_attempts_success_attempted", "success", "attempted_at"),
        Index("ix_login_attempts_email_success", "email", "success"),
    )

    def __repr__(self) -> str:
        outcome = "ok" if self.success else self.failure_reason
        return f"<LoginAttempt {self.email} {outcome} at {self.attempted_at}>"
