"""
Rate limit state per (identifier, action type).

At most one row exists for each pair. The row is created on the first
attempt, mutated on every later attempt and deleted on reset or by the
expired-block sweep.
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.utils.time import utc_now


class RateLimit(Base):
    __tablename__ = "rate_limits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identifier: Mapped[str] = mapped_column(String(255), nullable=False)
    action_type: Mapped[str] = mapped_column("type", String(50), nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    first_attempt_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False
    )
    last_attempt_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False
    )
    blocked_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True, nullable=True)

    __table_args__ = (
        UniqueConstraint("identifier", "type", name="uq_rate_limits_identifier_type"),
    )

    def __repr__(self) -> str:
        return f"<RateLimit {self.action_type}:{self.identifier} attempts={self.attempts}>"
