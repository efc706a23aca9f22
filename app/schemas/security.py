from datetime import datetime

from pydantic import BaseModel, ConfigDict


class SecurityStatsResponse(BaseModel):
    hours: int
    total_attempts: int
    failed_attempts: int
    successful_attempts: int
    unique_ips: int
    blocked_count: int


class LoginAttemptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    ip_address: str
    user_agent: str | None = None
    success: bool
    failure_reason: str | None = None
    attempted_at: datetime


class FailedAttemptsResponse(BaseModel):
    hours: int
    attempts: list[LoginAttemptResponse]


class CleanupResponse(BaseModel):
    login_attempts: int
    rate_limits: int
    verification_codes: int
