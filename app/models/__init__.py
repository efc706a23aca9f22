from app.models.login_attempt import FailureReason, LoginAttempt
from app.models.rate_limit import RateLimit
from app.models.user import User, UserRole
from app.models.verification_code import VerificationCode, VerificationCodeType

__all__ = [
    "FailureReason",
    "LoginAttempt",
    "RateLimit",
    "User",
    "UserRole",
    "VerificationCode",
    "VerificationCodeType",
]
