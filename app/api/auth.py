import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.core.config import settings
from app.core.errors import (
    ErrorCode,
    HTTPError,
    conflict,
    service_unavailable,
    too_many_requests,
    unauthorized,
    validation_error,
)
from app.core.security import create_access_token
from app.db.session import get_db
from app.models.login_attempt import FailureReason
from app.models.user import User
from app.models.verification_code import VerificationCodeType
from app.schemas.auth import (
    CodeRequest,
    LoginRequest,
    PasswordResetRequest,
    ProvidersResponse,
    RegisterRequest,
    TokenResponse,
    VerifyEmailRequest,
)
from app.schemas.totp import (
    TwoFactorDisableRequest,
    TwoFactorSetupResponse,
    TwoFactorVerifyRequest,
    TwoFactorVerifyResponse,
)
from app.schemas.user import UserResponse
from app.services import rate_limit
from app.services.credentials import authenticate
from app.services.totp import (
    generate_backup_codes,
    generate_qr_uri,
    generate_totp_secret,
    hash_backup_code,
    verify_second_factor,
    verify_totp_code,
)
from app.services.users import (
    UserAlreadyExistsError,
    create_user,
    get_user_by_email,
    mark_email_verified,
    normalize_email,
    update_two_factor,
    update_user,
)
from app.services.verification import create_code, verify_code
from app.utils.request import get_client_ip, get_user_agent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

CODE_SENT_MESSAGE = "If the account exists, a verification code has been sent."

COMMON_PASSWORDS = {
    "password", "password1", "password123",
    "qwerty123", "letmein123", "welcome123",
    "12345678", "123456789", "1234567890",
    "abc12345", "iloveyou1",
}


def validate_password_complexity(
    password: str,
    user_email: str | None = None,
) -> tuple[bool, str]:
    """
    Validate password strength.

    Requirements:
    - 8 to 128 characters
    - At least one uppercase letter, one lowercase letter and one number
    - Cannot contain the user's email username
    - Not a well-known common password

    Returns:
        Tuple of (is_valid, error_message)
    """
    if len(password) < 8:
        return False, "Password must be at least 8 characters long"

    if len(password) > 128:
        return False, "Password must not exceed 128 characters"

    if user_email:
        email_username = user_email.split('@')[0].lower()
        if len(email_username) >= 3 and email_username in password.lower():
            return False, "Password cannot contain your email username"

    if not any(c.isupper() for c in password):
        return False, "Password must contain at least one uppercase letter (A-Z)"

    if not any(c.islower() for c in password):
        return False, "Password must contain at least one lowercase letter (a-z)"

    if not any(c.isdigit() for c in password):
        return False, "Password must contain at least one number (0-9)"

    if password.lower() in COMMON_PASSWORDS:
        return False, "Password is too common. Please choose a more secure password"

    return True, ""


async def _enforce_rate_limit(
    db: AsyncSession,
    identifier: str,
    action_type: str,
    max_attempts: int,
    window_minutes: int,
) -> None:
    check = await rate_limit.check_and_consume(db, identifier, action_type, max_attempts, window_minutes)
    if not check.allowed:
        raise too_many_requests(
            check.message,
            check.retry_after_seconds(),
            details={"reset_time": check.reset_time.isoformat()},
        )


def _confirm_action(code_type: VerificationCodeType) -> str:
    return f"{code_type.value}_confirm"


async def _check_code(
    db: AsyncSession,
    email: str,
    code: str,
    code_type: VerificationCodeType,
):
    """Verify a submitted code; wrong guesses count against a per-email limit."""
    email = normalize_email(email)
    await _enforce_rate_limit(
        db,
        email,
        _confirm_action(code_type),
        settings.CODE_CONFIRM_MAX_ATTEMPTS,
        settings.CODE_CONFIRM_WINDOW_MINUTES,
    )
    result = await verify_code(db, email, code, code_type)
    if result.success:
        await rate_limit.reset(db, email, _confirm_action(code_type))
    return result


def _code_response(code: str | None) -> dict:
    body = {"message": CODE_SENT_MESSAGE}
    # No mail transport ships with the backend; expose the code in development only
    if settings.DEBUG and code is not None:
        body["debug_code"] = code
    return body


@router.get("/providers", response_model=ProvidersResponse)
async def get_providers():
    """List sign-in methods available to the frontend."""
    return ProvidersResponse(oauth=settings.oauth_providers)


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    http_request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Create a local account."""
    await _enforce_rate_limit(
        db,
        get_client_ip(http_request),
        rate_limit.SIGNUP_ACTION,
        settings.SIGNUP_MAX_ATTEMPTS,
        settings.SIGNUP_WINDOW_MINUTES,
    )

    is_valid, error_msg = validate_password_complexity(request.password, request.email)
    if not is_valid:
        raise validation_error(error_msg)

    try:
        user = await create_user(
            db,
            email=request.email,
            password=request.password,
            first_name=request.first_name,
            last_name=request.last_name,
        )
    except UserAlreadyExistsError:
        raise conflict("User already exists")

    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    http_request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    result = await authenticate(
        db,
        request.email,
        request.password,
        get_client_ip(http_request),
        user_agent=get_user_agent(http_request),
        two_factor_code=request.totp_code,
        max_attempts=settings.LOGIN_MAX_ATTEMPTS,
        window_minutes=settings.LOGIN_WINDOW_MINUTES,
    )

    if not result.success:
        if result.reason == FailureReason.RATE_LIMITED:
            raise too_many_requests(
                result.message,
                result.retry_after,
                details={"reset_time": result.reset_time.isoformat()},
            )
        if result.reason == FailureReason.SERVICE_UNAVAILABLE:
            raise service_unavailable(result.message)
        if result.reason == FailureReason.TWO_FACTOR_REQUIRED:
            raise HTTPError(
                status_code=status.HTTP_401_UNAUTHORIZED,
                code=ErrorCode.TWO_FACTOR_REQUIRED,
                message=result.message,
            )
        raise unauthorized(result.message)

    access_token = create_access_token(
        data={"sub": str(result.user.id)},
        token_version=result.user.token_version,
    )
    return TokenResponse(access_token=access_token)


@router.post("/logout")
async def logout():
    """Tokens are stateless; the client discards its copy."""
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: Annotated[User, Depends(get_current_user)],
):
    return UserResponse.model_validate(current_user)


@router.post("/verify-email/request", status_code=status.HTTP_202_ACCEPTED)
async def request_email_verification(
    request: CodeRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    email = normalize_email(request.email)
    await _enforce_rate_limit(
        db,
        email,
        VerificationCodeType.EMAIL_VERIFICATION.value,
        settings.CODE_REQUEST_MAX_ATTEMPTS,
        settings.CODE_REQUEST_WINDOW_MINUTES,
    )

    code = None
    user = await get_user_by_email(db, email)
    if user is not None and not user.email_verified:
        code = await create_code(
            db,
            user.id,
            user.email,
            VerificationCodeType.EMAIL_VERIFICATION,
            settings.VERIFICATION_CODE_EXPIRE_MINUTES,
        )
    return _code_response(code)


@router.post("/verify-email")
async def confirm_email(
    request: VerifyEmailRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    result = await _check_code(db, request.email, request.code, VerificationCodeType.EMAIL_VERIFICATION)
    if not result.success:
        raise validation_error("Invalid or expired verification code")

    await mark_email_verified(db, result.user_id)
    return {"message": "Email verified"}


@router.post("/password-reset/request", status_code=status.HTTP_202_ACCEPTED)
async def request_password_reset(
    request: CodeRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    email = normalize_email(request.email)
    await _enforce_rate_limit(
        db,
        email,
        VerificationCodeType.PASSWORD_RESET.value,
        settings.CODE_REQUEST_MAX_ATTEMPTS,
        settings.CODE_REQUEST_WINDOW_MINUTES,
    )

    code = None
    user = await get_user_by_email(db, email)
    if user is not None and user.is_active:
        code = await create_code(
            db,
            user.id,
            user.email,
            VerificationCodeType.PASSWORD_RESET,
            settings.VERIFICATION_CODE_EXPIRE_MINUTES,
        )
    return _code_response(code)


@router.post("/password-reset")
async def reset_password(
    request: PasswordResetRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    is_valid, error_msg = validate_password_complexity(request.new_password, request.email)
    if not is_valid:
        raise validation_error(error_msg)

    result = await _check_code(db, request.email, request.code, VerificationCodeType.PASSWORD_RESET)
    if not result.success:
        raise validation_error("Invalid or expired reset code")

    user = await get_user_by_email(db, request.email)
    if user is None:
        raise validation_error("Invalid or expired reset code")

    await update_user(db, user, password=request.new_password)
    # A proven owner of the mailbox is no longer treated as a brute-force source
    await rate_limit.reset(db, user.email, rate_limit.LOGIN_ACTION)
    logger.info("Password reset for user %s", user.id)
    return {"message": "Password has been reset"}


@router.post("/2fa/setup", response_model=TwoFactorSetupResponse)
async def setup_2fa(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Initiate 2FA setup. Returns QR code URI for authenticator app."""
    if current_user.two_factor_enabled:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="2FA is already enabled. Disable it first to set up again.",
        )

    secret = generate_totp_secret()
    await update_two_factor(db, current_user, enabled=False, secret=secret)
    return TwoFactorSetupResponse(
        qr_uri=generate_qr_uri(secret, current_user.email, settings.APP_NAME),
        secret=secret,
    )


@router.post("/2fa/verify", response_model=TwoFactorVerifyResponse)
async def verify_2fa_setup(
    request: TwoFactorVerifyRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Confirm 2FA setup with a code from the authenticator app."""
    if current_user.two_factor_enabled or not current_user.two_factor_secret:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No pending 2FA setup. Call /2fa/setup first.",
        )

    if not verify_totp_code(current_user.two_factor_secret, request.code):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid verification code. Please try again.",
        )

    backup_codes = generate_backup_codes(10)
    await update_two_factor(
        db,
        current_user,
        enabled=True,
        secret=current_user.two_factor_secret,
        backup_codes=[hash_backup_code(code) for code in backup_codes],
    )
    logger.info("2FA enabled for user %s", current_user.id)
    return TwoFactorVerifyResponse(message="2FA enabled successfully", backup_codes=backup_codes)


@router.post("/2fa/disable")
async def disable_2fa(
    request: TwoFactorDisableRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Disable 2FA. Requires valid TOTP or backup code."""
    if not current_user.two_factor_enabled:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="2FA is not enabled.")

    valid, _ = verify_second_factor(
        current_user.two_factor_secret, current_user.two_factor_backup_codes, request.code
    )
    if not valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid code.")

    await update_two_factor(db, current_user, enabled=False)
    logger.info("2FA disabled for user %s", current_user.id)
    return {"message": "2FA disabled"}
