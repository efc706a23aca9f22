"""
TOTP (Time-based One-Time Password) service.

Handles 2FA secret generation, code verification, and backup code management.
"""

import secrets
import string

import pyotp

from app.core.security import pwd_context


def generate_totp_secret() -> str:
    """
    Generate a new TOTP secret.

    Returns:
        32-character base32 encoded secret
    """
    return pyotp.random_base32(length=32)


def generate_qr_uri(secret: str, email: str, issuer: str) -> str:
    """Build the otpauth:// URI an authenticator app scans."""
    totp = pyotp.TOTP(secret)
    return totp.provisioning_uri(name=email, issuer_name=issuer)


def verify_totp_code(secret: str | None, code: str | None) -> bool:
    """
    Verify a 6-digit TOTP code.

    valid_window=1 accepts the previous and next 30-second step to allow for
    clock drift.
    """
    if not secret or not code or len(code) != 6 or not code.isdigit():
        return False

    return pyotp.TOTP(secret).verify(code, valid_window=1)


def generate_backup_codes(count: int = 10) -> list[str]:
    """Generate ``count`` 8-character alphanumeric recovery codes."""
    alphabet = string.ascii_uppercase + string.digits
    return ["".join(secrets.choice(alphabet) for _ in range(8)) for _ in range(count)]


def hash_backup_code(code: str) -> str:
    return pwd_context.hash(code.upper())


def verify_backup_code(code: str, hashed: str) -> bool:
    return pwd_context.verify(code.upper(), hashed)


def consume_backup_code(code: str, hashed_codes: list[str] | None) -> list[str] | None:
    """
    Match ``code`` against stored hashes.

    Returns the remaining hashes with the matched one removed, or None when
    nothing matched.
    """
    if not code or not hashed_codes:
        return None
    for i, hashed in enumerate(hashed_codes):
        if verify_backup_code(code, hashed):
            return [c for j, c in enumerate(hashed_codes) if j != i]
    return None


def verify_second_factor(
    secret: str | None,
    hashed_backup_codes: list[str] | None,
    code: str,
) -> tuple[bool, list[str] | None]:
    """
    Check a TOTP code, falling back to backup codes.

    Returns:
        (valid, remaining_backup_codes) - remaining is None unless a backup code was used
    """
    if verify_totp_code(secret, code):
        return True, None
    remaining = consume_backup_code(code, hashed_backup_codes)
    if remaining is not None:
        return True, remaining
    return False, None
