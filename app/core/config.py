import logging
import os
from ipaddress import IPv4Network, IPv6Network, ip_network
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


def _get_version() -> str:
    """Read version from pyproject.toml or environment variable."""
    # First check environment variable (for Docker/CI overrides)
    if env_version := os.getenv("APP_VERSION"):
        return env_version

    pyproject_path = Path(__file__).parent.parent.parent / "pyproject.toml"
    if pyproject_path.exists():
        for line in pyproject_path.read_text().split("\n"):
            if line.startswith("version"):
                # Parse: version = "0.1.0"
                return line.split("=")[1].strip().strip('"').strip("'")

    return "0.0.0-dev"


APP_VERSION = _get_version()

INSECURE_SECRET_DEFAULTS = (
    "dev-secret-key-change-in-prod",
    "secret",
    "changeme",
)

# Provider name -> (client id setting, client secret setting)
OAUTH_PROVIDERS = {
    "google": ("AUTH_GOOGLE_ID", "AUTH_GOOGLE_SECRET"),
    "github": ("AUTH_GITHUB_ID", "AUTH_GITHUB_SECRET"),
    "facebook": ("AUTH_FACEBOOK_ID", "AUTH_FACEBOOK_SECRET"),
    "apple": ("AUTH_APPLE_ID", "AUTH_APPLE_SECRET"),
    "discord": ("AUTH_DISCORD_ID", "AUTH_DISCORD_SECRET"),
    "twitter": ("AUTH_TWITTER_ID", "AUTH_TWITTER_SECRET"),
    "linkedin": ("AUTH_LINKEDIN_ID", "AUTH_LINKEDIN_SECRET"),
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "starter"
    POSTGRES_PASSWORD: str = "devpassword"
    POSTGRES_DB: str = "starter"
    DATABASE_URL_OVERRIDE: str | None = None
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 40

    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # JWT
    JWT_SECRET_KEY: str = "dev-secret-key-change-in-prod"  # In production, ALWAYS override via env var
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 480

    # Login rate limiting
    LOGIN_MAX_ATTEMPTS: int = 5
    LOGIN_WINDOW_MINUTES: int = 15
    SIGNUP_MAX_ATTEMPTS: int = 10
    SIGNUP_WINDOW_MINUTES: int = 60
    CODE_REQUEST_MAX_ATTEMPTS: int = 3
    CODE_REQUEST_WINDOW_MINUTES: int = 15
    CODE_CONFIRM_MAX_ATTEMPTS: int = 5
    CODE_CONFIRM_WINDOW_MINUTES: int = 15

    # Maintenance
    LOGIN_ATTEMPT_RETENTION_DAYS: int = 30
    MAINTENANCE_INTERVAL_MINUTES: int = 60
    SCHEDULER_ENABLED: bool = True
    VERIFICATION_CODE_EXPIRE_MINUTES: int = 15

    # App
    APP_NAME: str = "PWA Starter"
    APP_VERSION: str = APP_VERSION
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000"

    # Comma-separated proxy addresses or CIDRs whose X-Forwarded-For is honoured; "*" trusts any peer
    TRUSTED_PROXIES: str = ""

    # OAuth providers (only their presence is reported; the handshake lives in the frontend)
    AUTH_GOOGLE_ID: str | None = None
    AUTH_GOOGLE_SECRET: str | None = None
    AUTH_GITHUB_ID: str | None = None
    AUTH_GITHUB_SECRET: str | None = None
    AUTH_FACEBOOK_ID: str | None = None
    AUTH_FACEBOOK_SECRET: str | None = None
    AUTH_APPLE_ID: str | None = None
    AUTH_APPLE_SECRET: str | None = None
    AUTH_DISCORD_ID: str | None = None
    AUTH_DISCORD_SECRET: str | None = None
    AUTH_TWITTER_ID: str | None = None
    AUTH_TWITTER_SECRET: str | None = None
    AUTH_LINKEDIN_ID: str | None = None
    AUTH_LINKEDIN_SECRET: str | None = None

    @field_validator("JWT_SECRET_KEY")
    @classmethod
    def validate_secrets(cls, v: str, info) -> str:
        """Validate that secret keys are set and not default values in production."""
        if not v or v.strip() == "":
            raise ValueError(
                f"{info.field_name} must be set in environment variables. "
                f"Generate a secure random key using: openssl rand -base64 32"
            )

        if v.lower() in INSECURE_SECRET_DEFAULTS:
            # DEBUG is read from the environment because validators run before it is parsed
            debug_mode = os.environ.get("DEBUG", "").lower() in ("true", "1", "yes")
            if not debug_mode:
                raise ValueError(
                    f"{info.field_name} is using an insecure default value. "
                    f"Generate a secure key using: openssl rand -base64 32"
                )
            logger.warning(
                "%s is using an insecure default value in DEBUG mode. "
                "This MUST be changed in production!",
                info.field_name,
            )
        elif len(v) < 32:
            raise ValueError(
                f"{info.field_name} must be at least 32 characters long for security. "
                f"Generate a secure key using: openssl rand -base64 32"
            )

        return v

    @field_validator(
        "LOGIN_MAX_ATTEMPTS",
        "LOGIN_WINDOW_MINUTES",
        "SIGNUP_MAX_ATTEMPTS",
        "SIGNUP_WINDOW_MINUTES",
        "CODE_REQUEST_MAX_ATTEMPTS",
        "CODE_REQUEST_WINDOW_MINUTES",
        "CODE_CONFIRM_MAX_ATTEMPTS",
        "CODE_CONFIRM_WINDOW_MINUTES",
        "LOGIN_ATTEMPT_RETENTION_DAYS",
        "MAINTENANCE_INTERVAL_MINUTES",
    )
    @classmethod
    def validate_positive(cls, v: int, info) -> int:
        if v < 1:
            raise ValueError(f"{info.field_name} must be at least 1")
        return v

    @field_validator("TRUSTED_PROXIES")
    @classmethod
    def validate_trusted_proxies(cls, v: str) -> str:
        for entry in v.split(","):
            entry = entry.strip()
            if entry and entry != "*":
                # Raises ValueError for anything that is not an address or network
                ip_network(entry, strict=False)
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError("LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL")
        return level

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def trusted_proxy_networks(self) -> list[IPv4Network | IPv6Network]:
        entries = [entry.strip() for entry in self.TRUSTED_PROXIES.split(",") if entry.strip()]
        if "*" in entries:
            return [ip_network("0.0.0.0/0"), ip_network("::/0")]
        return [ip_network(entry, strict=False) for entry in entries]

    @property
    def oauth_providers(self) -> list[str]:
        """Names of OAuth providers with both client id and secret configured."""
        return [
            name
            for name, (id_field, secret_field) in OAUTH_PROVIDERS.items()
            if getattr(self, id_field) and getattr(self, secret_field)
        ]


settings = Settings()
