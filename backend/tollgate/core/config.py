"""Application configuration loaded from environment variables.

Settings for the database, HTTP surface, session claims, the credit ledger
and the daily deduction batch. Uses pydantic-settings for validation and
.env file support.
"""

from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "tollgate_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET and CRON_SECRET in production (256 bits)
_MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "tollgate"
    database_user: str = "tollgate_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # API
    # 0.0.0.0 binds to all network interfaces (required for Docker containers)
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 8000

    # CORS (Security)
    # CRITICAL: Never set to ["*"] when allow_credentials=True
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Session claims
    auth_secret: SecretStr = SecretStr("")
    auth_issuer: str = "tollgate"
    auth_audience: str = "tollgate"
    auth_cookie_name: str = "tollgate.session-token"
    auth_cookie_secure: bool = True
    auth_cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    auth_cookie_domain: str = ""
    session_ttl_hours: int = 24
    # Cached claims older than this are re-read before use
    claims_ttl_seconds: int = 300

    # Credit ledger
    credit_adjustment_limit: int = 1000
    # Caller-side bound on a single per-user ledger transaction
    store_timeout_seconds: float = 10.0

    # Daily deduction batch
    daily_deduction_same_day_guard: bool = False
    daily_deduction_max_users: int | None = None
    cron_secret: SecretStr = SecretStr("")
    scheduler_enabled: bool = False
    daily_deduction_cron: str = "0 0 * * *"

    # Rate Limiting (Security)
    rate_limit_enabled: bool = True  # Disable for testing
    rate_limit_login: str = "5/minute"
    rate_limit_register: str = "10/hour"

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate configuration invariants and production security.

        Checks:
        - Credit adjustment limit and store timeout must be positive
        - Claims TTL must not be negative
        - SameSite=None requires the Secure cookie flag
        - CORS must not use wildcard origin (incompatible with credentials)
        - Production: no default DB password, strong AUTH_SECRET and CRON_SECRET
        """
        if self.credit_adjustment_limit <= 0:
            msg = (
                "CREDIT_ADJUSTMENT_LIMIT must be positive. "
                f"Got: {self.credit_adjustment_limit}"
            )
            raise ValueError(msg)
        if self.store_timeout_seconds <= 0:
            msg = (
                "STORE_TIMEOUT_SECONDS must be positive. "
                f"Got: {self.store_timeout_seconds}"
            )
            raise ValueError(msg)
        if self.claims_ttl_seconds < 0:
            msg = f"CLAIMS_TTL_SECONDS cannot be negative. Got: {self.claims_ttl_seconds}"
            raise ValueError(msg)

        if self.auth_cookie_samesite == "none" and not self.auth_cookie_secure:
            msg = (
                "AUTH_COOKIE_SECURE must be true when AUTH_COOKIE_SAMESITE=none. "
                "Browsers reject SameSite=None cookies without the Secure flag."
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "Session cookies are incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            for name, secret in (
                ("AUTH_SECRET", self.auth_secret),
                ("CRON_SECRET", self.cron_secret),
            ):
                if len(secret.get_secret_value()) < _MIN_SECRET_LENGTH:
                    msg = (
                        f"{name} must be set to at least {_MIN_SECRET_LENGTH} "
                        'characters in production. Generate with: python -c "import '
                        'secrets; print(secrets.token_hex(32))"'
                    )
                    raise ValueError(msg)

        return self


settings = Settings()
