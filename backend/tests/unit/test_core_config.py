"""Tests for application configuration.

Defaults, invariant checks and production security validation.
"""

import pytest
from pydantic import ValidationError

from tollgate.core.config import _INSECURE_DEFAULT_PASSWORD, Settings

# Reusable test constants
_SECURE_DB_PASSWORD = "my-secure-production-password-123!"
_STRONG_SECRET = "a" * 64
_PRODUCTION = "production"


class TestDefaults:
    def test_ledger_and_batch_defaults(self) -> None:
        s = Settings(_env_file=None)
        assert s.credit_adjustment_limit == 1000
        assert s.claims_ttl_seconds == 300
        assert s.daily_deduction_cron == "0 0 * * *"
        assert s.daily_deduction_same_day_guard is False
        assert s.scheduler_enabled is False

    def test_database_url_uses_asyncpg(self) -> None:
        s = Settings(_env_file=None, database_host="db", database_name="tg")
        assert s.database_url.startswith("postgresql+asyncpg://")
        assert s.database_url.endswith("@db:5432/tg")


class TestInvariants:
    @pytest.mark.parametrize("limit", [0, -5])
    def test_rejects_non_positive_adjustment_limit(self, limit: int) -> None:
        with pytest.raises(ValidationError, match="CREDIT_ADJUSTMENT_LIMIT"):
            Settings(_env_file=None, credit_adjustment_limit=limit)

    def test_rejects_non_positive_store_timeout(self) -> None:
        with pytest.raises(ValidationError, match="STORE_TIMEOUT_SECONDS"):
            Settings(_env_file=None, store_timeout_seconds=0)

    def test_rejects_negative_claims_ttl(self) -> None:
        with pytest.raises(ValidationError, match="CLAIMS_TTL_SECONDS"):
            Settings(_env_file=None, claims_ttl_seconds=-1)

    def test_samesite_none_requires_secure(self) -> None:
        with pytest.raises(ValidationError, match="AUTH_COOKIE_SECURE"):
            Settings(
                _env_file=None,
                auth_cookie_samesite="none",
                auth_cookie_secure=False,
            )

    def test_rejects_wildcard_origin(self) -> None:
        with pytest.raises(ValidationError, match="wildcard"):
            Settings(_env_file=None, allowed_origins=["*"])


class TestProductionSecurityValidation:
    """Tests for production security requirements."""

    def test_allows_default_password_in_development(self) -> None:
        s = Settings(_env_file=None, environment="development")
        assert s.database_password == _INSECURE_DEFAULT_PASSWORD

    def test_rejects_default_password_in_production(self) -> None:
        with pytest.raises(ValidationError, match="default database password"):
            Settings(
                _env_file=None,
                environment=_PRODUCTION,
                database_password=_INSECURE_DEFAULT_PASSWORD,
                auth_secret=_STRONG_SECRET,
                cron_secret=_STRONG_SECRET,
            )

    @pytest.mark.parametrize("field", ["auth_secret", "cron_secret"])
    def test_rejects_short_secret_in_production(self, field: str) -> None:
        values = {"auth_secret": _STRONG_SECRET, "cron_secret": _STRONG_SECRET}
        values[field] = "short"
        with pytest.raises(ValidationError, match=field.upper()):
            Settings(
                _env_file=None,
                environment=_PRODUCTION,
                database_password=_SECURE_DB_PASSWORD,
                **values,
            )

    def test_accepts_secure_production_config(self) -> None:
        s = Settings(
            _env_file=None,
            environment=_PRODUCTION,
            database_password=_SECURE_DB_PASSWORD,
            auth_secret=_STRONG_SECRET,
            cron_secret=_STRONG_SECRET,
        )
        assert s.environment == _PRODUCTION
