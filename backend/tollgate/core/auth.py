"""Password hashing, JWT signing and session cookie helpers.

Shared by the auth endpoints and the session claims projection.

Pipeline:
- hash_password / verify_password: bcrypt, timing-safe on unknown users
- validate_password_strength: format rules (sync, no network)
- encode_jwt / decode_jwt: HS256 with audience and issuer checks
- set_auth_cookie / clear_auth_cookie: httpOnly session cookie
"""

import re
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import jwt
from fastapi import Response

from tollgate.core.config import settings
from tollgate.core.errors import ValidationError

# bcrypt cost factor for password hashing
_BCRYPT_ROUNDS = 12

_JWT_ALGORITHM = "HS256"

# Pre-computed bcrypt hash for timing-safe comparison on user-not-found.
# Security: prevents user enumeration via response time differences.
DUMMY_HASH = b"$2b$12$ZP2PVB8yI35X.mkRqcUPUuSzJA1CNRt4dZ7X3cyrfJu.2S3w.Qen2"


def hash_password(password: str) -> str:
    """Hash a password with bcrypt.

    Args:
        password: Plain-text password.

    Returns:
        bcrypt hash as a UTF-8 string.
    """
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=_BCRYPT_ROUNDS)).decode()


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check a password against a stored hash.

    Always performs one bcrypt comparison, even when no hash is stored,
    so response time does not reveal whether the account exists.

    Args:
        password: Plain-text password to check.
        password_hash: Stored bcrypt hash, or None for an unknown user.

    Returns:
        True only when a hash exists and matches.
    """
    if password_hash is None:
        bcrypt.checkpw(password.encode(), DUMMY_HASH)
        return False
    return bcrypt.checkpw(password.encode(), password_hash.encode())


def validate_password_strength(password: str) -> None:
    """Validate password meets strength requirements.

    8-128 chars with at least one uppercase letter, one lowercase letter
    and one number.

    Args:
        password: Plain-text password to validate.

    Raises:
        ValidationError: If password doesn't meet requirements.
    """
    if len(password) < 8:
        raise ValidationError("Password must be at least 8 characters long")
    if len(password) > 128:
        raise ValidationError("Password must be at most 128 characters")
    if not re.search(r"[a-z]", password):
        raise ValidationError("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        raise ValidationError("Password must contain at least one uppercase letter")
    if not re.search(r"\d", password):
        raise ValidationError("Password must contain at least one number")


def encode_jwt(
    payload: dict[str, Any],
    *,
    expires_delta: timedelta | None = None,
    issued_at: datetime | None = None,
) -> str:
    """Sign a JWT with standard audience, issuer, iat and exp claims.

    Args:
        payload: Custom claims (must include "sub").
        expires_delta: Time until expiration. Defaults to the session TTL.
        issued_at: Issued-at time. Defaults to now. Kept with sub-second
            precision so it orders correctly against invalidation stamps.

    Returns:
        Encoded JWT string.
    """
    now = issued_at or datetime.now(UTC)
    claims = {
        **payload,
        "aud": settings.auth_audience,
        "iss": settings.auth_issuer,
        "iat": now.timestamp(),
        "exp": now + (expires_delta or timedelta(hours=settings.session_ttl_hours)),
    }
    return jwt.encode(
        claims, settings.auth_secret.get_secret_value(), algorithm=_JWT_ALGORITHM
    )


def decode_jwt(token: str) -> dict[str, Any]:
    """Verify and decode a JWT.

    Args:
        token: Encoded JWT string.

    Returns:
        Decoded claims.

    Raises:
        jwt.InvalidTokenError: On bad signature, expiry, audience or issuer.
    """
    return jwt.decode(
        token,
        settings.auth_secret.get_secret_value(),
        algorithms=[_JWT_ALGORITHM],
        audience=settings.auth_audience,
        issuer=settings.auth_issuer,
    )


def set_auth_cookie(response: Response, token: str) -> None:
    """Set httpOnly session cookie on response.

    Security: httpOnly prevents XSS cookie theft. Secure flag and SameSite
    are configured via settings for environment-appropriate security.
    """
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        path="/",
        max_age=settings.session_ttl_hours * 3600,
        domain=settings.auth_cookie_domain or None,
    )


def clear_auth_cookie(response: Response) -> None:
    """Remove the session cookie."""
    response.delete_cookie(
        key=settings.auth_cookie_name,
        path="/",
        domain=settings.auth_cookie_domain or None,
    )
