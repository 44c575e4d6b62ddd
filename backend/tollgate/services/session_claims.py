"""Session claims projection.

At sign-in the user's (status, role, credits) is copied into the signed
session token so that cheap checks can run without a database read. The
copy goes stale the moment the row changes, so:

- Claims older than CLAIMS_TTL_SECONDS are stale.
- Claims issued before the user's claims_invalidated_before are stale.
  Admin credit and status changes set that stamp.
- Credit-metered and admin capabilities never trust claims; they always
  read the live row (see api/deps.py).
"""

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from tollgate.core.auth import decode_jwt, encode_jwt
from tollgate.core.config import settings
from tollgate.core.errors import UnauthorizedError
from tollgate.models.user import User


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@dataclass(frozen=True)
class SessionClaims:
    """Authorization-relevant snapshot of a user, carried in the session JWT.

    Attributes:
        user_id: Subject (users.id).
        email: Email at issuance.
        role: Role at issuance.
        status: Status at issuance.
        credits: Balance at issuance.
        issued_at: When the snapshot was taken.
    """

    user_id: uuid.UUID
    email: str
    role: str
    status: str
    credits: int
    issued_at: datetime

    @classmethod
    def from_user(cls, user: User, *, issued_at: datetime | None = None) -> "SessionClaims":
        """Snapshot a live user row."""
        return cls(
            user_id=user.id,
            email=user.email,
            role=user.role,
            status=user.status,
            credits=user.credits,
            issued_at=issued_at or datetime.now(UTC),
        )

    def encode(self) -> str:
        """Sign the claims into a session token."""
        return encode_jwt(
            {
                "sub": str(self.user_id),
                "email": self.email,
                "role": self.role,
                "status": self.status,
                "credits": self.credits,
            },
            issued_at=self.issued_at,
        )

    @classmethod
    def decode(cls, token: str) -> "SessionClaims":
        """Verify a session token and rebuild the claims.

        Args:
            token: Encoded session JWT.

        Returns:
            The decoded claims.

        Raises:
            UnauthorizedError: Bad signature, expired, or malformed claims.
        """
        try:
            payload = decode_jwt(token)
        except jwt.InvalidTokenError as exc:
            raise UnauthorizedError("Invalid or expired session") from exc

        try:
            return cls(
                user_id=uuid.UUID(payload["sub"]),
                email=str(payload["email"]),
                role=str(payload["role"]),
                status=str(payload["status"]),
                credits=int(payload["credits"]),
                issued_at=datetime.fromtimestamp(float(payload["iat"]), UTC),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise UnauthorizedError("Invalid or expired session") from exc

    def to_public_dict(self) -> dict[str, Any]:
        """Fields exposed to the client by /auth/status."""
        return {
            "id": str(self.user_id),
            "email": self.email,
            "role": self.role,
            "status": self.status,
            "credits": self.credits,
        }


class ClaimsPolicy:
    """Decides whether cached claims may still be used.

    Args:
        ttl_seconds: Maximum claim age. Defaults to settings.claims_ttl_seconds.
            0 means claims are never fresh.
    """

    def __init__(self, ttl_seconds: int | None = None) -> None:
        if ttl_seconds is None:
            ttl_seconds = settings.claims_ttl_seconds
        self._ttl = timedelta(seconds=ttl_seconds)

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def is_fresh(
        self,
        claims: SessionClaims,
        *,
        invalidated_before: datetime | None,
        now: datetime | None = None,
    ) -> bool:
        """Whether claims may stand in for the live row.

        Args:
            claims: Decoded session claims.
            invalidated_before: The user's claims_invalidated_before.
            now: Current time. Defaults to now (UTC).

        Returns:
            False if the claims are older than the TTL or predate the
            user's invalidation stamp.
        """
        now = now or datetime.now(UTC)
        issued_at = as_utc(claims.issued_at)
        if now - issued_at >= self._ttl:
            return False
        return not (
            invalidated_before is not None and issued_at < as_utc(invalidated_before)
        )
