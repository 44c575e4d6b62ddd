"""Shared dependencies for API endpoints.

Gate strength by capability:
- CurrentUser: valid session, live row loaded. No status check.
- ApprovedAreaClaims: can_enter_approved_area on session claims while
  fresh; stale claims are re-read from the row and the cookie re-issued.
- CreditedUser: can_use_credited_capability on the live row, always.
- AdminUser: can_administer on the live row, always.
- CronAuthorized: shared-secret bearer token for the scheduler trigger.
"""

import hmac
from typing import Annotated

from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tollgate.core.auth import set_auth_cookie
from tollgate.core.config import settings
from tollgate.core.database import get_db, get_session_factory
from tollgate.core.errors import UnauthorizedError
from tollgate.models import User
from tollgate.repositories.user_repository import UserRepository
from tollgate.services.access_policy import (
    can_administer,
    can_enter_approved_area,
    can_use_credited_capability,
    enforce,
)
from tollgate.services.session_claims import ClaimsPolicy, SessionClaims

DbSession = Annotated[AsyncSession, Depends(get_db)]
SessionFactory = Annotated[
    async_sessionmaker[AsyncSession], Depends(get_session_factory)
]


def get_session_claims(request: Request) -> SessionClaims:
    """Decode the session cookie.

    Raises:
        UnauthorizedError: No cookie, or the token fails verification.
    """
    token = request.cookies.get(settings.auth_cookie_name)
    if not token:
        raise UnauthorizedError()
    return SessionClaims.decode(token)


def get_optional_session_claims(request: Request) -> SessionClaims | None:
    """Like get_session_claims, but None instead of 401."""
    try:
        return get_session_claims(request)
    except UnauthorizedError:
        return None


Claims = Annotated[SessionClaims, Depends(get_session_claims)]
OptionalClaims = Annotated[SessionClaims | None, Depends(get_optional_session_claims)]


async def get_current_user(claims: Claims, db: DbSession) -> User:
    """Load the live user row for the session subject.

    Raises:
        UnauthorizedError: The user no longer exists.
    """
    user = await UserRepository.get_by_id(db, claims.user_id)
    if user is None:
        raise UnauthorizedError()
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


async def get_approved_area_claims(
    claims: Claims,
    response: Response,
    db: DbSession,
) -> SessionClaims:
    """Gate the approved area, trusting claims while they are fresh.

    Raises:
        UnauthorizedError: The user no longer exists.
        AuthorizationError: can_enter_approved_area denied.
    """
    exists, invalidated_before = await UserRepository.get_claims_invalidated_before(
        db, claims.user_id
    )
    if not exists:
        raise UnauthorizedError()

    if ClaimsPolicy().is_fresh(claims, invalidated_before=invalidated_before):
        enforce(can_enter_approved_area(claims))
        return claims

    user = await UserRepository.get_by_id(db, claims.user_id)
    if user is None:
        raise UnauthorizedError()
    refreshed = SessionClaims.from_user(user)
    set_auth_cookie(response, refreshed.encode())
    enforce(can_enter_approved_area(refreshed))
    return refreshed


ApprovedAreaClaims = Annotated[SessionClaims, Depends(get_approved_area_claims)]


async def get_credited_user(user: CurrentUser) -> User:
    """Gate a credit-metered capability on live state."""
    enforce(can_use_credited_capability(user))
    return user


CreditedUser = Annotated[User, Depends(get_credited_user)]


async def get_admin_user(user: CurrentUser) -> User:
    """Gate admin operations on live state."""
    enforce(can_administer(user))
    return user


AdminUser = Annotated[User, Depends(get_admin_user)]


def require_cron_secret(request: Request) -> None:
    """Check the scheduler's bearer token.

    Security: constant-time comparison. An unset CRON_SECRET rejects
    every request rather than accepting an empty token.

    Raises:
        UnauthorizedError: Missing, malformed or wrong token.
    """
    expected = settings.cron_secret.get_secret_value()
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if (
        not expected
        or scheme.lower() != "bearer"
        or not hmac.compare_digest(token.encode(), expected.encode())
    ):
        raise UnauthorizedError("Invalid or missing cron secret")


CronAuthorized = Depends(require_cron_secret)