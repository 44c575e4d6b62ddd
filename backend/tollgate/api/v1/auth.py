"""Authentication endpoints.

register, login, logout, status and session refresh.

Security considerations:
- login: constant-time comparison via DUMMY_HASH prevents user enumeration
- register: bcrypt cost 12, email uniqueness, every account starts
  PENDING with 0 credits
- the session cookie carries SessionClaims; see services/session_claims.py
"""

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy.exc import IntegrityError

from tollgate.api.deps import CurrentUser, DbSession, OptionalClaims
from tollgate.core.auth import (
    clear_auth_cookie,
    hash_password,
    set_auth_cookie,
    validate_password_strength,
    verify_password,
)
from tollgate.core.config import settings
from tollgate.core.errors import ConflictError, UnauthorizedError
from tollgate.core.rate_limiting import limiter
from tollgate.core.responses import DataResponse, MessageDataResponse
from tollgate.repositories.user_repository import UserRepository
from tollgate.schemas.user import UserResponse
from tollgate.services.access_policy import can_authenticate, enforce
from tollgate.services.session_claims import SessionClaims

REGISTERED_MESSAGE = "User registered successfully. Please wait for admin approval."

router = APIRouter()


# ===================================================================
# Request / response models
# ===================================================================


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class SessionResponse(BaseModel):
    """Session state as seen by the client."""

    model_config = ConfigDict(extra="forbid")

    authenticated: bool
    user: dict | None = None


# ===================================================================
# POST /auth/register
# ===================================================================


@router.post("/register", status_code=201)
@limiter.limit(lambda: settings.rate_limit_register)
async def register(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: RegisterRequest,
    db: DbSession,
) -> MessageDataResponse[UserResponse]:
    """Register a new account.

    The account starts PENDING with 0 credits and cannot use the approved
    area until an admin approves it and grants credits.

    Rate limit: RATE_LIMIT_REGISTER per IP.
    """
    validate_password_strength(body.password)

    if await UserRepository.get_by_email(db, body.email) is not None:
        raise _email_taken()

    try:
        user = await UserRepository.create(
            db, email=body.email, password_hash=hash_password(body.password)
        )
    except IntegrityError as exc:
        # Lost a race with a concurrent registration for the same email.
        await db.rollback()
        raise _email_taken() from exc

    return MessageDataResponse(
        data=UserResponse.from_user(user),
        message=REGISTERED_MESSAGE,
    )


def _email_taken() -> ConflictError:
    return ConflictError(
        code="EMAIL_ALREADY_REGISTERED",
        message="User with this email already exists",
    )


# ===================================================================
# POST /auth/login
# ===================================================================


@router.post("/login")
@limiter.limit(lambda: settings.rate_limit_login)
async def login(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: LoginRequest,
    response: Response,
    db: DbSession,
) -> DataResponse[SessionResponse]:
    """Verify email + password and issue the session cookie.

    REJECTED accounts are refused after the password check so the
    response does not reveal account state to someone without the
    password. PENDING and BLOCKED accounts sign in normally and are
    routed by the approved-area gate.

    Rate limit: RATE_LIMIT_LOGIN per IP.
    """
    user = await UserRepository.get_by_email(db, body.email)
    password_hash = user.password_hash if user is not None else None
    if not verify_password(body.password, password_hash) or user is None:
        raise UnauthorizedError("Invalid email or password")

    enforce(can_authenticate(user))

    claims = SessionClaims.from_user(user)
    set_auth_cookie(response, claims.encode())
    return DataResponse(
        data=SessionResponse(authenticated=True, user=claims.to_public_dict())
    )


# ===================================================================
# POST /auth/logout
# ===================================================================


@router.post("/logout")
async def logout(response: Response) -> DataResponse[SessionResponse]:
    """Clear the session cookie. Always succeeds."""
    clear_auth_cookie(response)
    return DataResponse(data=SessionResponse(authenticated=False))


# ===================================================================
# GET /auth/status
# ===================================================================


@router.get("/status")
async def session_status(claims: OptionalClaims) -> DataResponse[SessionResponse]:
    """Report the claims carried by the session cookie, if any.

    Reflects the cookie, not the live row. Use /users/me or
    /auth/session/refresh for current values.
    """
    if claims is None:
        return DataResponse(data=SessionResponse(authenticated=False))
    return DataResponse(
        data=SessionResponse(authenticated=True, user=claims.to_public_dict())
    )


# ===================================================================
# POST /auth/session/refresh
# ===================================================================


@router.post("/session/refresh")
async def refresh_session(
    user: CurrentUser,
    response: Response,
) -> DataResponse[SessionResponse]:
    """Re-seed session claims from the live user row.

    A REJECTED user gets 403 ACCOUNT_REJECTED instead of fresh claims.
    """
    enforce(can_authenticate(user))

    claims = SessionClaims.from_user(user)
    set_auth_cookie(response, claims.encode())
    return DataResponse(
        data=SessionResponse(authenticated=True, user=claims.to_public_dict())
    )
