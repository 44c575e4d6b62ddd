"""Access policy evaluator.

Pure predicates over a subject's (status, role, credits). The subject can
be a live User row or cached SessionClaims; both expose the same three
attributes. No I/O happens here.

Approval and credit standing are independent conditions: an APPROVED user
with 0 credits is treated as blocked even before the status change lands.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from tollgate.core.errors import (
    AccountBlockedError,
    AccountPendingError,
    AccountRejectedError,
    AdminRequiredError,
    AuthorizationError,
    InsufficientCreditsError,
)
from tollgate.models.user import UserRole, UserStatus


class AccessSubject(Protocol):
    """Anything carrying the fields the policy reads."""

    status: str
    role: str
    credits: int


class AccessDenial(str, Enum):
    """Reason a predicate denied access."""

    PENDING = "PENDING"
    REJECTED = "REJECTED"
    BLOCKED = "BLOCKED"
    INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"
    ADMIN_REQUIRED = "ADMIN_REQUIRED"

    @property
    def redirect_path(self) -> str:
        """UI route that explains this denial."""
        return _REDIRECTS[self]


_REDIRECTS: dict[AccessDenial, str] = {
    AccessDenial.PENDING: "/pending",
    AccessDenial.REJECTED: "/rejected",
    AccessDenial.BLOCKED: "/blocked",
    AccessDenial.INSUFFICIENT_CREDITS: "/blocked",
    AccessDenial.ADMIN_REQUIRED: "/unauthorized",
}

_ERRORS: dict[AccessDenial, type[AuthorizationError]] = {
    AccessDenial.PENDING: AccountPendingError,
    AccessDenial.REJECTED: AccountRejectedError,
    AccessDenial.BLOCKED: AccountBlockedError,
    AccessDenial.INSUFFICIENT_CREDITS: InsufficientCreditsError,
    AccessDenial.ADMIN_REQUIRED: AdminRequiredError,
}


@dataclass(frozen=True)
class AccessVerdict:
    """Outcome of a policy predicate.

    Attributes:
        allowed: Whether access is granted.
        denial: Why access was denied. None when allowed.
    """

    allowed: bool
    denial: AccessDenial | None = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = AccessVerdict(allowed=True)


def _deny(denial: AccessDenial) -> AccessVerdict:
    return AccessVerdict(allowed=False, denial=denial)


def can_authenticate(subject: AccessSubject) -> AccessVerdict:
    """Whether the subject may sign in at all.

    Only REJECTED accounts are refused. PENDING and BLOCKED users sign in
    and are then routed to their explanation page.
    """
    if subject.status == UserStatus.REJECTED:
        return _deny(AccessDenial.REJECTED)
    return ALLOW


def can_enter_approved_area(subject: AccessSubject) -> AccessVerdict:
    """Whether the subject may enter the approved-only area.

    Checks run in order: pending, rejected, then blocked (status BLOCKED or
    no credits left).
    """
    if subject.status == UserStatus.PENDING:
        return _deny(AccessDenial.PENDING)
    if subject.status == UserStatus.REJECTED:
        return _deny(AccessDenial.REJECTED)
    if subject.status == UserStatus.BLOCKED or subject.credits <= 0:
        return _deny(AccessDenial.BLOCKED)
    return ALLOW


def can_use_credited_capability(subject: AccessSubject) -> AccessVerdict:
    """Whether the subject may use a credit-metered capability.

    Same as the approved area except that an APPROVED user with 0 credits
    gets the more specific INSUFFICIENT_CREDITS denial.
    """
    if subject.status == UserStatus.PENDING:
        return _deny(AccessDenial.PENDING)
    if subject.status == UserStatus.REJECTED:
        return _deny(AccessDenial.REJECTED)
    if subject.status == UserStatus.BLOCKED:
        return _deny(AccessDenial.BLOCKED)
    if subject.credits <= 0:
        return _deny(AccessDenial.INSUFFICIENT_CREDITS)
    return ALLOW


def can_administer(subject: AccessSubject) -> AccessVerdict:
    """Whether the subject may use admin operations. Credits are irrelevant."""
    if subject.role == UserRole.ADMIN:
        return ALLOW
    return _deny(AccessDenial.ADMIN_REQUIRED)


def enforce(verdict: AccessVerdict) -> None:
    """Raise the AuthorizationError matching a denied verdict.

    Raises:
        AuthorizationError: Subclass chosen by verdict.denial.
    """
    if verdict.allowed or verdict.denial is None:
        return
    raise _ERRORS[verdict.denial]()
