"""Tests for the access policy predicates and enforce().

No database: subjects are plain records with status, role and credits.
"""

from dataclasses import dataclass

import pytest
from hypothesis import given
from hypothesis import strategies as st

from tollgate.core.errors import (
    AccountBlockedError,
    AccountPendingError,
    AccountRejectedError,
    AdminRequiredError,
    InsufficientCreditsError,
)
from tollgate.models.user import UserRole, UserStatus
from tollgate.services.access_policy import (
    ALLOW,
    AccessDenial,
    AccessVerdict,
    can_administer,
    can_authenticate,
    can_enter_approved_area,
    can_use_credited_capability,
    enforce,
)


@dataclass
class _Subject:
    status: str
    role: str = UserRole.USER.value
    credits: int = 0


_subjects = st.builds(
    _Subject,
    status=st.sampled_from([s.value for s in UserStatus]),
    role=st.sampled_from([r.value for r in UserRole]),
    credits=st.integers(min_value=0, max_value=1000),
)


# =============================================================================
# can_authenticate
# =============================================================================


class TestCanAuthenticate:
    def test_only_rejected_is_refused(self) -> None:
        for status in UserStatus:
            verdict = can_authenticate(_Subject(status=status.value))
            assert verdict.allowed is (status != UserStatus.REJECTED)

    def test_rejected_denial(self) -> None:
        verdict = can_authenticate(_Subject(status="REJECTED"))
        assert verdict.denial == AccessDenial.REJECTED


# =============================================================================
# can_enter_approved_area
# =============================================================================


class TestCanEnterApprovedArea:
    """Status checks run before the credit check."""

    @pytest.mark.parametrize(
        ("status", "credits", "denial"),
        [
            ("PENDING", 0, AccessDenial.PENDING),
            ("PENDING", 5, AccessDenial.PENDING),
            ("REJECTED", 5, AccessDenial.REJECTED),
            ("BLOCKED", 0, AccessDenial.BLOCKED),
            ("BLOCKED", 5, AccessDenial.BLOCKED),
            ("APPROVED", 0, AccessDenial.BLOCKED),
        ],
    )
    def test_denials(self, status: str, credits: int, denial: AccessDenial) -> None:
        verdict = can_enter_approved_area(_Subject(status=status, credits=credits))
        assert verdict.allowed is False
        assert verdict.denial == denial

    def test_approved_with_credits_allowed(self) -> None:
        assert can_enter_approved_area(_Subject(status="APPROVED", credits=1)) == ALLOW

    @given(subject=_subjects)
    def test_allowed_iff_approved_with_credits(self, subject: _Subject) -> None:
        verdict = can_enter_approved_area(subject)
        assert verdict.allowed is (
            subject.status == UserStatus.APPROVED and subject.credits > 0
        )


# =============================================================================
# can_use_credited_capability
# =============================================================================


class TestCanUseCreditedCapability:
    def test_approved_zero_credits_is_insufficient(self) -> None:
        verdict = can_use_credited_capability(_Subject(status="APPROVED", credits=0))
        assert verdict.denial == AccessDenial.INSUFFICIENT_CREDITS

    def test_blocked_is_blocked(self) -> None:
        verdict = can_use_credited_capability(_Subject(status="BLOCKED", credits=0))
        assert verdict.denial == AccessDenial.BLOCKED

    def test_admin_role_does_not_bypass_credits(self) -> None:
        subject = _Subject(status="APPROVED", role="ADMIN", credits=0)
        assert can_use_credited_capability(subject).allowed is False

    @given(subject=_subjects)
    def test_agrees_with_approved_area(self, subject: _Subject) -> None:
        assert (
            can_use_credited_capability(subject).allowed
            == can_enter_approved_area(subject).allowed
        )


# =============================================================================
# can_administer
# =============================================================================


class TestCanAdminister:
    @given(subject=_subjects)
    def test_depends_only_on_role(self, subject: _Subject) -> None:
        assert can_administer(subject).allowed is (subject.role == UserRole.ADMIN)

    def test_denial_redirects_to_unauthorized(self) -> None:
        verdict = can_administer(_Subject(status="APPROVED", credits=10))
        assert verdict.denial == AccessDenial.ADMIN_REQUIRED
        assert verdict.denial.redirect_path == "/unauthorized"


# =============================================================================
# enforce
# =============================================================================


class TestEnforce:
    def test_allowed_returns_none(self) -> None:
        assert enforce(ALLOW) is None

    @pytest.mark.parametrize(
        ("denial", "error", "redirect"),
        [
            (AccessDenial.PENDING, AccountPendingError, "/pending"),
            (AccessDenial.REJECTED, AccountRejectedError, "/rejected"),
            (AccessDenial.BLOCKED, AccountBlockedError, "/blocked"),
            (AccessDenial.INSUFFICIENT_CREDITS, InsufficientCreditsError, "/blocked"),
            (AccessDenial.ADMIN_REQUIRED, AdminRequiredError, "/unauthorized"),
        ],
    )
    def test_raises_matching_error(
        self, denial: AccessDenial, error: type, redirect: str
    ) -> None:
        with pytest.raises(error) as exc_info:
            enforce(AccessVerdict(allowed=False, denial=denial))

        assert exc_info.value.status_code == 403
        assert exc_info.value.redirect_path == redirect
        assert exc_info.value.details == [{"redirect": redirect}]
        assert denial.redirect_path == redirect

    def test_verdict_truthiness(self) -> None:
        assert bool(ALLOW) is True
        assert bool(AccessVerdict(allowed=False, denial=AccessDenial.PENDING)) is False
