"""User and credit ledger response schemas.

Builders (from_orm-style classmethods) live next to the schemas so every
router serializes a User the same way.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from tollgate.models.credit_log import CreditLog
from tollgate.models.user import User
from tollgate.services.admin_user_service import UserOverview, overview


class UserResponse(BaseModel):
    """A user as returned to clients.

    Attributes:
        id: UUID as string.
        email: Lowercase email.
        status: PENDING, APPROVED, REJECTED or BLOCKED.
        role: USER or ADMIN.
        credits: Current balance.
        registration_date: When the account registered.
        last_credit_deduction: Last daily deduction, if any.
        updated_at: Last modification.
    """

    model_config = ConfigDict(extra="forbid")

    id: str
    email: str
    status: str
    role: str
    credits: int
    registration_date: datetime
    last_credit_deduction: datetime | None = None
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=str(user.id),
            email=user.email,
            status=user.status,
            role=user.role,
            credits=user.credits,
            registration_date=user.registration_date,
            last_credit_deduction=user.last_credit_deduction,
            updated_at=user.updated_at,
        )


class UserOverviewResponse(UserResponse):
    """UserResponse plus derived fields for account and admin views.

    Attributes:
        days_since_registration: Whole days since registration.
        estimated_expiry_date: When credits run out at one per day. None
            unless APPROVED with credits.
    """

    days_since_registration: int
    estimated_expiry_date: datetime | None = None

    @classmethod
    def from_overview(cls, item: UserOverview) -> "UserOverviewResponse":
        base = UserResponse.from_user(item.user).model_dump()
        return cls(
            **base,
            days_since_registration=item.days_since_registration,
            estimated_expiry_date=item.estimated_expiry_date,
        )

    @classmethod
    def from_user(cls, user: User) -> "UserOverviewResponse":
        return cls.from_overview(overview(user))


class CreditLogResponse(BaseModel):
    """One ledger entry.

    Attributes:
        id: UUID as string.
        user_id: Affected user.
        admin_id: Acting admin, None for system entries.
        admin_email: Acting admin's email, when resolved.
        amount: Signed delta actually applied.
        type: ADDED, DEDUCTED or DAILY_DEDUCTION.
        reason: Human-readable reason.
        created_at: Entry timestamp.
    """

    model_config = ConfigDict(extra="forbid")

    id: str
    user_id: str
    admin_id: str | None = None
    admin_email: str | None = None
    amount: int
    type: str
    reason: str | None = None
    created_at: datetime

    @classmethod
    def from_entry(
        cls, entry: CreditLog, *, admin_email: str | None = None
    ) -> "CreditLogResponse":
        return cls(
            id=str(entry.id),
            user_id=str(entry.user_id),
            admin_id=str(entry.admin_id) if entry.admin_id else None,
            admin_email=admin_email,
            amount=entry.amount,
            type=entry.type,
            reason=entry.reason,
            created_at=entry.created_at,
        )
