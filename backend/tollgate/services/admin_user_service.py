"""Admin user management service.

Business logic behind the /admin endpoints: listing users with derived
fields, credit adjustments, status changes (single and batch), credit
history and platform statistics.

Status changes here are admin-directed and deliberately write no
CreditLog row; they emit an audit event instead. Credit adjustments go
through the ledger engine and so always write one.
"""

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.core.audit import record_admin_action
from tollgate.core.errors import (
    ConflictError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from tollgate.models.credit_log import CreditLog
from tollgate.models.user import User, UserStatus
from tollgate.repositories.credit_log_repository import CreditLogRepository
from tollgate.repositories.user_repository import SORTABLE_COLUMNS, UserRepository
from tollgate.services.credit_ledger import CreditLedgerService, LedgerResult
from tollgate.services.session_claims import as_utc

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_WINDOW = timedelta(days=7)


@dataclass(frozen=True)
class UserOverview:
    """A user row plus the fields the admin table derives from it."""

    user: User
    days_since_registration: int
    estimated_expiry_date: datetime | None


@dataclass(frozen=True)
class CreditLogView:
    entry: CreditLog
    admin_email: str | None


@dataclass(frozen=True)
class PlatformStats:
    """Counts for the admin dashboard."""

    total_users: int
    pending_users: int
    approved_users: int
    rejected_users: int
    blocked_users: int
    active_users: int
    total_credits: int
    average_credits_per_user: float
    new_registrations: int
    credit_transactions: int


@dataclass(frozen=True)
class IntegrityCounts:
    total_users: int
    total_credit_logs: int


def days_since_registration(user: User, now: datetime) -> int:
    """Whole days between registration and now."""
    return (now - as_utc(user.registration_date)).days


def estimated_expiry_date(user: User, now: datetime) -> datetime | None:
    """When the balance runs out at one credit per day.

    Only meaningful for APPROVED users with credits; None otherwise.
    """
    if user.status != UserStatus.APPROVED or user.credits <= 0:
        return None
    return now + timedelta(days=user.credits)


def overview(user: User, now: datetime | None = None) -> UserOverview:
    now = now or datetime.now(UTC)
    return UserOverview(
        user=user,
        days_since_registration=days_since_registration(user, now),
        estimated_expiry_date=estimated_expiry_date(user, now),
    )


class AdminUserService:
    """Admin operations on users.

    Args:
        db: Async database session. The caller owns the transaction.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    # -----------------------------------------------------------------------
    # Listing
    # -----------------------------------------------------------------------

    async def list_users(
        self,
        *,
        page: int = 1,
        per_page: int = 10,
        status: UserStatus | None = None,
        search: str | None = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> tuple[list[UserOverview], int]:
        """List users for the admin table.

        Returns:
            Tuple of (user overviews, total count matching the filters).

        Raises:
            ValidationError: Unknown sort column or sort order.
        """
        if sort_by not in SORTABLE_COLUMNS:
            raise ValidationError(
                f"sort_by must be one of: {', '.join(sorted(SORTABLE_COLUMNS))}"
            )
        if sort_order not in ("asc", "desc"):
            raise ValidationError("sort_order must be 'asc' or 'desc'")

        users, total = await UserRepository.list_users(
            self._db,
            status=status,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            offset=(page - 1) * per_page,
            limit=per_page,
        )
        now = datetime.now(UTC)
        return [overview(user, now) for user in users], total

    async def list_credit_logs(
        self,
        user_id: uuid.UUID,
        *,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[CreditLogView], int]:
        """A user's credit history, newest first.

        Raises:
            NotFoundError: User does not exist.
        """
        if await UserRepository.get_by_id(self._db, user_id) is None:
            raise NotFoundError("User", str(user_id))
        rows, total = await CreditLogRepository.list_by_user(
            self._db,
            user_id,
            offset=(page - 1) * per_page,
            limit=per_page,
        )
        return [CreditLogView(entry=entry, admin_email=email) for entry, email in rows], total

    # -----------------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------------

    async def adjust_credits(
        self,
        user_id: uuid.UUID,
        amount: int,
        *,
        admin: User,
        reason: str | None = None,
    ) -> LedgerResult:
        """Apply an admin credit adjustment through the ledger engine.

        Raises:
            ValidationError: Amount out of range.
            NotFoundError: User does not exist.
            StoreError: The store failed.
        """
        result = await CreditLedgerService(self._db).apply_credit_delta(
            user_id,
            amount,
            reason=reason,
            acting_admin_id=admin.id,
        )
        record_admin_action(
            "user.credits_adjusted",
            admin_id=admin.id,
            entity_type="user",
            entity_id=user_id,
            amount=result.log_entry.amount,
            previous_credits=result.previous_credits,
            new_credits=result.new_credits,
            previous_status=result.previous_status.value,
            new_status=result.user.status,
        )
        return result

    async def change_status(
        self,
        user_id: uuid.UUID,
        status: UserStatus,
        *,
        admin: User,
    ) -> User:
        """Set a user's status directly.

        Raises:
            NotFoundError: User does not exist.
            ConflictError: CANNOT_MODIFY_SELF when the admin targets
                their own account.
            StoreError: The store failed.
        """
        now = datetime.now(UTC)
        try:
            user = await UserRepository.get_by_id_for_update(self._db, user_id)
            if user is None:
                raise NotFoundError("User", str(user_id))
            if user.id == admin.id:
                raise _self_modification_error()

            previous_status = user.status
            user = await UserRepository.set_status(
                self._db, user, status, invalidated_at=now
            )
        except SQLAlchemyError as exc:
            logger.exception("Status change failed for user %s", user_id)
            raise StoreError() from exc

        record_admin_action(
            "user.status_changed",
            admin_id=admin.id,
            entity_type="user",
            entity_id=user.id,
            previous_status=previous_status,
            new_status=user.status,
        )
        return user

    async def change_status_batch(
        self,
        user_ids: Sequence[uuid.UUID],
        status: UserStatus,
        *,
        admin: User,
    ) -> list[User]:
        """Set the status of many users in one transaction.

        All-or-nothing: an unknown id or the admin's own id fails the
        whole batch before anything is written.

        Raises:
            ValidationError: Empty id list.
            ConflictError: CANNOT_MODIFY_SELF when the list contains the
                admin's own id.
            NotFoundError: Any id does not exist.
            StoreError: The store failed.
        """
        unique_ids = list(dict.fromkeys(user_ids))
        if not unique_ids:
            raise ValidationError("At least one user id is required")
        if admin.id in unique_ids:
            raise _self_modification_error()

        now = datetime.now(UTC)
        try:
            users = await UserRepository.get_many_for_update(self._db, unique_ids)
            if len(users) != len(unique_ids):
                found = {user.id for user in users}
                missing = [str(uid) for uid in unique_ids if uid not in found]
                raise NotFoundError("User", ", ".join(missing))

            previous = {user.id: user.status for user in users}
            updated = [
                await UserRepository.set_status(
                    self._db, user, status, invalidated_at=now
                )
                for user in users
            ]
        except SQLAlchemyError as exc:
            logger.exception("Batch status change failed")
            raise StoreError() from exc

        record_admin_action(
            "user.status_batch_changed",
            admin_id=admin.id,
            entity_type="user",
            new_status=UserStatus(status).value,
            count=len(updated),
            changes={str(uid): prev for uid, prev in previous.items()},
        )
        return updated

    # -----------------------------------------------------------------------
    # Statistics
    # -----------------------------------------------------------------------

    async def get_stats(self, now: datetime | None = None) -> PlatformStats:
        """User counts per status, credit totals and 7-day activity."""
        now = now or datetime.now(UTC)
        since = now - RECENT_ACTIVITY_WINDOW

        breakdown = await UserRepository.status_breakdown(self._db)
        total_users = sum(count for count, _ in breakdown.values())
        total_credits = sum(credits for _, credits in breakdown.values())
        average = round(total_credits / total_users, 2) if total_users else 0.0

        return PlatformStats(
            total_users=total_users,
            pending_users=breakdown[UserStatus.PENDING.value][0],
            approved_users=breakdown[UserStatus.APPROVED.value][0],
            rejected_users=breakdown[UserStatus.REJECTED.value][0],
            blocked_users=breakdown[UserStatus.BLOCKED.value][0],
            active_users=await UserRepository.count_active(self._db),
            total_credits=total_credits,
            average_credits_per_user=average,
            new_registrations=await UserRepository.count_registered_since(
                self._db, since
            ),
            credit_transactions=await CreditLogRepository.count_since(self._db, since),
        )

    async def get_integrity(self) -> IntegrityCounts:
        return IntegrityCounts(
            total_users=await UserRepository.count(self._db),
            total_credit_logs=await CreditLogRepository.count(self._db),
        )


def _self_modification_error() -> ConflictError:
    return ConflictError(
        code="CANNOT_MODIFY_SELF",
        message="Cannot change your own status",
    )
