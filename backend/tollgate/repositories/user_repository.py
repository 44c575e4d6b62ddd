"""Repository for User operations.

Provides database access for the users table. Status and credit changes
that must be ledgered go through CreditLedgerService; this layer only
reads rows, creates accounts, and applies status changes that an admin
makes directly.
"""

import uuid
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.models.user import User, UserRole, UserStatus

# Columns accepted by list_users(sort_by=...).
SORTABLE_COLUMNS: frozenset[str] = frozenset(
    {"created_at", "email", "credits", "status", "registration_date"}
)


class UserRepository:
    """Stateless repository for User table operations.

    All methods are static. Pass an AsyncSession for every call so the
    caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
        """Fetch a user by primary key.

        Args:
            db: Async database session.
            user_id: UUID primary key.

        Returns:
            User if found, None otherwise.
        """
        return await db.get(User, user_id)

    @staticmethod
    async def get_by_id_for_update(
        db: AsyncSession, user_id: uuid.UUID
    ) -> User | None:
        """Fetch a user and take its row lock for the rest of the transaction.

        Concurrent credit mutations for the same user serialize here.
        populate_existing makes sure an identity-map copy is overwritten
        with the locked row's values.

        Args:
            db: Async database session.
            user_id: UUID primary key.

        Returns:
            Locked User if found, None otherwise.
        """
        stmt = (
            select(User)
            .where(User.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """Fetch a user by email address (case-insensitive).

        Args:
            db: Async database session.
            email: Email address to look up.

        Returns:
            User if found, None otherwise.
        """
        stmt = select(User).where(User.email == email.lower())
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_many_for_update(
        db: AsyncSession, user_ids: Sequence[uuid.UUID]
    ) -> list[User]:
        """Lock and return every user in user_ids that exists.

        Rows are locked in id order so two batch updates over overlapping
        sets cannot deadlock.
        """
        stmt = (
            select(User)
            .where(User.id.in_(list(user_ids)))
            .order_by(User.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        password_hash: str | None,
        status: UserStatus = UserStatus.PENDING,
        role: UserRole = UserRole.USER,
        credits: int = 0,
    ) -> User:
        """Create a new user.

        Email is normalized to lowercase before storage. Registration
        always uses the defaults (PENDING, USER, 0 credits); the other
        values exist for admin bootstrap.

        Args:
            db: Async database session.
            email: User email address.
            password_hash: bcrypt hash.
            status: Initial status.
            role: Initial role.
            credits: Initial credit balance.

        Returns:
            Created User with database-generated fields populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If email already exists.
        """
        user = User(
            email=email.lower(),
            password_hash=password_hash,
            status=UserStatus(status).value,
            role=UserRole(role).value,
            credits=credits,
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def set_status(
        db: AsyncSession,
        user: User,
        status: UserStatus,
        *,
        invalidated_at: datetime,
    ) -> User:
        """Apply an admin-directed status change.

        Writes no CreditLog row. Stamps claims_invalidated_before so
        outstanding session claims are re-read on next use.

        Args:
            db: Async database session.
            user: Loaded (ideally locked) user.
            status: New status.
            invalidated_at: Timestamp for claims_invalidated_before.

        Returns:
            The refreshed user.
        """
        user.status = UserStatus(status).value
        user.claims_invalidated_before = invalidated_at
        user.updated_at = invalidated_at
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def compare_and_set_balance(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        expected_credits: int,
        expected_status: UserStatus,
        new_credits: int,
        new_status: UserStatus,
        changes: dict[str, Any],
    ) -> bool:
        """Atomically write a new balance if the row still holds the expected one.

        Uses WHERE credits = :expected AND status = :expected so a
        concurrent change made after the caller's read is never
        overwritten, even on stores that ignore FOR UPDATE.

        Args:
            db: Async database session.
            user_id: User to update.
            expected_credits: Balance the caller computed from.
            expected_status: Status the caller computed from.
            new_credits: Balance to write.
            new_status: Status to write.
            changes: Extra column values (timestamps).

        Returns:
            True if the row was updated, False if it had changed.
        """
        stmt = (
            update(User)
            .where(
                User.id == user_id,
                User.credits == expected_credits,
                User.status == UserStatus(expected_status).value,
            )
            .values(
                credits=new_credits,
                status=UserStatus(new_status).value,
                **changes,
            )
            .returning(User.id)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def list_users(
        db: AsyncSession,
        *,
        status: UserStatus | None = None,
        search: str | None = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[User], int]:
        """List users with filtering, sorting and pagination.

        Args:
            db: Async database session.
            status: Only users with this status.
            search: Case-insensitive email substring.
            sort_by: One of SORTABLE_COLUMNS.
            sort_order: "asc" or "desc".
            offset: Number of records to skip.
            limit: Maximum records to return.

        Returns:
            Tuple of (users list, total count matching the filters).

        Raises:
            ValueError: If sort_by is not a sortable column.
        """
        if sort_by not in SORTABLE_COLUMNS:
            msg = f"Unsupported sort column: {sort_by}"
            raise ValueError(msg)

        conditions = []
        if status is not None:
            conditions.append(User.status == UserStatus(status).value)
        if search:
            conditions.append(User.email.icontains(search, autoescape=True))

        count_stmt = select(func.count()).select_from(User).where(*conditions)
        total = (await db.execute(count_stmt)).scalar_one()

        column = getattr(User, sort_by)
        ordering = column.asc() if sort_order == "asc" else column.desc()
        data_stmt = (
            select(User)
            .where(*conditions)
            .order_by(ordering, User.id)
            .offset(offset)
            .limit(limit)
        )
        result = await db.execute(data_stmt)
        return list(result.scalars().all()), total

    @staticmethod
    async def list_deduction_candidates(
        db: AsyncSession,
        *,
        not_deducted_since: datetime | None = None,
        limit: int | None = None,
    ) -> list[tuple[uuid.UUID, str]]:
        """Select users eligible for the daily deduction.

        Eligible = APPROVED with credits > 0. Only ids and emails are
        returned; each candidate is re-read under lock by the caller.

        Args:
            db: Async database session.
            not_deducted_since: If set, skip users whose last deduction is
                at or after this instant.
            limit: Optional cap on the number of candidates.

        Returns:
            List of (user_id, email), ordered by id.
        """
        stmt = (
            select(User.id, User.email)
            .where(User.status == UserStatus.APPROVED.value, User.credits > 0)
            .order_by(User.id)
        )
        if not_deducted_since is not None:
            stmt = stmt.where(
                (User.last_credit_deduction.is_(None))
                | (User.last_credit_deduction < not_deducted_since)
            )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await db.execute(stmt)
        return [(row.id, row.email) for row in result.all()]

    @staticmethod
    async def list_approved_zero_credit_for_update(
        db: AsyncSession, *, user_id: uuid.UUID | None = None
    ) -> list[User]:
        """Lock and return APPROVED users whose balance is 0.

        Args:
            db: Async database session.
            user_id: Restrict the selection to this user.

        Returns:
            Locked users, ordered by id.
        """
        stmt = (
            select(User)
            .where(User.status == UserStatus.APPROVED.value, User.credits == 0)
            .order_by(User.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if user_id is not None:
            stmt = stmt.where(User.id == user_id)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def count_eligible_for_deduction(db: AsyncSession) -> int:
        """Count users the next daily deduction would select."""
        stmt = (
            select(func.count())
            .select_from(User)
            .where(User.status == UserStatus.APPROVED.value, User.credits > 0)
        )
        return (await db.execute(stmt)).scalar_one()

    @staticmethod
    async def status_breakdown(db: AsyncSession) -> dict[str, tuple[int, int]]:
        """Count users and sum credits per status.

        Returns:
            Mapping of status value to (user count, credit sum). Statuses
            with no users are present with (0, 0).
        """
        stmt = select(
            User.status, func.count(User.id), func.coalesce(func.sum(User.credits), 0)
        ).group_by(User.status)
        result = await db.execute(stmt)
        breakdown = {status.value: (0, 0) for status in UserStatus}
        for status, count, credit_sum in result.all():
            breakdown[status] = (int(count), int(credit_sum))
        return breakdown

    @staticmethod
    async def count_active(db: AsyncSession) -> int:
        """Count APPROVED users with a positive balance."""
        return await UserRepository.count_eligible_for_deduction(db)

    @staticmethod
    async def count_registered_since(db: AsyncSession, since: datetime) -> int:
        """Count users registered at or after since."""
        stmt = (
            select(func.count())
            .select_from(User)
            .where(User.registration_date >= since)
        )
        return (await db.execute(stmt)).scalar_one()

    @staticmethod
    async def count(db: AsyncSession) -> int:
        """Count all users."""
        stmt = select(func.count()).select_from(User)
        return (await db.execute(stmt)).scalar_one()

    @staticmethod
    async def latest_credit_deduction(db: AsyncSession) -> datetime | None:
        """Most recent last_credit_deduction across all users."""
        stmt = select(func.max(User.last_credit_deduction))
        return (await db.execute(stmt)).scalar_one()

    @staticmethod
    async def get_claims_invalidated_before(
        db: AsyncSession, user_id: uuid.UUID
    ) -> tuple[bool, datetime | None]:
        """Read only the claims invalidation stamp.

        Returns:
            Tuple of (user exists, claims_invalidated_before).
        """
        stmt = select(User.id, User.claims_invalidated_before).where(User.id == user_id)
        row = (await db.execute(stmt)).one_or_none()
        if row is None:
            return False, None
        return True, row.claims_invalidated_before
