"""Repository for credit ledger entries.

The credit_logs table is append-only: this repository exposes create and
read operations only.
"""

import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from tollgate.models.credit_log import CreditLog, CreditLogType
from tollgate.models.user import User


class CreditLogRepository:
    """Stateless repository for CreditLog operations.

    All methods are static. Pass an AsyncSession for every call so the
    caller controls transaction boundaries.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        amount: int,
        log_type: CreditLogType,
        reason: str | None = None,
        admin_id: uuid.UUID | None = None,
    ) -> CreditLog:
        """Append one ledger entry.

        Args:
            db: Async database session.
            user_id: Affected user.
            amount: Signed credit delta actually applied.
            log_type: Entry classification.
            reason: Human-readable reason.
            admin_id: Acting admin. None for system-caused entries.

        Returns:
            Created CreditLog with database-generated fields.
        """
        entry = CreditLog(
            user_id=user_id,
            admin_id=admin_id,
            amount=amount,
            type=CreditLogType(log_type).value,
            reason=reason,
        )
        db.add(entry)
        await db.flush()
        await db.refresh(entry)
        return entry

    @staticmethod
    async def list_by_user(
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        offset: int = 0,
        limit: int = 20,
        log_type: CreditLogType | None = None,
    ) -> tuple[list[tuple[CreditLog, str | None]], int]:
        """List a user's ledger entries, newest first, with admin email.

        Args:
            db: Async database session.
            user_id: User to query entries for.
            offset: Number of records to skip.
            limit: Maximum records to return.
            log_type: Optional type filter.

        Returns:
            Tuple of ([(entry, admin email or None), ...], total count).
        """
        conditions = [CreditLog.user_id == user_id]
        if log_type is not None:
            conditions.append(CreditLog.type == CreditLogType(log_type).value)

        count_stmt = select(func.count()).select_from(CreditLog).where(*conditions)
        total = (await db.execute(count_stmt)).scalar_one()

        admin = aliased(User)
        data_stmt = (
            select(CreditLog, admin.email)
            .outerjoin(admin, CreditLog.admin_id == admin.id)
            .where(*conditions)
            .order_by(CreditLog.created_at.desc(), CreditLog.id)
            .offset(offset)
            .limit(limit)
        )
        result = await db.execute(data_stmt)
        rows = [(entry, admin_email) for entry, admin_email in result.all()]
        return rows, total

    @staticmethod
    async def sum_by_user(db: AsyncSession, user_id: uuid.UUID) -> int:
        """Sum of all ledger amounts for a user."""
        stmt = select(func.coalesce(func.sum(CreditLog.amount), 0)).where(
            CreditLog.user_id == user_id
        )
        return int((await db.execute(stmt)).scalar_one())

    @staticmethod
    async def count_since(db: AsyncSession, since: datetime) -> int:
        """Count entries created at or after since."""
        stmt = (
            select(func.count())
            .select_from(CreditLog)
            .where(CreditLog.created_at >= since)
        )
        return (await db.execute(stmt)).scalar_one()

    @staticmethod
    async def count(db: AsyncSession) -> int:
        """Count all ledger entries."""
        stmt = select(func.count()).select_from(CreditLog)
        return (await db.execute(stmt)).scalar_one()
