"""Zero-credit auto-block sweep.

Corrective pass that blocks APPROVED users whose balance already sits at
0 (for example after a partial failure or a direct data fix). The ledger
engine blocks users as they reach 0, so on a healthy system this finds
nothing. Running it twice blocks nobody the second time.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.core.errors import StoreError
from tollgate.models.credit_log import CreditLogType
from tollgate.models.user import UserStatus
from tollgate.repositories.credit_log_repository import CreditLogRepository
from tollgate.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

AUTO_BLOCK_REASON = "Automatic blocking due to zero credits"


@dataclass(frozen=True)
class BlockedUser:
    user_id: uuid.UUID
    email: str


@dataclass
class SweepResult:
    """Users the sweep blocked."""

    blocked_count: int = 0
    blocked_users: list[BlockedUser] = field(default_factory=list)


class AutoBlockService:
    """Blocks APPROVED users with zero credits.

    Args:
        db: Async database session. The caller owns the transaction.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def sweep_zero_credit_users(
        self,
        scope_user_id: uuid.UUID | None = None,
        *,
        now: datetime | None = None,
    ) -> SweepResult:
        """Block every APPROVED user with 0 credits.

        Each blocked user gets one zero-amount DEDUCTED log entry with no
        admin attached.

        Args:
            scope_user_id: Only consider this user.
            now: Timestamp to record. Defaults to the current UTC time.

        Returns:
            SweepResult; empty when nothing needed blocking.

        Raises:
            StoreError: The store failed.
        """
        timestamp = now or datetime.now(UTC)
        result = SweepResult()
        try:
            users = await UserRepository.list_approved_zero_credit_for_update(
                self._db, user_id=scope_user_id
            )
            for user in users:
                user.status = UserStatus.BLOCKED.value
                user.updated_at = timestamp
                await CreditLogRepository.create(
                    self._db,
                    user_id=user.id,
                    amount=0,
                    log_type=CreditLogType.DEDUCTED,
                    reason=AUTO_BLOCK_REASON,
                )
                result.blocked_users.append(BlockedUser(user_id=user.id, email=user.email))
        except SQLAlchemyError as exc:
            logger.exception("Zero-credit sweep failed")
            raise StoreError() from exc

        result.blocked_count = len(result.blocked_users)
        if result.blocked_count:
            logger.info("Blocked %d user(s) with zero credits", result.blocked_count)
        return result
