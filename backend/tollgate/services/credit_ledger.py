"""Credit ledger engine.

Single authority for changing a user's credit balance. Every change:

1. Locks the user row (SELECT ... FOR UPDATE) so concurrent changes to the
   same user serialize.
2. Clamps the new balance at 0.
3. Derives the credit-driven status transition (BLOCKED <-> APPROVED).
4. Writes the new balance with a guarded UPDATE that only matches the
   balance and status it was computed from. If the row moved (a store
   without row locks), it is re-read and the delta recomputed.
5. Appends exactly one CreditLog row recording the delta actually applied.

The row update and the log insert are flushed inside the caller's
transaction. The engine never commits: the caller's boundary commits both
or neither.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.core.config import settings
from tollgate.core.errors import NotFoundError, StoreError, ValidationError
from tollgate.models.credit_log import CreditLog, CreditLogType
from tollgate.models.user import User, UserStatus
from tollgate.repositories.credit_log_repository import CreditLogRepository
from tollgate.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

DEFAULT_ADDED_REASON = "Credits added by admin"
DEFAULT_DEDUCTED_REASON = "Credits deducted by admin"
MAX_REASON_LENGTH = 255
MAX_WRITE_ATTEMPTS = 5


@dataclass(frozen=True)
class CreditOutcome:
    """Balance and status after a delta, before anything is written."""

    new_credits: int
    new_status: UserStatus


@dataclass(frozen=True)
class LedgerResult:
    """Result of one applied credit delta.

    Attributes:
        user: The updated user row.
        log_entry: The CreditLog row written for this change.
        previous_credits: Balance before the change.
        previous_status: Status before the change.
    """

    user: User
    log_entry: CreditLog
    previous_credits: int
    previous_status: UserStatus

    @property
    def new_credits(self) -> int:
        return self.user.credits

    @property
    def blocked(self) -> bool:
        """True when this change moved the user into BLOCKED."""
        return (
            self.previous_status != UserStatus.BLOCKED
            and self.user.status == UserStatus.BLOCKED
        )

    @property
    def unblocked(self) -> bool:
        """True when this change restored a BLOCKED user to APPROVED."""
        return (
            self.previous_status == UserStatus.BLOCKED
            and self.user.status == UserStatus.APPROVED
        )


def derive_credit_outcome(
    status: UserStatus | str, credits: int, amount: int
) -> CreditOutcome:
    """Compute the balance and status that a delta produces.

    Pure function; no I/O.

    Rules:
        - new balance = max(0, credits + amount)
        - BLOCKED with a positive new balance -> APPROVED
        - APPROVED reaching 0 -> BLOCKED
        - every other status is left alone (PENDING and REJECTED users can
          hold credits without being approved by them)

    Args:
        status: Current status.
        credits: Current balance.
        amount: Signed delta.

    Returns:
        CreditOutcome with the new balance and status.
    """
    current = UserStatus(status)
    new_credits = max(0, credits + amount)

    new_status = current
    if current == UserStatus.BLOCKED and new_credits > 0:
        new_status = UserStatus.APPROVED
    elif current == UserStatus.APPROVED and new_credits == 0:
        new_status = UserStatus.BLOCKED

    return CreditOutcome(new_credits=new_credits, new_status=new_status)


def validate_credit_amount(amount: object) -> int:
    """Check that amount is an integer within the adjustment limit.

    Raises:
        ValidationError: If amount is not an int (bools included) or its
            magnitude exceeds settings.credit_adjustment_limit.
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("Credit amount must be an integer")
    limit = settings.credit_adjustment_limit
    if abs(amount) > limit:
        raise ValidationError(
            f"Credit amount must be between -{limit} and {limit}",
            details=[{"field": "amount", "value": amount}],
        )
    return amount


def describe_adjustment(amount: int) -> str:
    """Human-readable summary of an admin adjustment."""
    verb = "added" if amount > 0 else "deducted"
    return f"{abs(amount)} credits {verb} successfully"


class CreditLedgerService:
    """Applies credit deltas to users.

    Args:
        db: Async database session. The caller owns the transaction.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def apply_credit_delta(
        self,
        user_id: uuid.UUID,
        amount: int,
        *,
        reason: str | None = None,
        acting_admin_id: uuid.UUID | None = None,
        log_type: CreditLogType | None = None,
        now: datetime | None = None,
    ) -> LedgerResult:
        """Lock the user and apply a signed credit delta.

        Args:
            user_id: User whose balance changes.
            amount: Signed delta; magnitude bounded by the adjustment limit.
            reason: Log reason. Defaults to the admin add/deduct reason.
            acting_admin_id: Admin performing the change. None = system.
            log_type: Explicit entry type. Defaults to ADDED for positive
                amounts and DEDUCTED otherwise.
            now: Timestamp to record. Defaults to the current UTC time.

        Returns:
            LedgerResult describing the change.

        Raises:
            ValidationError: Bad amount or reason.
            NotFoundError: User does not exist.
            StoreError: The store failed; nothing from this call persists
                once the caller rolls back.
        """
        validate_credit_amount(amount)
        try:
            user = await UserRepository.get_by_id_for_update(self._db, user_id)
            if user is None:
                raise NotFoundError("User", str(user_id))
            return await self._apply(
                user,
                amount,
                reason=reason,
                acting_admin_id=acting_admin_id,
                log_type=log_type,
                now=now,
            )
        except SQLAlchemyError as exc:
            logger.exception("Credit delta failed for user %s", user_id)
            raise StoreError() from exc

    async def apply_to_locked_user(
        self,
        user: User,
        amount: int,
        *,
        reason: str | None = None,
        acting_admin_id: uuid.UUID | None = None,
        log_type: CreditLogType | None = None,
        now: datetime | None = None,
    ) -> LedgerResult:
        """Apply a delta to a user whose row lock the caller already holds.

        Used by the daily deduction, which re-checks eligibility under the
        lock before deciding to deduct.

        Raises:
            ValidationError: Bad amount or reason.
            StoreError: The store failed.
        """
        validate_credit_amount(amount)
        try:
            return await self._apply(
                user,
                amount,
                reason=reason,
                acting_admin_id=acting_admin_id,
                log_type=log_type,
                now=now,
            )
        except SQLAlchemyError as exc:
            logger.exception("Credit delta failed for user %s", user.id)
            raise StoreError() from exc

    async def _apply(
        self,
        user: User,
        amount: int,
        *,
        reason: str | None,
        acting_admin_id: uuid.UUID | None,
        log_type: CreditLogType | None,
        now: datetime | None,
    ) -> LedgerResult:
        if reason is not None:
            reason = reason.strip()
            if len(reason) > MAX_REASON_LENGTH:
                raise ValidationError(
                    f"Reason must be at most {MAX_REASON_LENGTH} characters"
                )
        if not reason:
            reason = DEFAULT_ADDED_REASON if amount > 0 else DEFAULT_DEDUCTED_REASON
        if log_type is None:
            log_type = CreditLogType.ADDED if amount > 0 else CreditLogType.DEDUCTED
        timestamp = now or datetime.now(UTC)

        changes: dict[str, datetime] = {"updated_at": timestamp}
        if log_type == CreditLogType.DAILY_DEDUCTION:
            changes["last_credit_deduction"] = timestamp
        if acting_admin_id is not None:
            changes["claims_invalidated_before"] = timestamp

        for _attempt in range(MAX_WRITE_ATTEMPTS):
            previous_credits = user.credits
            previous_status = UserStatus(user.status)
            outcome = derive_credit_outcome(previous_status, previous_credits, amount)
            written = await UserRepository.compare_and_set_balance(
                self._db,
                user_id=user.id,
                expected_credits=previous_credits,
                expected_status=previous_status,
                new_credits=outcome.new_credits,
                new_status=outcome.new_status,
                changes=changes,
            )
            if written:
                break
            logger.info("User %s balance changed concurrently, re-reading", user.id)
            reread = await UserRepository.get_by_id_for_update(self._db, user.id)
            if reread is None:
                raise NotFoundError("User", str(user.id))
            user = reread
        else:
            logger.error(
                "Gave up on credit delta for user %s after %d attempts",
                user.id,
                MAX_WRITE_ATTEMPTS,
            )
            raise StoreError("The balance changed too often to apply the change")

        entry = await CreditLogRepository.create(
            self._db,
            user_id=user.id,
            amount=outcome.new_credits - previous_credits,
            log_type=log_type,
            reason=reason,
            admin_id=acting_admin_id,
        )
        await self._db.refresh(user)

        if outcome.new_status != previous_status:
            logger.info(
                "User %s status %s -> %s (credits %d -> %d)",
                user.id,
                previous_status.value,
                outcome.new_status.value,
                previous_credits,
                outcome.new_credits,
            )

        return LedgerResult(
            user=user,
            log_entry=entry,
            previous_credits=previous_credits,
            previous_status=previous_status,
        )
