"""Daily credit deduction batch.

Once per day (scheduler, cron endpoint or manual admin trigger) every
APPROVED user with a positive balance loses one credit. Users reaching 0
are blocked by the ledger engine in the same transaction.

Each user is processed in its own session and transaction, bounded by
STORE_TIMEOUT_SECONDS. A failure for one user is recorded and the batch
moves on; users already committed stay committed.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tollgate.core.config import settings
from tollgate.models.credit_log import CreditLogType
from tollgate.models.user import UserStatus
from tollgate.repositories.user_repository import UserRepository
from tollgate.services.credit_ledger import CreditLedgerService
from tollgate.services.session_claims import as_utc

logger = structlog.get_logger()

DAILY_DEDUCTION_REASON = "Daily automatic credit deduction"
DAILY_DEDUCTION_AMOUNT = -1


@dataclass(frozen=True)
class ProcessedUser:
    """One user the batch deducted from."""

    user_id: uuid.UUID
    email: str
    previous_credits: int
    new_credits: int
    blocked: bool


@dataclass(frozen=True)
class DeductionError:
    """One user the batch failed to process.

    user_id and email are None for the aggregate selection failure.
    """

    message: str
    user_id: uuid.UUID | None = None
    email: str | None = None


@dataclass
class DeductionResult:
    """Outcome of one batch run.

    Attributes:
        started_at: Batch start (also the timestamp recorded on each user).
        finished_at: Batch end. None while running.
        total_processed: Users deducted and committed.
        total_blocked: Processed users that transitioned to BLOCKED.
        total_skipped: Selected users no longer eligible under the lock.
        errors: Per-user failures, in processing order.
        processed_users: Per-user details for processed users.
    """

    started_at: datetime
    finished_at: datetime | None = None
    total_processed: int = 0
    total_blocked: int = 0
    total_skipped: int = 0
    errors: list[DeductionError] = field(default_factory=list)
    processed_users: list[ProcessedUser] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class DeductionStats:
    """Monitoring view of the next run."""

    eligible_for_deduction: int
    approved_users: int
    approved_credits: int
    blocked_users: int
    blocked_credits: int
    last_run: datetime | None


def start_of_day(moment: datetime) -> datetime:
    """Midnight UTC of the day containing moment."""
    return as_utc(moment).astimezone(UTC).replace(
        hour=0, minute=0, second=0, microsecond=0
    )


class DailyDeductionService:
    """Runs the daily deduction against the ledger.

    Args:
        session_factory: Factory for the short-lived sessions the batch
            opens (one for selection, one per user).
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def run(self, now: datetime | None = None) -> DeductionResult:
        """Deduct one credit from every eligible user.

        Never raises for store failures: a failed selection yields a single
        aggregate error, a failed user yields one error for that user.

        Args:
            now: Batch timestamp. Defaults to the current UTC time.

        Returns:
            DeductionResult with totals, per-user details and errors.
        """
        now = now or datetime.now(UTC)
        result = DeductionResult(started_at=now)
        log = logger.bind(batch="daily_deduction", started_at=now.isoformat())
        log.info("daily_deduction_started")

        try:
            candidates = await self._select_candidates(now)
        except Exception as exc:  # noqa: BLE001
            log.exception("daily_deduction_selection_failed")
            result.errors.append(
                DeductionError(message=f"Failed to select eligible users: {exc}")
            )
            result.finished_at = datetime.now(UTC)
            return result

        log.info("daily_deduction_candidates", count=len(candidates))

        for user_id, email in candidates:
            try:
                processed = await asyncio.wait_for(
                    self._deduct_user(user_id, now),
                    timeout=settings.store_timeout_seconds,
                )
            except TimeoutError:
                message = (
                    f"Failed to process user {email}: timed out after "
                    f"{settings.store_timeout_seconds}s"
                )
                log.warning("daily_deduction_user_timeout", user_id=str(user_id))
                result.errors.append(
                    DeductionError(message=message, user_id=user_id, email=email)
                )
                continue
            except Exception as exc:  # noqa: BLE001
                log.exception("daily_deduction_user_failed", user_id=str(user_id))
                result.errors.append(
                    DeductionError(
                        message=f"Failed to process user {email}: {exc}",
                        user_id=user_id,
                        email=email,
                    )
                )
                continue

            if processed is None:
                result.total_skipped += 1
                continue

            result.total_processed += 1
            result.processed_users.append(processed)
            if processed.blocked:
                result.total_blocked += 1
                log.info("user_blocked", user_id=str(user_id))

        result.finished_at = datetime.now(UTC)
        log.info(
            "daily_deduction_finished",
            processed=result.total_processed,
            blocked=result.total_blocked,
            skipped=result.total_skipped,
            errors=len(result.errors),
        )
        return result

    async def get_deduction_stats(self) -> DeductionStats:
        """Eligible count and APPROVED/BLOCKED breakdown for monitoring."""
        async with self._session_factory() as db:
            eligible = await UserRepository.count_eligible_for_deduction(db)
            breakdown = await UserRepository.status_breakdown(db)
            last_run = await UserRepository.latest_credit_deduction(db)

        approved_users, approved_credits = breakdown[UserStatus.APPROVED.value]
        blocked_users, blocked_credits = breakdown[UserStatus.BLOCKED.value]
        return DeductionStats(
            eligible_for_deduction=eligible,
            approved_users=approved_users,
            approved_credits=approved_credits,
            blocked_users=blocked_users,
            blocked_credits=blocked_credits,
            last_run=as_utc(last_run) if last_run is not None else None,
        )

    async def _select_candidates(self, now: datetime) -> list[tuple[uuid.UUID, str]]:
        not_deducted_since = (
            start_of_day(now) if settings.daily_deduction_same_day_guard else None
        )
        async with self._session_factory() as db:
            return await UserRepository.list_deduction_candidates(
                db,
                not_deducted_since=not_deducted_since,
                limit=settings.daily_deduction_max_users,
            )

    async def _deduct_user(
        self, user_id: uuid.UUID, now: datetime
    ) -> ProcessedUser | None:
        """Deduct from one user in its own transaction.

        Returns:
            ProcessedUser, or None when the user is no longer eligible once
            its row is locked.
        """
        async with self._session_factory() as db, db.begin():
            user = await UserRepository.get_by_id_for_update(db, user_id)
            if (
                user is None
                or user.status != UserStatus.APPROVED
                or user.credits <= 0
            ):
                return None
            if (
                settings.daily_deduction_same_day_guard
                and user.last_credit_deduction is not None
                and as_utc(user.last_credit_deduction) >= start_of_day(now)
            ):
                return None

            ledger = CreditLedgerService(db)
            applied = await ledger.apply_to_locked_user(
                user,
                DAILY_DEDUCTION_AMOUNT,
                reason=DAILY_DEDUCTION_REASON,
                log_type=CreditLogType.DAILY_DEDUCTION,
                now=now,
            )
            return ProcessedUser(
                user_id=user.id,
                email=user.email,
                previous_credits=applied.previous_credits,
                new_credits=applied.new_credits,
                blocked=applied.blocked,
            )
