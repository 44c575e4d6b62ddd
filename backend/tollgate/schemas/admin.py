"""Admin and batch API request/response schemas.

All schemas use ConfigDict(extra="forbid") to reject unexpected fields.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from tollgate.models.user import UserStatus
from tollgate.schemas.user import CreditLogResponse, UserResponse
from tollgate.services.daily_deduction import DeductionResult, DeductionStats

# Upper bound on ids per batch status request.
MAX_BATCH_SIZE = 100


# =============================================================================
# Requests
# =============================================================================


class CreditAdjustmentRequest(BaseModel):
    """Request body for PUT /admin/users/{id}/credits.

    Attributes:
        amount: Signed whole number of credits. Strict: "5", 5.0 and true
            are rejected. Range is checked against CREDIT_ADJUSTMENT_LIMIT.
        reason: Optional reason for the ledger entry.
    """

    model_config = ConfigDict(extra="forbid")

    amount: int = Field(strict=True)
    reason: str | None = Field(None, max_length=255)


class StatusUpdateRequest(BaseModel):
    """Request body for PUT /admin/users/{id}/status."""

    model_config = ConfigDict(extra="forbid")

    status: UserStatus


class BatchStatusUpdateRequest(BaseModel):
    """Request body for PUT /admin/users/batch-status."""

    model_config = ConfigDict(extra="forbid")

    user_ids: list[uuid.UUID] = Field(min_length=1, max_length=MAX_BATCH_SIZE)
    status: UserStatus


# =============================================================================
# Responses
# =============================================================================


class CreditAdjustmentResponse(BaseModel):
    """Result of an admin credit adjustment."""

    model_config = ConfigDict(extra="forbid")

    user: UserResponse
    log_entry: CreditLogResponse
    previous_credits: int
    previous_status: str


class BatchStatusResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    updated_count: int
    users: list[UserResponse]


class BlockedUserResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    email: str


class SweepResponse(BaseModel):
    """Result of POST /admin/users/block-zero-credits."""

    model_config = ConfigDict(extra="forbid")

    blocked_count: int
    blocked_users: list[BlockedUserResponse]


class ProcessedUserResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    email: str
    previous_credits: int
    new_credits: int
    blocked: bool


class DeductionErrorResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: str | None = None
    email: str | None = None
    message: str


class DeductionResultResponse(BaseModel):
    """Result of a daily deduction run.

    Attributes:
        success: True when no user failed.
        total_processed: Users deducted.
        total_blocked: Deducted users that reached 0 and were blocked.
        total_skipped: Selected users no longer eligible when locked.
        errors: Per-user failures.
        processed_users: Per-user details.
        started_at: Batch start.
        finished_at: Batch end.
    """

    model_config = ConfigDict(extra="forbid")

    success: bool
    total_processed: int
    total_blocked: int
    total_skipped: int
    errors: list[DeductionErrorResponse]
    processed_users: list[ProcessedUserResponse]
    started_at: datetime
    finished_at: datetime | None = None

    @classmethod
    def from_result(cls, result: DeductionResult) -> "DeductionResultResponse":
        return cls(
            success=result.success,
            total_processed=result.total_processed,
            total_blocked=result.total_blocked,
            total_skipped=result.total_skipped,
            errors=[
                DeductionErrorResponse(
                    user_id=str(err.user_id) if err.user_id else None,
                    email=err.email,
                    message=err.message,
                )
                for err in result.errors
            ],
            processed_users=[
                ProcessedUserResponse(
                    id=str(p.user_id),
                    email=p.email,
                    previous_credits=p.previous_credits,
                    new_credits=p.new_credits,
                    blocked=p.blocked,
                )
                for p in result.processed_users
            ],
            started_at=result.started_at,
            finished_at=result.finished_at,
        )


class StatusBucketResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    users: int
    credits: int


class DeductionStatsResponse(BaseModel):
    """Monitoring view for GET /credits/deduct-daily."""

    model_config = ConfigDict(extra="forbid")

    eligible_for_deduction: int
    status_breakdown: dict[str, StatusBucketResponse]
    last_run: datetime | None = None

    @classmethod
    def from_stats(cls, stats: DeductionStats) -> "DeductionStatsResponse":
        return cls(
            eligible_for_deduction=stats.eligible_for_deduction,
            status_breakdown={
                UserStatus.APPROVED.value: StatusBucketResponse(
                    users=stats.approved_users, credits=stats.approved_credits
                ),
                UserStatus.BLOCKED.value: StatusBucketResponse(
                    users=stats.blocked_users, credits=stats.blocked_credits
                ),
            },
            last_run=stats.last_run,
        )


class UserStatsResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    total: int
    pending: int
    approved: int
    rejected: int
    blocked: int
    active: int


class CreditStatsResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    total_credits: int
    average_credits_per_user: float


class RecentActivityResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    new_registrations: int
    credit_transactions: int


class PlatformStatsResponse(BaseModel):
    """Response for GET /admin/stats."""

    model_config = ConfigDict(extra="forbid")

    user_stats: UserStatsResponse
    credit_stats: CreditStatsResponse
    recent_activity: RecentActivityResponse


class IntegrityResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    total_users: int
    total_credit_logs: int


class AdminStatusResponse(BaseModel):
    """Response for GET /admin/status."""

    model_config = ConfigDict(extra="forbid")

    admin_id: uuid.UUID
    email: str
    role: str
