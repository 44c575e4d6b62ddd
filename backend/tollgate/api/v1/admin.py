"""Admin API router.

User listing, credit adjustments, status changes, credit history, the
zero-credit sweep, a manual daily deduction run, statistics, and an
admin session check.

All endpoints require the AdminUser dependency (live role check).
"""

import uuid
from typing import Annotated, Literal

from fastapi import APIRouter, Query

from tollgate.api.deps import AdminUser, DbSession, SessionFactory
from tollgate.core.responses import (
    DataResponse,
    ListResponse,
    MessageDataResponse,
    PaginationMeta,
)
from tollgate.models.user import UserStatus
from tollgate.schemas.admin import (
    AdminStatusResponse,
    BatchStatusResponse,
    BatchStatusUpdateRequest,
    BlockedUserResponse,
    CreditAdjustmentRequest,
    CreditAdjustmentResponse,
    CreditStatsResponse,
    DeductionResultResponse,
    IntegrityResponse,
    PlatformStatsResponse,
    RecentActivityResponse,
    StatusUpdateRequest,
    SweepResponse,
    UserStatsResponse,
)
from tollgate.schemas.user import CreditLogResponse, UserOverviewResponse, UserResponse
from tollgate.services.admin_user_service import AdminUserService
from tollgate.services.auto_block import AutoBlockService
from tollgate.services.credit_ledger import describe_adjustment
from tollgate.services.daily_deduction import DailyDeductionService

router = APIRouter()

PageParam = Annotated[int, Query(ge=1, description="Page number (1-based)")]
PerPageParam = Annotated[
    int, Query(ge=1, le=100, description="Items per page (max 100)")
]
StatusFilter = Annotated[
    UserStatus | None, Query(description="Only users with this status")
]
SearchParam = Annotated[
    str | None,
    Query(max_length=255, description="Case-insensitive email substring"),
]
SortByParam = Annotated[
    Literal["created_at", "email", "credits", "status", "registration_date"],
    Query(description="Sort column"),
]
SortOrderParam = Annotated[Literal["asc", "desc"], Query(description="Sort order")]


# =============================================================================
# Admin session
# =============================================================================


@router.get("/status")
async def get_admin_status(
    admin: AdminUser,
) -> MessageDataResponse[AdminStatusResponse]:
    """Confirm the caller holds the admin role on the live row."""
    return MessageDataResponse(
        data=AdminStatusResponse(
            admin_id=admin.id,
            email=admin.email,
            role=admin.role,
        ),
        message="Admin access verified",
    )


# =============================================================================
# Users
# =============================================================================


@router.get("/users")
async def list_users(
    _admin: AdminUser,
    db: DbSession,
    page: PageParam = 1,
    per_page: PerPageParam = 10,
    status: StatusFilter = None,
    search: SearchParam = None,
    sort_by: SortByParam = "created_at",
    sort_order: SortOrderParam = "desc",
) -> ListResponse[UserOverviewResponse]:
    """List users with filtering, sorting and pagination."""
    svc = AdminUserService(db)
    items, total = await svc.list_users(
        page=page,
        per_page=per_page,
        status=status,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return ListResponse(
        data=[UserOverviewResponse.from_overview(item) for item in items],
        meta=PaginationMeta(total=total, page=page, per_page=per_page),
    )


@router.put("/users/batch-status")
async def update_status_batch(
    admin: AdminUser,
    db: DbSession,
    body: BatchStatusUpdateRequest,
) -> MessageDataResponse[BatchStatusResponse]:
    """Set the status of several users at once (all or nothing)."""
    svc = AdminUserService(db)
    users = await svc.change_status_batch(body.user_ids, body.status, admin=admin)
    return MessageDataResponse(
        data=BatchStatusResponse(
            updated_count=len(users),
            users=[UserResponse.from_user(u) for u in users],
        ),
        message=f"{len(users)} user(s) status updated to {body.status.value.lower()}",
    )


@router.post("/users/block-zero-credits")
async def block_zero_credit_users(
    _admin: AdminUser,
    db: DbSession,
) -> MessageDataResponse[SweepResponse]:
    """Block every APPROVED user whose balance is 0."""
    result = await AutoBlockService(db).sweep_zero_credit_users()
    if result.blocked_count:
        message = f"Successfully blocked {result.blocked_count} users with zero credits"
    else:
        message = "No users need to be blocked"
    return MessageDataResponse(
        data=SweepResponse(
            blocked_count=result.blocked_count,
            blocked_users=[
                BlockedUserResponse(id=str(u.user_id), email=u.email)
                for u in result.blocked_users
            ],
        ),
        message=message,
    )


@router.put("/users/{user_id}/credits")
async def adjust_credits(
    admin: AdminUser,
    db: DbSession,
    user_id: uuid.UUID,
    body: CreditAdjustmentRequest,
) -> MessageDataResponse[CreditAdjustmentResponse]:
    """Add (positive amount) or deduct (negative amount) credits.

    The balance never drops below 0. Reaching 0 blocks an APPROVED user;
    adding credits to a BLOCKED user restores APPROVED.
    """
    svc = AdminUserService(db)
    result = await svc.adjust_credits(
        user_id, body.amount, admin=admin, reason=body.reason
    )
    return MessageDataResponse(
        data=CreditAdjustmentResponse(
            user=UserResponse.from_user(result.user),
            log_entry=CreditLogResponse.from_entry(
                result.log_entry, admin_email=admin.email
            ),
            previous_credits=result.previous_credits,
            previous_status=result.previous_status.value,
        ),
        message=describe_adjustment(body.amount),
    )


@router.put("/users/{user_id}/status")
async def update_status(
    admin: AdminUser,
    db: DbSession,
    user_id: uuid.UUID,
    body: StatusUpdateRequest,
) -> MessageDataResponse[UserResponse]:
    """Set a user's status. Admins cannot change their own status."""
    svc = AdminUserService(db)
    user = await svc.change_status(user_id, body.status, admin=admin)
    return MessageDataResponse(
        data=UserResponse.from_user(user),
        message=f"User status updated to {body.status.value.lower()}",
    )


@router.get("/users/{user_id}/credit-logs")
async def list_credit_logs(
    _admin: AdminUser,
    db: DbSession,
    user_id: uuid.UUID,
    page: PageParam = 1,
    per_page: PerPageParam = 20,
) -> ListResponse[CreditLogResponse]:
    """A user's credit history, newest first."""
    svc = AdminUserService(db)
    views, total = await svc.list_credit_logs(user_id, page=page, per_page=per_page)
    return ListResponse(
        data=[
            CreditLogResponse.from_entry(v.entry, admin_email=v.admin_email)
            for v in views
        ],
        meta=PaginationMeta(total=total, page=page, per_page=per_page),
    )


# =============================================================================
# Batch processes
# =============================================================================


@router.post("/credits/deduct-daily")
async def run_daily_deduction(
    _admin: AdminUser,
    session_factory: SessionFactory,
) -> DataResponse[DeductionResultResponse]:
    """Run the daily deduction now.

    Not idempotent unless DAILY_DEDUCTION_SAME_DAY_GUARD is enabled:
    each call deducts another credit.
    """
    result = await DailyDeductionService(session_factory).run()
    return DataResponse(data=DeductionResultResponse.from_result(result))


# =============================================================================
# Statistics
# =============================================================================


@router.get("/stats")
async def get_stats(
    _admin: AdminUser,
    db: DbSession,
) -> DataResponse[PlatformStatsResponse]:
    """User counts, credit totals and 7-day activity."""
    stats = await AdminUserService(db).get_stats()
    return DataResponse(
        data=PlatformStatsResponse(
            user_stats=UserStatsResponse(
                total=stats.total_users,
                pending=stats.pending_users,
                approved=stats.approved_users,
                rejected=stats.rejected_users,
                blocked=stats.blocked_users,
                active=stats.active_users,
            ),
            credit_stats=CreditStatsResponse(
                total_credits=stats.total_credits,
                average_credits_per_user=stats.average_credits_per_user,
            ),
            recent_activity=RecentActivityResponse(
                new_registrations=stats.new_registrations,
                credit_transactions=stats.credit_transactions,
            ),
        )
    )


@router.get("/integrity")
async def get_integrity(
    _admin: AdminUser,
    db: DbSession,
) -> DataResponse[IntegrityResponse]:
    """Row counts for a quick consistency check."""
    counts = await AdminUserService(db).get_integrity()
    return DataResponse(
        data=IntegrityResponse(
            total_users=counts.total_users,
            total_credit_logs=counts.total_credit_logs,
        )
    )
