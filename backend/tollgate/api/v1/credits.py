"""Scheduler trigger for the daily deduction.

Called by an external cron with `Authorization: Bearer <CRON_SECRET>`.
The deduction itself knows nothing about the secret; the check is the
require_cron_secret dependency.
"""

from fastapi import APIRouter

from tollgate.api.deps import CronAuthorized, SessionFactory
from tollgate.core.responses import DataResponse
from tollgate.schemas.admin import DeductionResultResponse, DeductionStatsResponse
from tollgate.services.daily_deduction import DailyDeductionService

router = APIRouter()


@router.post("/deduct-daily", dependencies=[CronAuthorized])
async def deduct_daily(
    session_factory: SessionFactory,
) -> DataResponse[DeductionResultResponse]:
    """Run the daily deduction batch."""
    result = await DailyDeductionService(session_factory).run()
    return DataResponse(data=DeductionResultResponse.from_result(result))


@router.get("/deduct-daily", dependencies=[CronAuthorized])
async def deduction_stats(
    session_factory: SessionFactory,
) -> DataResponse[DeductionStatsResponse]:
    """Eligible users and APPROVED/BLOCKED breakdown for monitoring."""
    stats = await DailyDeductionService(session_factory).get_deduction_stats()
    return DataResponse(data=DeductionStatsResponse.from_stats(stats))
