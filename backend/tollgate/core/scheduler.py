"""In-process scheduler for the daily deduction.

Enabled with SCHEDULER_ENABLED=true for single-instance deployments. With
more than one API instance, leave it off and call the cron endpoint (or
`python -m scripts.run_daily_deduction`) from exactly one external cron.
"""

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tollgate.core.config import settings
from tollgate.services.daily_deduction import DailyDeductionService

logger = structlog.get_logger()

DAILY_DEDUCTION_JOB_ID = "daily_credit_deduction"


async def daily_deduction_job(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """Scheduled entry point. The batch already isolates per-user failures."""
    result = await DailyDeductionService(session_factory).run()
    logger.info(
        "scheduled_daily_deduction_done",
        processed=result.total_processed,
        blocked=result.total_blocked,
        errors=len(result.errors),
    )


def create_scheduler(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIOScheduler:
    """Build a scheduler with the daily deduction job registered.

    The job runs on DAILY_DEDUCTION_CRON (UTC). Missed runs are coalesced
    into one, and a run never overlaps the previous one.
    """
    scheduler = AsyncIOScheduler(
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": 3600,
        },
        timezone="UTC",
    )
    scheduler.add_job(
        daily_deduction_job,
        trigger=CronTrigger.from_crontab(settings.daily_deduction_cron, timezone="UTC"),
        args=[session_factory],
        id=DAILY_DEDUCTION_JOB_ID,
        name="Daily credit deduction",
        replace_existing=True,
    )
    return scheduler


def start_scheduler(scheduler: AsyncIOScheduler) -> None:
    if not scheduler.running:
        scheduler.start()
        logger.info("scheduler_started", cron=settings.daily_deduction_cron)


def stop_scheduler(scheduler: AsyncIOScheduler) -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("scheduler_stopped")
