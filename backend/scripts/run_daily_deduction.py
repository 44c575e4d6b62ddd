"""Run the daily credit deduction once.

For deployments that schedule the batch with an external cron instead of
SCHEDULER_ENABLED or the HTTP trigger.

Usage:
    cd backend && python -m scripts.run_daily_deduction

Exit status is 0 when every user was processed, 1 when any user (or the
selection itself) failed.
"""

import logging
import sys

from tollgate.services.daily_deduction import DailyDeductionService

logger = logging.getLogger(__name__)


async def main() -> int:
    """CLI entry point: run the batch against the configured database."""
    from tollgate.core.database import async_session_factory, engine

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        result = await DailyDeductionService(async_session_factory).run()
    finally:
        await engine.dispose()

    logger.info(
        "Daily deduction: %d processed, %d blocked, %d skipped, %d errors",
        result.total_processed,
        result.total_blocked,
        result.total_skipped,
        len(result.errors),
    )
    for error in result.errors:
        logger.error("%s", error.message)

    return 0 if result.success else 1


if __name__ == "__main__":
    import asyncio

    sys.exit(asyncio.run(main()))
