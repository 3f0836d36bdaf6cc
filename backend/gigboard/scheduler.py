"""APScheduler jobs for Gigboard.

Contains the monthly proposal-quota refresh sweep and the scheduler
lifecycle helpers ``start_scheduler()`` and ``shutdown_scheduler()``.
"""

import logging
import os
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from gigboard import database
from gigboard.deps import get_cache
from gigboard.services.quota_ledger import QuotaLedger

logger = logging.getLogger(__name__)

QUOTA_REFRESH_DAY = int(os.getenv("QUOTA_REFRESH_DAY", "1"))
QUOTA_REFRESH_HOUR = int(os.getenv("QUOTA_REFRESH_HOUR", "0"))

# ---------------------------------------------------------------------------
# Scheduler singleton
# ---------------------------------------------------------------------------
scheduler = AsyncIOScheduler(timezone="UTC")


# ---------------------------------------------------------------------------
# Scheduled job functions
# ---------------------------------------------------------------------------


async def run_monthly_quota_refresh(now: datetime | None = None) -> int:
    """Credit this month's allotment to every account not yet refreshed.

    Safe to re-run: accounts already credited for the period are skipped.
    Returns the number of accounts credited (0 when the database is not
    configured or the sweep fails).
    """
    if database.async_session_factory is None:
        logger.error("Database not configured, cannot run quota refresh sweep")
        return 0

    now = now or datetime.now(timezone.utc)
    logger.info("Starting monthly quota refresh sweep for %s", now.strftime("%Y-%m"))

    try:
        async with database.async_session_factory() as db:
            ledger = QuotaLedger(db, get_cache())
            credited = await ledger.refresh_all(now)
    except Exception:
        logger.exception("Monthly quota refresh sweep failed")
        return 0

    logger.info("Monthly quota refresh sweep finished: %d accounts credited", credited)
    return credited


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


def start_scheduler():
    """Start the APScheduler for background jobs."""
    if scheduler.running:
        logger.info("Scheduler already running; skipping start")
        return

    scheduler.add_job(
        run_monthly_quota_refresh,
        "cron",
        day=QUOTA_REFRESH_DAY,
        hour=QUOTA_REFRESH_HOUR,
        minute=5,
        id="monthly_quota_refresh",
        name="Monthly proposal quota refresh",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        "Scheduler started: quota refresh on day %d at %02d:05 UTC",
        QUOTA_REFRESH_DAY,
        QUOTA_REFRESH_HOUR,
    )


def shutdown_scheduler():
    """Stop the scheduler if it is running."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
