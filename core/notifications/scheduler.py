"""
APScheduler-based runner for the fleet notification jobs.

Two recurring jobs, both lightweight: they store nothing but their schedule
and read fresh fleet state from the database every run.

    fleet_dispatch_tick    - every DISPATCH_INTERVAL_SECONDS, sends due pings
    fleet_summary_publish  - every SUMMARY_INTERVAL_MINUTES, reposts fleet lists

Jobs are persisted to PostgreSQL when a database is configured, so the schedule
survives restarts.
"""

import logging
import random

from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from core.config import get_dispatch_interval_seconds, get_summary_interval_minutes
from core.database import get_sync_database_url, is_configured

logger = logging.getLogger(__name__)


_scheduler: AsyncIOScheduler | None = None

DISPATCH_JOB_ID = "fleet_dispatch_tick"
SUMMARY_JOB_ID = "fleet_summary_publish"

# After this many failed attempts a delivery is reported to Sentry. It keeps
# being retried at the capped delay until the fleet goes inert.
MAX_DELIVERY_ATTEMPTS = 8

# Fleet pings are time-sensitive, so backoff caps far below the usual 30 minutes
MAX_RETRY_DELAY_SECONDS = 300

_JOB_DEFAULTS = {
    "coalesce": True,  # Combine missed runs into one
    "max_instances": 1,
    "misfire_grace_time": 60,
}


# =============================================================================
# Scheduler initialization and shutdown
# =============================================================================


def _get_database_url() -> str:
    """Sync database URL for APScheduler, with a connect timeout so startup can't hang."""
    if not is_configured():
        return ""
    database_url = get_sync_database_url()

    if database_url and "?" not in database_url:
        database_url += "?connect_timeout=5"
    elif database_url and "connect_timeout" not in database_url:
        database_url += "&connect_timeout=5"

    return database_url


def init_scheduler(skip_if_db_unavailable: bool = True) -> AsyncIOScheduler | None:
    """
    Initialize and start the APScheduler, then register the fleet jobs.

    Call this during app startup (in FastAPI lifespan).

    Args:
        skip_if_db_unavailable: If True, fall back to an in-memory job store when
                                the database is unreachable instead of failing.
    """
    global _scheduler

    if _scheduler is not None:
        return _scheduler

    database_url = _get_database_url()

    jobstores = {}
    if database_url:
        jobstores["default"] = SQLAlchemyJobStore(
            url=database_url,
            tablename="apscheduler_jobs",
        )

    _scheduler = AsyncIOScheduler(jobstores=jobstores, job_defaults=_JOB_DEFAULTS)

    try:
        _scheduler.start()
        logger.info("Fleet scheduler started")
    except Exception as e:
        if skip_if_db_unavailable and "timeout" in str(e).lower():
            logger.warning(
                "Could not connect to database for scheduler, running in memory-only mode"
            )
            _scheduler = AsyncIOScheduler(jobstores={}, job_defaults=_JOB_DEFAULTS)
            _scheduler.start()
        else:
            raise

    register_jobs(_scheduler)
    return _scheduler


def register_jobs(scheduler: AsyncIOScheduler) -> None:
    """Add (or replace) the recurring fleet jobs."""
    scheduler.add_job(
        run_dispatch_job,
        trigger="interval",
        seconds=get_dispatch_interval_seconds(),
        id=DISPATCH_JOB_ID,
        replace_existing=True,
    )
    scheduler.add_job(
        run_summary_job,
        trigger="interval",
        minutes=get_summary_interval_minutes(),
        id=SUMMARY_JOB_ID,
        replace_existing=True,
    )
    logger.info(
        f"Registered {DISPATCH_JOB_ID} every {get_dispatch_interval_seconds()}s "
        f"and {SUMMARY_JOB_ID} every {get_summary_interval_minutes()}m"
    )


def shutdown_scheduler() -> None:
    """
    Shutdown the scheduler gracefully.

    Call this during app shutdown.
    """
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=True)
        _scheduler = None
        logger.info("Fleet scheduler stopped")


def get_scheduler() -> AsyncIOScheduler | None:
    return _scheduler


# =============================================================================
# Retry backoff
# =============================================================================


def get_retry_delay(attempt: int, include_jitter: bool = True) -> float:
    """
    Calculate retry delay using exponential backoff with cap.

    Args:
        attempt: Zero-based attempt number (0 = first retry)
        include_jitter: Add random jitter to prevent thundering herd

    Returns:
        Delay in seconds (1, 2, 4, ..., 256, 300, 300...)
    """
    base_delay = min(2**attempt, MAX_RETRY_DELAY_SECONDS)
    if include_jitter:
        # Jitter scales with delay to spread out retries
        jitter = random.uniform(0, min(base_delay * 0.1, 30))
        return base_delay + jitter
    return float(base_delay)


# =============================================================================
# Job functions (called by APScheduler)
# =============================================================================


async def run_dispatch_job() -> dict | None:
    """Run one dispatcher tick against the live bot and database."""
    from core.discord_outbound import DiscordTransport, get_ready_bot
    from core.fleets.store import FleetStore

    from .dispatcher import run_dispatch_tick

    bot = get_ready_bot()
    if bot is None:
        logger.debug("Discord bot not ready, skipping dispatch tick")
        return None

    return await run_dispatch_tick(FleetStore(), DiscordTransport(bot))


async def run_summary_job() -> dict | None:
    """Republish the upcoming-fleets list in every destination channel."""
    from core.discord_outbound import (
        DiscordRoleDirectory,
        DiscordTransport,
        get_ready_bot,
    )
    from core.fleets.store import FleetStore

    from .summary import publish_summaries

    bot = get_ready_bot()
    if bot is None:
        logger.debug("Discord bot not ready, skipping summary publish")
        return None

    return await publish_summaries(
        FleetStore(), DiscordTransport(bot), DiscordRoleDirectory(bot)
    )
