"""Scheduler for background jobs declared by feature modules."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from siteops.core.module_registry import get_all_scheduled_jobs, register_default_modules


logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler(timezone=UTC)

# Last known outcome of each job, keyed by job name
_job_status: dict[str, dict[str, Any]] = {}


def _status_for(job_name: str) -> dict[str, Any]:
    return _job_status.setdefault(
        job_name,
        {
            "job_name": job_name,
            "last_success": None,
            "last_failure": None,
            "last_error": None,
            "consecutive_failures": 0,
        },
    )


def get_job_statuses() -> dict[str, dict[str, Any]]:
    """Return a copy of every tracked job's status."""
    return {name: dict(status) for name, status in _job_status.items()}


async def retry_job_with_backoff(
    job_func: Callable[[], Awaitable[Any]],
    job_name: str,
    max_retries: int = 3,
    base_delay: float = 2.0,
) -> None:
    """Execute job with retry logic and exponential backoff.

    Failures are logged and recorded, never raised into the scheduler.

    Args:
        job_func: Async function to execute
        job_name: Name of the job for tracking
        max_retries: Maximum number of attempts
        base_delay: Base delay in seconds for exponential backoff
    """
    status = _status_for(job_name)
    last_error = None
    for attempt in range(max_retries):
        try:
            logger.info("Executing %s (attempt %d/%d)", job_name, attempt + 1, max_retries)
            await job_func()
            status["last_success"] = datetime.now(UTC).isoformat()
            status["consecutive_failures"] = 0
            logger.info("%s completed successfully", job_name)
            return
        except Exception as e:
            last_error = str(e)
            logger.error("%s failed on attempt %d/%d: %s", job_name, attempt + 1, max_retries, last_error)
            if attempt < max_retries - 1:
                await asyncio.sleep(base_delay * 2**attempt)

    status["last_failure"] = datetime.now(UTC).isoformat()
    status["last_error"] = last_error
    status["consecutive_failures"] += 1
    logger.error(
        f"{job_name} failed after all retry attempts",
        extra={"error": last_error, "consecutive_failures": status["consecutive_failures"]},
    )


def start_scheduler() -> None:
    """Register every module's jobs and start the scheduler.

    This should be called during FastAPI app startup.
    """
    logger.info("Starting scheduler")
    register_default_modules()

    for job in get_all_scheduled_jobs():
        scheduler.add_job(
            job.func,
            trigger=CronTrigger.from_crontab(job.cron, timezone=UTC),
            id=job.id,
            name=job.name,
            replace_existing=True,
        )
        _status_for(job.id)
        logger.info("Scheduled job %s: %s", job.id, job.cron)

    scheduler.start()
    logger.info("Scheduler started successfully")


def stop_scheduler() -> None:
    """Stop the scheduler.

    This should be called during FastAPI app shutdown.
    """
    if not scheduler.running:
        return
    logger.info("Stopping scheduler")
    scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")
