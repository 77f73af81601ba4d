"""Scheduled jobs for tasks module.

- Overdue sweep: marks past-due unfinished tasks as overdue
- Ensure today: instantiates each active template once per site per day
"""

import logging

from siteops.core.config import Constants
from siteops.core.module import ScheduledJob
from siteops.core.scheduler import retry_job_with_backoff
from siteops.modules.sites import service as site_service
from siteops.modules.tasks import service


logger = logging.getLogger(__name__)


async def sweep_overdue_tasks() -> None:
    """Mark every past-due task as overdue."""
    marked = await service.mark_overdue_tasks()
    logger.info("Overdue sweep marked %d tasks", marked)


async def ensure_today_for_all_sites() -> None:
    """Create today's template tasks at every active site.

    A failing site is logged and skipped so the others still get their tasks.
    """
    sites = await site_service.list_active_sites()
    total = 0
    for site in sites:
        try:
            total += await service.ensure_tasks_for_site_today(site_id=site.id)
        except Exception:
            logger.exception("Failed to ensure today's tasks", extra={"site_id": site.id})
    logger.info("Ensured %d tasks across %d sites", total, len(sites))


async def overdue_sweep_job() -> None:
    await retry_job_with_backoff(sweep_overdue_tasks, "overdue_sweep")


async def ensure_today_job() -> None:
    await retry_job_with_backoff(ensure_today_for_all_sites, "ensure_today")


def get_scheduled_jobs() -> list[ScheduledJob]:
    """Return scheduled jobs for tasks module."""
    return [
        ScheduledJob(
            id="overdue_sweep",
            name="Mark Overdue Tasks",
            cron=Constants.OVERDUE_SWEEP_CRON,
            func=overdue_sweep_job,
        ),
        ScheduledJob(
            id="ensure_today",
            name="Create Today's Template Tasks",
            cron=Constants.ENSURE_TODAY_CRON,
            func=ensure_today_job,
        ),
    ]
