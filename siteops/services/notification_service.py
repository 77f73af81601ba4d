"""Notification service: records task events for managers and workers.

Delivery (push, email, websocket) belongs to other systems; this service only
writes notification records, and never lets a failure undo a task transition.
"""

import logging
from typing import Any

from siteops.core import db_client
from siteops.core.logging import span
from siteops.domain.notification import NotificationType
from siteops.modules.sites import service as site_service


logger = logging.getLogger(__name__)


async def _record(
    *,
    worker_id: str,
    notification_type: NotificationType,
    title: str,
    message: str,
    data: dict[str, Any],
) -> None:
    await db_client.create_record(
        collection="notifications",
        data={
            "worker_id": worker_id,
            "type": notification_type,
            "title": title,
            "message": message,
            "data": data,
        },
    )


async def notify_worker(
    *,
    worker_id: str,
    notification_type: NotificationType,
    title: str,
    message: str,
    data: dict[str, Any] | None = None,
) -> bool:
    """Record a notification for one worker. Returns False if it could not be stored."""
    with span("notification_service.notify_worker"):
        try:
            await _record(
                worker_id=worker_id,
                notification_type=notification_type,
                title=title,
                message=message,
                data=data or {},
            )
        except Exception:
            logger.exception(
                "Failed to record notification",
                extra={"worker_id": worker_id, "notification_type": notification_type},
            )
            return False
        return True


async def notify_site_managers(
    *,
    site_id: str,
    notification_type: NotificationType,
    title: str,
    message: str,
    data: dict[str, Any] | None = None,
    exclude_worker_id: str | None = None,
) -> int:
    """Record a notification for every manager of a site.

    Args:
        site_id: Site whose managers are notified
        notification_type: Event type
        title: Short headline
        message: Human-readable text
        data: Structured payload (task id, worker ids)
        exclude_worker_id: Worker who triggered the event and need not hear about it

    Returns:
        Number of notifications recorded
    """
    with span("notification_service.notify_site_managers"):
        try:
            managers = await site_service.list_site_managers(site_id=site_id)
        except Exception:
            logger.exception("Failed to look up site managers", extra={"site_id": site_id})
            return 0

        sent = 0
        for manager in managers:
            if manager.id == exclude_worker_id:
                continue
            if await notify_worker(
                worker_id=manager.id,
                notification_type=notification_type,
                title=title,
                message=message,
                data=data,
            ):
                sent += 1

        logger.info(
            "Notified site managers",
            extra={"site_id": site_id, "notification_type": notification_type, "count": sent},
        )
        return sent
