"""Proof photo tracking and the completion photo gate."""

import logging
from collections.abc import Set

from siteops.core import db_client
from siteops.core.errors import AuthorizationError, PhotoLimitExceeded
from siteops.core.logging import span
from siteops.core.permissions import Capability
from siteops.domain.geo import GeoPoint
from siteops.domain.photo import ProofPhoto
from siteops.domain.task import AssigneeType, Task
from siteops.domain.user import Worker
from siteops.modules.tasks.state_machine import now_utc


logger = logging.getLogger(__name__)


def is_ready_to_complete(
    *,
    task: Task,
    override: bool = False,
    capabilities: Set[Capability] = frozenset(),
) -> bool:
    """Return True if the task's photo requirement does not block completion."""
    if not task.photo_required:
        return True
    if task.photos_uploaded >= task.photo_count:
        return True
    return override and Capability.OVERRIDE_PHOTO_REQUIREMENT in capabilities


def missing_photos_message(task: Task) -> str:
    return f"{task.photo_count} photos required, only {task.photos_uploaded} uploaded"


async def record_upload(
    *,
    task: Task,
    uploader: Worker,
    capabilities: Set[Capability],
    size_bytes: int,
    point: GeoPoint | None = None,
    filename: str | None = None,
    mime_type: str | None = None,
    task_item_id: str | None = None,
) -> ProofPhoto:
    """Count a proof photo against the task and store its metadata.

    The counter only moves while it is below the cap, and the photo row is
    written in the same transaction, so a lost race leaves no orphan photo.

    Raises:
        PhotoLimitExceeded: If the task already has all the photos it accepts
        AuthorizationError: If the task is assigned to someone else
    """
    with span("task_photos.record_upload"):
        if task.photo_count > 0 and task.photos_uploaded >= task.photo_count:
            raise PhotoLimitExceeded(f"Photo limit reached: {task.photo_count} of {task.photo_count} uploaded")

        if (
            task.assignee_type == AssigneeType.SPECIFIC_EMPLOYEE
            and task.assigned_to != uploader.id
            and Capability.BYPASS_ASSIGNEE not in capabilities
        ):
            raise AuthorizationError("You can only upload for your assigned task")

        cap_filter = f'photos_uploaded < "{task.photo_count}"' if task.photo_count > 0 else ""

        async with db_client.transaction():
            counted = await db_client.update_record_if(
                collection="tasks",
                record_id=task.id,
                increments={"photos_uploaded": 1},
                filter_query=cap_filter,
            )
            if counted is None:
                raise PhotoLimitExceeded(
                    f"Photo limit reached: {task.photo_count} of {task.photo_count} uploaded"
                )

            record = await db_client.create_record(
                collection="task_photos",
                data={
                    "task_id": task.id,
                    "task_item_id": task_item_id,
                    "site_id": task.site_id,
                    "uploaded_by": uploader.id,
                    "latitude": point.latitude if point else None,
                    "longitude": point.longitude if point else None,
                    "filename": filename,
                    "mime_type": mime_type,
                    "size_bytes": size_bytes,
                    "uploaded_at": now_utc().isoformat(),
                },
            )

        logger.info(
            "Recorded proof photo",
            extra={"task_id": task.id, "photo_id": record["id"], "photos_uploaded": counted["photos_uploaded"]},
        )
        return ProofPhoto(**record)


async def list_photos(*, task_id: str) -> list[ProofPhoto]:
    """Return a task's proof photos, oldest first."""
    records = await db_client.list_records(
        collection="task_photos",
        per_page=500,
        filter_query=f'task_id = "{db_client.sanitize_param(task_id)}"',
    )
    return [ProofPhoto(**r) for r in records]
