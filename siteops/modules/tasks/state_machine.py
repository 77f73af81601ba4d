"""Task status transitions, each applied as a single conditional write."""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from siteops.core import db_client
from siteops.core.db_client import sanitize_param
from siteops.core.errors import NotFoundError
from siteops.core.logging import span
from siteops.domain.task import Task, TaskStatus


logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.CLAIMED, TaskStatus.COMPLETED, TaskStatus.OVERDUE},
    TaskStatus.AVAILABLE: {TaskStatus.CLAIMED, TaskStatus.COMPLETED, TaskStatus.OVERDUE},
    TaskStatus.CLAIMED: {TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.OVERDUE},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.OVERDUE},
    TaskStatus.OVERDUE: {TaskStatus.COMPLETED},
    TaskStatus.COMPLETED: set(),
}


def can_transition(*, from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """Return True if the state machine allows `from_status -> to_status`."""
    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def status_filter(statuses: Iterable[TaskStatus]) -> str:
    """Build a filter clause matching any of `statuses`."""
    clauses = " || ".join(f'status = "{status}"' for status in sorted(statuses))
    return f"({clauses})"


def claimed_by_filter(worker_id: str | None) -> str:
    """Build a filter clause matching the exact claimant (or no claimant)."""
    if worker_id is None:
        return "claimed_by = null"
    return f'claimed_by = "{sanitize_param(worker_id)}"'


def now_utc() -> datetime:
    return datetime.now(UTC)


async def load_task(*, task_id: str) -> Task:
    """Fetch a task by ID.

    Raises:
        NotFoundError: If the task does not exist
    """
    try:
        record = await db_client.get_record(collection="tasks", record_id=task_id)
    except KeyError as e:
        raise NotFoundError(f"Task not found: {task_id}") from e
    return Task(**record)


async def transition(
    *,
    task_id: str,
    from_statuses: Iterable[TaskStatus],
    to_status: TaskStatus,
    data: dict[str, Any] | None = None,
    extra_filter: str = "",
) -> Task | None:
    """Move a task to `to_status` only if it is still in one of `from_statuses`.

    Args:
        task_id: Task to update
        from_statuses: Statuses the task must currently be in
        to_status: Target status
        data: Additional columns to set in the same write
        extra_filter: Further expected-state conditions in filter syntax

    Returns:
        The updated task, or None if the expected state no longer held
    """
    sources = set(from_statuses)
    for source in sources:
        if not can_transition(from_status=source, to_status=to_status):
            msg = f"Invalid transition: {source} -> {to_status}"
            raise ValueError(msg)

    with span("task_state_machine.transition"):
        filter_query = status_filter(sources)
        if extra_filter:
            filter_query = f"{filter_query} && {extra_filter}"

        record = await db_client.update_record_if(
            collection="tasks",
            record_id=task_id,
            data={"status": to_status, **(data or {})},
            filter_query=filter_query,
        )
        if record is None:
            logger.info(
                "Transition lost: task changed state",
                extra={"task_id": task_id, "to_status": to_status},
            )
            return None

        logger.info("Transitioned task", extra={"task_id": task_id, "to_status": to_status})
        return Task(**record)


async def mark_started(*, task_id: str) -> Task | None:
    """CLAIMED -> IN_PROGRESS with `started_at` stamped, once.

    Returns None when the task was not CLAIMED-and-unstarted, so repeated
    progress signals are harmless.
    """
    return await transition(
        task_id=task_id,
        from_statuses={TaskStatus.CLAIMED},
        to_status=TaskStatus.IN_PROGRESS,
        data={"started_at": now_utc().isoformat()},
        extra_filter="started_at = null",
    )
