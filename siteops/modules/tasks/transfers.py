"""Handing a claimed task from one worker to another."""

import logging

from pydantic import BaseModel

from siteops.core import db_client
from siteops.core.config import settings
from siteops.core.errors import AuthorizationError, ConflictError, ValidationError
from siteops.core.logging import span
from siteops.core.permissions import Capability, capabilities_of
from siteops.domain.task import IN_FLIGHT_STATUSES, Task
from siteops.domain.transfer import TransferRecord
from siteops.modules.sites import service as site_service
from siteops.modules.tasks import state_machine
from siteops.services import checkin_service


logger = logging.getLogger(__name__)


class TransferResult(BaseModel):
    """The reassigned task and the log entry written with it."""

    task: Task
    transfer: TransferRecord


async def transfer(
    *,
    task_id: str,
    from_worker_id: str,
    to_worker_id: str,
    reason: str | None = None,
    requested_by: str | None = None,
) -> TransferResult:
    """Reassign a claimed task, keeping its status and timing.

    The reassignment is conditional on `from_worker_id` still holding the task
    in a claimed, in-progress or overdue state, and the transfer record is
    written in the same transaction.

    Args:
        task_id: Task to transfer
        from_worker_id: Current claimant
        to_worker_id: New claimant
        reason: Free-text reason for the log
        requested_by: Acting worker, when different from the claimant

    Raises:
        NotFoundError: If the task or either worker does not exist
        AuthorizationError: If `requested_by` may not transfer others' tasks
        ValidationError: If the target worker cannot take the task
        ConflictError: If the source worker no longer holds the task
    """
    with span("task_transfers.transfer"):
        if from_worker_id == to_worker_id:
            raise ValidationError("Cannot transfer a task to the worker who already holds it")

        task = await state_machine.load_task(task_id=task_id)
        from_worker = await site_service.get_worker(worker_id=from_worker_id)
        to_worker = await site_service.get_worker(worker_id=to_worker_id)

        if requested_by is not None and requested_by != from_worker.id:
            requester = await site_service.get_worker(worker_id=requested_by)
            if Capability.TRANSFER_TASKS not in capabilities_of(requester.role):
                raise AuthorizationError("Only the claimant or a manager can transfer this task")

        if not to_worker.is_active:
            raise ValidationError("Target worker is inactive")
        if from_worker.site_id != task.site_id or to_worker.site_id != task.site_id:
            raise ValidationError("Both workers must belong to the task's store")
        if Capability.HANDLE_TASKS not in capabilities_of(to_worker.role):
            raise ValidationError("Target worker's role cannot hold tasks")

        if settings.require_checkin:
            target_session = await checkin_service.get_active_session(worker_id=to_worker.id)
            if target_session is None or target_session.site_id != task.site_id:
                raise ValidationError("Target worker is not checked in at this store")

        in_flight = state_machine.status_filter(IN_FLIGHT_STATUSES)
        async with db_client.transaction():
            record = await db_client.update_record_if(
                collection="tasks",
                record_id=task.id,
                data={"claimed_by": to_worker.id},
                filter_query=f"{state_machine.claimed_by_filter(from_worker.id)} && {in_flight}",
            )
            if record is None:
                raise ConflictError("Task is not currently held by the source worker")

            transfer_record = await db_client.create_record(
                collection="task_transfers",
                data={
                    "task_id": task.id,
                    "from_worker_id": from_worker.id,
                    "to_worker_id": to_worker.id,
                    "reason": reason,
                    "transferred_at": state_machine.now_utc().isoformat(),
                },
            )

        logger.info(
            "Transferred task",
            extra={"task_id": task.id, "from_worker_id": from_worker.id, "to_worker_id": to_worker.id},
        )
        return TransferResult(task=Task(**record), transfer=TransferRecord(**transfer_record))
