"""Claim arbitration: at most one worker wins a task."""

import logging

from siteops.core.errors import AuthorizationError, ConflictError
from siteops.core.logging import log_with_worker_context, span
from siteops.core.permissions import Capability, capabilities_of
from siteops.domain.geo import GeoPoint
from siteops.domain.task import CLAIMABLE_STATUSES, AssigneeType, Task, TaskStatus, is_claimable
from siteops.modules.sites import service as site_service
from siteops.modules.tasks import state_machine
from siteops.services import checkin_service, geofence


logger = logging.getLogger(__name__)

ALREADY_CLAIMED_MESSAGE = "Task already claimed or not available"


async def claim(*, task_id: str, worker_id: str, point: GeoPoint | None = None) -> Task:
    """Claim a task for a worker.

    Preconditions are checked first (identity, role, assignee, check-in and
    fence); the claim itself is one conditional write that succeeds only while
    the task is claimable and unclaimed, so concurrent claimers get exactly one
    winner.

    Args:
        task_id: Task to claim
        worker_id: Claiming worker
        point: Device location; without one the fence is not checked

    Returns:
        The claimed task

    Raises:
        NotFoundError: If the task or worker does not exist
        AuthorizationError: If the worker may not claim this task or is not checked in
        GeofenceViolation: If the supplied location is outside the applicable fence
        ConflictError: If the task is already claimed or not claimable
    """
    with span("task_claims.claim"):
        task = await state_machine.load_task(task_id=task_id)
        worker = await site_service.get_worker(worker_id=worker_id)
        if not worker.is_active:
            raise AuthorizationError("Worker account is inactive")

        capabilities = capabilities_of(worker.role)
        if Capability.CLAIM_TASKS not in capabilities:
            raise AuthorizationError("Your role cannot claim tasks")

        if (
            task.assignee_type == AssigneeType.SPECIFIC_EMPLOYEE
            and task.assigned_to != worker.id
            and Capability.BYPASS_ASSIGNEE not in capabilities
        ):
            raise AuthorizationError("This task is assigned to another worker")

        if not is_claimable(task.status) or task.claimed_by is not None:
            raise ConflictError(ALREADY_CLAIMED_MESSAGE)

        session = await checkin_service.require_checkin_at(worker_id=worker.id, site_id=task.site_id)
        fence = geofence.resolve_fence(task=task, session=session)
        geofence.enforce_fence(fence=fence, point=point, require_point=False)

        claimed = await state_machine.transition(
            task_id=task.id,
            from_statuses=CLAIMABLE_STATUSES,
            to_status=TaskStatus.CLAIMED,
            data={"claimed_by": worker.id, "claimed_at": state_machine.now_utc().isoformat()},
            extra_filter=state_machine.claimed_by_filter(None),
        )
        if claimed is None:
            raise ConflictError(ALREADY_CLAIMED_MESSAGE)

        log_with_worker_context(logger, "info", "Task claimed", worker_id=worker.id, task_id=task.id)
        return claimed
