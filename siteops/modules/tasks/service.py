"""Task service: creation, lifecycle transitions and queries."""

import logging
import math
from datetime import UTC, datetime, timedelta
from typing import Any

from siteops.core import db_client
from siteops.core.config import Constants
from siteops.core.db_client import sanitize_param
from siteops.core.errors import AuthorizationError, ConflictError, NotFoundError, PhotoLimitExceeded, ValidationError
from siteops.core.logging import span
from siteops.core.permissions import Capability, capabilities_of
from siteops.core.recurrence import expand_occurrences
from siteops.domain.create_models import RecurrenceRule, TaskCreate, TemplateCreate
from siteops.domain.geo import GeoPoint
from siteops.domain.notification import NotificationType
from siteops.domain.photo import ProofPhoto
from siteops.domain.task import (
    CLAIMABLE_STATUSES,
    AssigneeType,
    RecurrenceOrigin,
    StandaloneOrigin,
    Task,
    TaskStatus,
    TemplateOrigin,
    origin_columns,
)
from siteops.domain.template import TaskTemplate
from siteops.domain.user import UserRole
from siteops.modules.sites import service as site_service
from siteops.modules.tasks import claims, photos, state_machine, transfers
from siteops.services import checkin_service, geofence, notification_service


logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    """Normalize to UTC, treating naive datetimes as UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def duration_minutes(*, started_at: datetime, completed_at: datetime) -> int:
    """Whole minutes between start and completion, halves rounded up."""
    seconds = (completed_at - started_at).total_seconds()
    return math.floor(seconds / 60 + 0.5)


async def _require_capability(*, worker_id: str, capability: Capability) -> None:
    worker = await site_service.get_worker(worker_id=worker_id)
    if not worker.is_active or capability not in capabilities_of(worker.role):
        raise AuthorizationError("You don't have permission for this action")


async def _insert_tasks(
    *,
    params: TaskCreate,
    template_id: str | None = None,
    created_by: str | None = None,
) -> list[Task]:
    """Write one task, or one per occurrence of the recurrence rule, atomically."""
    site = await site_service.get_site(site_id=params.site_id)
    if params.assigned_to:
        await site_service.get_worker(worker_id=params.assigned_to)

    scheduled_for = params.scheduled_for or datetime.now(UTC)
    if scheduled_for.tzinfo is None:
        scheduled_for = scheduled_for.replace(tzinfo=UTC)
    due_offset = _as_utc(params.due_at) - scheduled_for if params.due_at else None

    occurrences = [scheduled_for]
    if params.recurrence is not None:
        try:
            occurrences = expand_occurrences(rule=params.recurrence, start=scheduled_for)
        except ValueError as e:
            raise ValidationError(str(e)) from e

    base: dict[str, Any] = params.model_dump(
        mode="json",
        exclude={"recurrence", "scheduled_for", "due_at", "site_id"},
    )
    base.update({"site_id": site.id, "status": TaskStatus.PENDING, "photos_uploaded": 0, "created_by": created_by})

    created: list[Task] = []
    async with db_client.transaction():
        for index, occurs_at in enumerate(occurrences):
            if params.recurrence is not None:
                origin = RecurrenceOrigin(template_id=template_id, sequence_index=index)
            elif template_id is not None:
                origin = TemplateOrigin(template_id=template_id)
            else:
                origin = StandaloneOrigin()

            data = {
                **base,
                **origin_columns(origin),
                "scheduled_for": _as_utc(occurs_at).isoformat(),
                "due_at": _as_utc(occurs_at + due_offset).isoformat() if due_offset is not None else None,
            }
            record = await db_client.create_record(collection="tasks", data=data)
            created.append(Task(**record))

    logger.info(
        "Created tasks",
        extra={"site_id": site.id, "count": len(created), "template_id": template_id, "title": params.title},
    )
    return created


async def create_task(*, params: TaskCreate, created_by: str | None = None) -> list[Task]:
    """Create a task, or a series of independent tasks for a recurrence rule.

    Args:
        params: Validated task fields
        created_by: Acting worker; when given, must be allowed to create tasks

    Returns:
        Created tasks, all PENDING, in schedule order

    Raises:
        NotFoundError: If the site or assignee does not exist
        AuthorizationError: If `created_by` may not create tasks
        ValidationError: If the recurrence rule cannot be expanded
    """
    with span("task_service.create_task"):
        if created_by is not None:
            await _require_capability(worker_id=created_by, capability=Capability.CREATE_TASKS)
        return await _insert_tasks(params=params, created_by=created_by)


async def create_template(*, params: TemplateCreate) -> TaskTemplate:
    """Create a task template."""
    with span("task_service.create_template"):
        if params.site_id:
            await site_service.get_site(site_id=params.site_id)
        record = await db_client.create_record(collection="task_templates", data=params.model_dump(mode="json"))
        logger.info("Created task template", extra={"template_id": record["id"], "title": params.title})
        return TaskTemplate(**record)


async def get_template(*, template_id: str) -> TaskTemplate:
    """Get a template by ID.

    Raises:
        NotFoundError: If the template does not exist
    """
    try:
        record = await db_client.get_record(collection="task_templates", record_id=template_id)
    except KeyError as e:
        raise NotFoundError(f"Template not found: {template_id}") from e
    return TaskTemplate(**record)


async def create_task_from_template(
    *,
    template_id: str,
    site_id: str,
    scheduled_for: datetime | None = None,
    assigned_to: str | None = None,
    recurrence: RecurrenceRule | None = None,
    created_by: str | None = None,
) -> list[Task]:
    """Instantiate a template at a site.

    The due time is the scheduled time plus the template's estimated duration.

    Raises:
        NotFoundError: If the template or site does not exist
        ValidationError: If the template is inactive or belongs to another site
    """
    with span("task_service.create_task_from_template"):
        template = await get_template(template_id=template_id)
        if not template.is_active:
            raise ValidationError(f"Template {template.title} is inactive")
        if template.site_id and template.site_id != site_id:
            raise ValidationError("Template belongs to a different store")

        scheduled = _as_utc(scheduled_for or datetime.now(UTC))
        due_at = scheduled + timedelta(minutes=template.estimated_duration) if template.estimated_duration else None
        assignee = assigned_to or template.assigned_to

        params = TaskCreate(
            site_id=site_id,
            title=template.title,
            description=template.description,
            priority=template.priority,
            assignee_type=AssigneeType.SPECIFIC_EMPLOYEE if assignee else AssigneeType.STORE_WIDE,
            assigned_to=assignee,
            scheduled_for=scheduled,
            due_at=due_at,
            estimated_duration=template.estimated_duration,
            photo_required=template.photo_required,
            photo_count=template.photo_count or 1,
            recurrence=recurrence,
        )
        if created_by is not None:
            await _require_capability(worker_id=created_by, capability=Capability.CREATE_TASKS)
        return await _insert_tasks(params=params, template_id=template.id, created_by=created_by)


def _day_bounds(moment: datetime) -> tuple[datetime, datetime]:
    start = _as_utc(moment).replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


async def ensure_tasks_for_site_today(*, site_id: str, now: datetime | None = None) -> int:
    """Create today's task from every active template that lacks one at the site.

    Days are UTC calendar days. Safe to call repeatedly.

    Returns:
        Number of tasks created
    """
    with span("task_service.ensure_tasks_for_site_today"):
        site = await site_service.get_site(site_id=site_id)
        moment = _as_utc(now or datetime.now(UTC))
        day_start, day_end = _day_bounds(moment)

        templates = [
            TaskTemplate(**r)
            for r in await db_client.list_records(
                collection="task_templates", per_page=Constants.LIST_LIMIT, filter_query='is_active = "true"'
            )
        ]
        todays = await db_client.list_records(
            collection="tasks",
            per_page=Constants.LIST_LIMIT,
            filter_query=(
                f'site_id = "{sanitize_param(site.id)}" '
                f'&& scheduled_for >= "{day_start.isoformat()}" && scheduled_for < "{day_end.isoformat()}"'
            ),
        )
        covered = {Task(**r).template_id for r in todays}

        ensured = 0
        for template in templates:
            if template.site_id and template.site_id != site.id:
                continue
            if template.id in covered:
                continue
            await create_task_from_template(template_id=template.id, site_id=site.id, scheduled_for=moment)
            ensured += 1

        logger.info("Ensured today's tasks", extra={"site_id": site.id, "ensured": ensured})
        return ensured


async def get_task(*, task_id: str) -> Task:
    """Get a task by ID.

    Raises:
        NotFoundError: If the task does not exist
    """
    return await state_machine.load_task(task_id=task_id)


async def list_tasks(*, site_id: str | None = None, status: TaskStatus | None = None) -> list[Task]:
    """List tasks, optionally for one site and by status, in schedule order."""
    clauses = []
    if site_id:
        clauses.append(f'site_id = "{sanitize_param(site_id)}"')
    if status:
        clauses.append(f'status = "{status}"')
    records = await db_client.list_records(
        collection="tasks",
        per_page=Constants.LIST_LIMIT,
        filter_query=" && ".join(clauses),
        sort="scheduled_for ASC",
    )
    return [Task(**r) for r in records]


async def list_worker_tasks(*, worker_id: str, status: TaskStatus | None = None) -> list[Task]:
    """Tasks a worker has claimed or is assigned to."""
    worker_id = sanitize_param(worker_id)
    filter_query = f'(claimed_by = "{worker_id}" || assigned_to = "{worker_id}")'
    if status:
        filter_query += f' && status = "{status}"'
    records = await db_client.list_records(
        collection="tasks", per_page=Constants.LIST_LIMIT, filter_query=filter_query, sort="scheduled_for ASC"
    )
    return [Task(**r) for r in records]


async def list_visible_tasks(
    *, worker_id: str, site_id: str | None = None, status: TaskStatus | None = None
) -> list[Task]:
    """List the tasks a worker's role lets them see.

    Employees see their own tasks, store managers see their store's tasks and
    admins see every store's, optionally narrowed by `site_id`.

    Raises:
        NotFoundError: If the worker does not exist
        ValidationError: If a store manager has no store
        AuthorizationError: If a store manager asks for another store
    """
    with span("task_service.list_visible_tasks"):
        worker = await site_service.get_worker(worker_id=worker_id)

        if worker.role == UserRole.EMPLOYEE:
            tasks = await list_worker_tasks(worker_id=worker.id, status=status)
            return [t for t in tasks if not site_id or t.site_id == site_id]

        if worker.role == UserRole.STORE_MANAGER:
            if not worker.site_id:
                raise ValidationError("Store assignment required")
            if site_id and site_id != worker.site_id:
                raise AuthorizationError("Cannot view tasks of another store")
            return await list_tasks(site_id=worker.site_id, status=status)

        return await list_tasks(site_id=site_id, status=status)


async def list_available_tasks(*, site_id: str, worker_id: str | None = None) -> list[Task]:
    """Claimable, unclaimed tasks at a site.

    With `worker_id`, tasks assigned to other workers are left out.
    """
    with span("task_service.list_available_tasks"):
        records = await db_client.list_records(
            collection="tasks",
            per_page=Constants.LIST_LIMIT,
            filter_query=(
                f'site_id = "{sanitize_param(site_id)}" '
                f"&& {state_machine.status_filter(CLAIMABLE_STATUSES)} && claimed_by = null"
            ),
            sort="scheduled_for ASC",
        )
        tasks = [Task(**r) for r in records]
        if worker_id is None:
            return tasks
        return [
            t for t in tasks if t.assignee_type == AssigneeType.STORE_WIDE or t.assigned_to == worker_id
        ]


async def claim_task(*, task_id: str, worker_id: str, point: GeoPoint | None = None) -> Task:
    """Claim a task and tell the site's managers.

    See `claims.claim` for the rules and errors.
    """
    with span("task_service.claim_task"):
        task = await claims.claim(task_id=task_id, worker_id=worker_id, point=point)
        await notification_service.notify_site_managers(
            site_id=task.site_id,
            notification_type=NotificationType.TASK_CLAIMED,
            title="Task claimed",
            message=f"{task.title} was claimed",
            data={"task_id": task.id, "worker_id": worker_id},
            exclude_worker_id=worker_id,
        )
        return task


async def start_task(*, task_id: str, worker_id: str) -> Task:
    """Mark a claimed task as in progress. Repeated calls are no-ops.

    Raises:
        NotFoundError: If the task does not exist
        AuthorizationError: If the worker is not the claimant
        ConflictError: If the task is neither claimed nor already in progress
    """
    with span("task_service.start_task"):
        task = await state_machine.load_task(task_id=task_id)
        if task.claimed_by != worker_id:
            raise AuthorizationError("Only the worker who claimed this task can start it")
        if task.status == TaskStatus.IN_PROGRESS:
            return task
        if task.status != TaskStatus.CLAIMED:
            raise ConflictError(f"Task cannot be started while {task.status}")

        started = await state_machine.mark_started(task_id=task.id)
        return started or await state_machine.load_task(task_id=task.id)


async def upload_photo(
    *,
    task_id: str,
    uploader_id: str,
    content: bytes,
    point: GeoPoint | None = None,
    filename: str | None = None,
    mime_type: str | None = None,
    task_item_id: str | None = None,
) -> ProofPhoto:
    """Record a proof photo for a task and signal progress.

    The photo bytes are handed to storage elsewhere; only their metadata is kept.

    Raises:
        ValidationError: If the content is empty
        NotFoundError: If the task or uploader does not exist
        AuthorizationError: If the uploader is not checked in, inactive, or not the assignee
        GeofenceViolation: If the location is missing or outside the applicable fence
        PhotoLimitExceeded: If the task already has all the photos it accepts
    """
    with span("task_service.upload_photo"):
        if not content:
            raise ValidationError("Photo content is empty")

        task = await state_machine.load_task(task_id=task_id)
        uploader = await site_service.get_worker(worker_id=uploader_id)
        if not uploader.is_active:
            raise AuthorizationError("Worker account is inactive")

        session = await checkin_service.require_checkin_at(worker_id=uploader.id, site_id=task.site_id)
        geofence.enforce_fence(fence=geofence.resolve_fence(task=task, session=session), point=point)

        photo = await photos.record_upload(
            task=task,
            uploader=uploader,
            capabilities=capabilities_of(uploader.role),
            size_bytes=len(content),
            point=point,
            filename=filename,
            mime_type=mime_type,
            task_item_id=task_item_id,
        )

        if task.status == TaskStatus.CLAIMED and task.started_at is None:
            await state_machine.mark_started(task_id=task.id)

        return photo


async def complete_task(
    *,
    task_id: str,
    worker_id: str,
    notes: str | None = None,
    override_photo_requirement: bool = False,
    point: GeoPoint | None = None,
) -> Task:
    """Complete a task.

    The claimant may complete their own task; workers with force-complete may
    complete any task that is not already completed. The write is conditional
    on the status and claimant observed here, so a concurrent transfer or
    completion turns into a ConflictError rather than a lost update.

    Raises:
        NotFoundError: If the task or worker does not exist
        AuthorizationError: If the worker may not complete the task or is not checked in
        ConflictError: If the task is already completed or changed meanwhile
        PhotoLimitExceeded: If required photos are missing and not overridden
        GeofenceViolation: If the location is missing or outside the applicable fence
    """
    with span("task_service.complete_task"):
        task = await state_machine.load_task(task_id=task_id)
        worker = await site_service.get_worker(worker_id=worker_id)
        if not worker.is_active:
            raise AuthorizationError("Worker account is inactive")

        capabilities = capabilities_of(worker.role)
        if task.claimed_by != worker.id and Capability.FORCE_COMPLETE not in capabilities:
            raise AuthorizationError("Only the worker who claimed this task can complete it")
        if task.status == TaskStatus.COMPLETED:
            raise ConflictError("Task is already completed")

        session = await checkin_service.require_checkin_at(worker_id=worker.id, site_id=task.site_id)

        if not photos.is_ready_to_complete(
            task=task, override=override_photo_requirement, capabilities=capabilities
        ):
            raise PhotoLimitExceeded(photos.missing_photos_message(task))

        geofence.enforce_fence(fence=geofence.resolve_fence(task=task, session=session), point=point)

        completed_at = state_machine.now_utc()
        data: dict[str, Any] = {
            "completed_at": completed_at.isoformat(),
            "completed_by": worker.id,
        }
        if task.started_at is not None:
            data["actual_duration"] = duration_minutes(
                started_at=_as_utc(task.started_at), completed_at=completed_at
            )
        if notes is not None:
            data["notes"] = notes

        completed = await state_machine.transition(
            task_id=task.id,
            from_statuses={task.status},
            to_status=TaskStatus.COMPLETED,
            data=data,
            extra_filter=state_machine.claimed_by_filter(task.claimed_by),
        )
        if completed is None:
            raise ConflictError("Task changed while completing; refresh and try again")

        await notification_service.notify_site_managers(
            site_id=completed.site_id,
            notification_type=NotificationType.TASK_COMPLETED,
            title="Task completed",
            message=f"{completed.title} was completed",
            data={"task_id": completed.id, "worker_id": worker.id, "forced": task.claimed_by != worker.id},
            exclude_worker_id=worker.id,
        )
        return completed


async def transfer_task(
    *,
    task_id: str,
    from_worker_id: str,
    to_worker_id: str,
    reason: str | None = None,
    requested_by: str | None = None,
) -> transfers.TransferResult:
    """Reassign a claimed task and tell the new holder.

    See `transfers.transfer` for the rules and errors.
    """
    with span("task_service.transfer_task"):
        result = await transfers.transfer(
            task_id=task_id,
            from_worker_id=from_worker_id,
            to_worker_id=to_worker_id,
            reason=reason,
            requested_by=requested_by,
        )
        await notification_service.notify_worker(
            worker_id=to_worker_id,
            notification_type=NotificationType.TASK_TRANSFERRED,
            title="Task transferred to you",
            message=f"{result.task.title} is now yours" + (f": {reason}" if reason else ""),
            data={"task_id": result.task.id, "from_worker_id": from_worker_id},
        )
        return result


async def mark_overdue(*, task_id: str, now: datetime | None = None) -> Task:
    """Mark a task past its due time as overdue. Idempotent for overdue tasks.

    Raises:
        NotFoundError: If the task does not exist
        ConflictError: If the task is completed
        ValidationError: If the task has no due time or is not yet due
    """
    with span("task_service.mark_overdue"):
        moment = _as_utc(now or state_machine.now_utc())
        task = await state_machine.load_task(task_id=task_id)

        if task.status == TaskStatus.OVERDUE:
            return task
        if task.status == TaskStatus.COMPLETED:
            raise ConflictError("Completed tasks cannot become overdue")
        if task.due_at is None or _as_utc(task.due_at) > moment:
            raise ValidationError("Task is not past due")

        overdue = await state_machine.transition(
            task_id=task.id,
            from_statuses={task.status},
            to_status=TaskStatus.OVERDUE,
        )
        if overdue is not None:
            return overdue

        # Lost a race: settle on whatever state won
        current = await state_machine.load_task(task_id=task.id)
        if current.status == TaskStatus.OVERDUE:
            return current
        raise ConflictError(f"Task changed to {current.status} before it could be marked overdue")


async def mark_overdue_tasks(*, now: datetime | None = None) -> int:
    """Mark every past-due, unfinished task as overdue.

    Returns:
        Number of tasks marked
    """
    with span("task_service.mark_overdue_tasks"):
        moment = _as_utc(now or state_machine.now_utc())
        open_statuses = {TaskStatus.PENDING, TaskStatus.AVAILABLE, TaskStatus.CLAIMED, TaskStatus.IN_PROGRESS}
        records = await db_client.list_records(
            collection="tasks",
            per_page=Constants.LIST_LIMIT,
            filter_query=(
                f"{state_machine.status_filter(open_statuses)} "
                f'&& due_at != null && due_at < "{moment.isoformat()}"'
            ),
        )

        marked = 0
        for record in records:
            task = Task(**record)
            result = await state_machine.transition(
                task_id=task.id,
                from_statuses={task.status},
                to_status=TaskStatus.OVERDUE,
            )
            if result is not None:
                marked += 1

        logger.info("Overdue sweep finished", extra={"candidates": len(records), "marked": marked})
        return marked
