"""Task endpoints: creation, claiming, proof photos, completion and transfers."""

import logging
from typing import Annotated

from fastapi import APIRouter, File, Form, UploadFile, status

from siteops.core.errors import AuthorizationError
from siteops.core.permissions import Capability, capabilities_of
from siteops.domain.create_models import TaskCreate
from siteops.domain.photo import ProofPhoto
from siteops.domain.task import Task, TaskStatus
from siteops.interface.auth import CurrentWorker
from siteops.interface.schemas import CompleteRequest, LocationBody, TransferRequest, to_point
from siteops.modules.tasks import service as task_service
from siteops.modules.tasks.transfers import TransferResult


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_task(body: TaskCreate, worker: CurrentWorker) -> list[Task]:
    """Create a task or a recurring series."""
    return await task_service.create_task(params=body, created_by=worker.id)


@router.get("")
async def list_tasks(
    worker: CurrentWorker, site_id: str | None = None, status: TaskStatus | None = None
) -> list[Task]:
    """Tasks visible to the caller's role."""
    return await task_service.list_visible_tasks(worker_id=worker.id, site_id=site_id, status=status)


@router.get("/my")
async def my_tasks(worker: CurrentWorker, status: TaskStatus | None = None) -> list[Task]:
    """Tasks the caller has claimed or is assigned to."""
    return await task_service.list_worker_tasks(worker_id=worker.id, status=status)


@router.get("/available")
async def available_tasks(site_id: str, worker: CurrentWorker) -> list[Task]:
    """Tasks the caller could claim at a site."""
    return await task_service.list_available_tasks(site_id=site_id, worker_id=worker.id)


@router.get("/{task_id}")
async def get_task(task_id: str, worker: CurrentWorker) -> Task:
    return await task_service.get_task(task_id=task_id)


@router.post("/{task_id}/claim")
async def claim_task(task_id: str, worker: CurrentWorker, body: LocationBody | None = None) -> Task:
    """Claim a task for the caller."""
    point = body.point() if body else None
    return await task_service.claim_task(task_id=task_id, worker_id=worker.id, point=point)


@router.post("/{task_id}/start")
async def start_task(task_id: str, worker: CurrentWorker) -> Task:
    return await task_service.start_task(task_id=task_id, worker_id=worker.id)


@router.post("/{task_id}/photos", status_code=status.HTTP_201_CREATED)
async def upload_photo(
    task_id: str,
    worker: CurrentWorker,
    file: Annotated[UploadFile, File()],
    latitude: Annotated[float | None, Form()] = None,
    longitude: Annotated[float | None, Form()] = None,
    task_item_id: Annotated[str | None, Form()] = None,
) -> ProofPhoto:
    """Upload a proof photo for a task."""
    content = await file.read()
    return await task_service.upload_photo(
        task_id=task_id,
        uploader_id=worker.id,
        content=content,
        point=to_point(latitude, longitude),
        filename=file.filename,
        mime_type=file.content_type,
        task_item_id=task_item_id,
    )


@router.post("/{task_id}/complete")
async def complete_task(task_id: str, worker: CurrentWorker, body: CompleteRequest | None = None) -> Task:
    """Complete a task."""
    body = body or CompleteRequest()
    return await task_service.complete_task(
        task_id=task_id,
        worker_id=worker.id,
        notes=body.notes,
        override_photo_requirement=body.override_photo_requirement,
        point=body.point(),
    )


@router.post("/{task_id}/transfer")
async def transfer_task(task_id: str, body: TransferRequest, worker: CurrentWorker) -> TransferResult:
    """Hand a claimed task to another worker."""
    return await task_service.transfer_task(
        task_id=task_id,
        from_worker_id=body.from_worker_id or worker.id,
        to_worker_id=body.to_worker_id,
        reason=body.reason,
        requested_by=worker.id,
    )


@router.post("/{task_id}/overdue")
async def mark_overdue(task_id: str, worker: CurrentWorker) -> Task:
    """Mark a past-due task as overdue."""
    if Capability.MANAGE_TASKS not in capabilities_of(worker.role):
        raise AuthorizationError("You don't have permission for this action")
    return await task_service.mark_overdue(task_id=task_id)
