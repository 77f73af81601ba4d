"""Check-in endpoints for the calling worker."""

from typing import Any

from fastapi import APIRouter, status

from siteops.domain.checkin import CheckinSession
from siteops.interface.auth import CurrentWorker
from siteops.interface.schemas import CheckinRequest
from siteops.services import checkin_service


router = APIRouter(prefix="/checkins", tags=["checkins"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def check_in(body: CheckinRequest, worker: CurrentWorker) -> CheckinSession:
    """Check in to a site."""
    return await checkin_service.check_in(worker_id=worker.id, site_id=body.site_id, point=body.point())


@router.get("/me")
async def my_checkin(worker: CurrentWorker) -> dict[str, Any]:
    """Return the caller's active session, if any."""
    session = await checkin_service.get_active_session(worker_id=worker.id)
    return {"checked_in": session is not None, "session": session.model_dump(mode="json") if session else None}


@router.delete("/me")
async def check_out(worker: CurrentWorker) -> dict[str, bool]:
    """End the caller's session."""
    return {"checked_out": await checkin_service.check_out(worker_id=worker.id)}
