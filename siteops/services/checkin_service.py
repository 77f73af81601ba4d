"""Check-in service: a worker's presence at a site and the fence snapshot taken on arrival."""

import contextlib
import logging
from datetime import UTC, datetime, timedelta

from siteops.core import db_client
from siteops.core.config import settings
from siteops.core.db_client import sanitize_param
from siteops.core.errors import AuthorizationError, ValidationError
from siteops.core.logging import span
from siteops.domain.checkin import CheckinSession
from siteops.domain.geo import GeoPoint
from siteops.modules.sites import service as site_service
from siteops.services import geofence


logger = logging.getLogger(__name__)

CHECKIN_REQUIRED_MESSAGE = "Check-in required at the store to continue."


async def check_in(*, worker_id: str, site_id: str, point: GeoPoint | None = None) -> CheckinSession:
    """Check a worker in to a site, replacing any existing session (latest check-in wins).

    When the site has coordinates and geofencing is enforced, the worker must
    report a location inside the site's fence.

    Args:
        worker_id: Worker checking in
        site_id: Site to check in to
        point: Device location, if available

    Returns:
        The new session, including the site's fence as it is now

    Raises:
        NotFoundError: If the worker or site does not exist
        AuthorizationError: If the worker is inactive
        ValidationError: If the site is inactive, or a location is required but missing
        GeofenceViolation: If the location is outside the site's fence
    """
    with span("checkin_service.check_in"):
        worker = await site_service.get_worker(worker_id=worker_id)
        if not worker.is_active:
            raise AuthorizationError("Worker account is inactive")

        site = await site_service.get_site(site_id=site_id)
        if not site.is_active:
            raise ValidationError(f"Site {site.name} is not active")

        fence = site.fence
        if fence is not None and settings.geofence_enforced:
            if point is None:
                raise ValidationError("Location required to check in at this store")
            geofence.enforce_fence(fence=fence, point=point)

        now = datetime.now(UTC)
        session_data = {
            "worker_id": worker.id,
            "site_id": site.id,
            "site_name": site.name,
            "fence_latitude": fence.center.latitude if fence else None,
            "fence_longitude": fence.center.longitude if fence else None,
            "fence_radius_m": fence.radius_m if fence else None,
            "started_at": now.isoformat(),
            "expires_at": (now + timedelta(hours=settings.checkin_session_hours)).isoformat(),
        }

        async with db_client.transaction():
            existing = await db_client.get_first_record(
                collection="checkins",
                filter_query=f'worker_id = "{sanitize_param(worker.id)}"',
            )
            if existing:
                await db_client.delete_record(collection="checkins", record_id=existing["id"])
                logger.info("Replaced existing check-in", extra={"worker_id": worker.id})
            record = await db_client.create_record(collection="checkins", data=session_data)

        logger.info("Worker checked in", extra={"worker_id": worker.id, "site_id": site.id})
        return CheckinSession(**record)


async def check_out(*, worker_id: str) -> bool:
    """End the worker's session. Returns True if a session existed."""
    with span("checkin_service.check_out"):
        existing = await db_client.get_first_record(
            collection="checkins",
            filter_query=f'worker_id = "{sanitize_param(worker_id)}"',
        )
        if not existing:
            return False

        # Another request may have removed it first
        with contextlib.suppress(KeyError):
            await db_client.delete_record(collection="checkins", record_id=existing["id"])
        logger.info("Worker checked out", extra={"worker_id": worker_id})
        return True


async def get_active_session(*, worker_id: str) -> CheckinSession | None:
    """Return the worker's current session, or None if absent or expired.

    Expired sessions are deleted on read.
    """
    with span("checkin_service.get_active_session"):
        record = await db_client.get_first_record(
            collection="checkins",
            filter_query=f'worker_id = "{sanitize_param(worker_id)}"',
        )
        if not record:
            return None

        session = CheckinSession(**record)
        if session.is_expired():
            with contextlib.suppress(KeyError):
                await db_client.delete_record(collection="checkins", record_id=session.id)
            logger.info("Deleted expired check-in", extra={"worker_id": worker_id})
            return None

        return session


async def require_checkin_at(*, worker_id: str, site_id: str) -> CheckinSession | None:
    """Return the worker's session, enforcing a check-in at `site_id` when required.

    Raises:
        AuthorizationError: If check-in is required and the worker is not checked in at the site
    """
    session = await get_active_session(worker_id=worker_id)
    if not settings.require_checkin:
        return session

    if session is None or session.site_id != site_id:
        logger.info(
            "Action blocked without check-in",
            extra={"worker_id": worker_id, "site_id": site_id, "session_site_id": session and session.site_id},
        )
        raise AuthorizationError(CHECKIN_REQUIRED_MESSAGE)
    return session
