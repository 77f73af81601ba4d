"""Fence precedence and enforcement for location-gated task actions."""

import logging

from siteops.core.config import settings
from siteops.core.errors import GeofenceViolation
from siteops.core.geo import distance_meters, within_fence
from siteops.domain.checkin import CheckinSession
from siteops.domain.geo import Geofence, GeoPoint
from siteops.domain.task import Task


logger = logging.getLogger(__name__)


def resolve_fence(*, task: Task, session: CheckinSession | None) -> Geofence | None:
    """Pick the fence that governs an action on `task`.

    The task's own override wins; otherwise the fence snapshotted when the
    caller checked in to the task's site; otherwise no fence applies.
    """
    if task.fence is not None:
        return task.fence
    if session is not None and session.site_id == task.site_id:
        return session.fence
    return None


def enforce_fence(*, fence: Geofence | None, point: GeoPoint | None, require_point: bool = True) -> None:
    """Reject `point` if it falls outside `fence`.

    No-op when there is no fence or geofencing is switched off. A missing
    point is a violation unless `require_point` is False.

    Raises:
        GeofenceViolation: With the measured distance (rounded meters) and allowed radius
    """
    if fence is None or not settings.geofence_enforced:
        return

    if point is None:
        if not require_point:
            return
        raise GeofenceViolation(
            "Location required at this store", distance_m=None, allowed_radius_m=fence.radius_m
        )

    if within_fence(point, fence.center, fence.radius_m):
        return

    distance = round(distance_meters(point, fence.center))
    logger.info("Location outside fence", extra={"distance_m": distance, "allowed_radius_m": fence.radius_m})
    raise GeofenceViolation("Outside store geofence", distance_m=distance, allowed_radius_m=fence.radius_m)
