"""Check-in session domain model."""

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from siteops.domain.geo import Geofence, GeoPoint


class CheckinSession(BaseModel):
    """A worker's presence at a site, with the site's fence as it was at check-in."""

    id: str = Field(..., description="Session record ID")
    worker_id: str = Field(..., description="Checked-in worker")
    site_id: str = Field(..., description="Site checked in to")
    site_name: str = Field(..., description="Site name at check-in")
    fence_latitude: float | None = None
    fence_longitude: float | None = None
    fence_radius_m: float | None = None
    started_at: datetime = Field(..., description="Check-in time")
    expires_at: datetime = Field(..., description="Time after which the session is ignored")

    @property
    def fence(self) -> Geofence | None:
        """Snapshot of the site fence taken at check-in."""
        if self.fence_latitude is None or self.fence_longitude is None or not self.fence_radius_m:
            return None
        return Geofence(
            center=GeoPoint(latitude=self.fence_latitude, longitude=self.fence_longitude),
            radius_m=self.fence_radius_m,
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(UTC)) >= self.expires_at
