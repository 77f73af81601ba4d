"""Site domain model."""

from pydantic import BaseModel, Field

from siteops.core.config import settings
from siteops.domain.geo import Geofence, GeoPoint


class Site(BaseModel):
    """A physical store location."""

    id: str = Field(..., description="Unique site ID from database")
    name: str = Field(..., description="Site display name")
    address: str | None = Field(default=None, description="Street address")
    latitude: float | None = Field(default=None, description="Fence center latitude")
    longitude: float | None = Field(default=None, description="Fence center longitude")
    geofence_radius_m: float | None = Field(default=None, description="Fence radius in meters")
    is_active: bool = Field(default=True, description="Inactive sites reject check-ins")

    @property
    def fence(self) -> Geofence | None:
        """The site's fence, or None when coordinates are not configured."""
        if self.latitude is None or self.longitude is None:
            return None
        return Geofence(
            center=GeoPoint(latitude=self.latitude, longitude=self.longitude),
            radius_m=self.geofence_radius_m or settings.default_geofence_radius_m,
        )
