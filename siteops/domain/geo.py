"""Geographic value objects."""

from pydantic import BaseModel, Field


class GeoPoint(BaseModel):
    """A WGS84 coordinate reported by a device or configured for a site."""

    model_config = {"frozen": True}

    latitude: float = Field(..., ge=-90, le=90, description="Latitude in decimal degrees")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude in decimal degrees")


class Geofence(BaseModel):
    """Circular fence around a center point."""

    model_config = {"frozen": True}

    center: GeoPoint = Field(..., description="Fence center")
    radius_m: float = Field(..., gt=0, description="Fence radius in meters")
