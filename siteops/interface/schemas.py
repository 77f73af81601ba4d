"""Request bodies for the HTTP API."""

from pydantic import BaseModel, Field

from siteops.core.errors import ValidationError
from siteops.domain.geo import GeoPoint


class LocationBody(BaseModel):
    """Optional device location attached to an action."""

    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)

    def point(self) -> GeoPoint | None:
        return to_point(self.latitude, self.longitude)


def to_point(latitude: float | None, longitude: float | None) -> GeoPoint | None:
    """Build a point from optional coordinates, which must come as a pair."""
    if latitude is None and longitude is None:
        return None
    if latitude is None or longitude is None:
        raise ValidationError("Latitude and longitude must be sent together")
    return GeoPoint(latitude=latitude, longitude=longitude)


class CheckinRequest(LocationBody):
    site_id: str


class CompleteRequest(LocationBody):
    notes: str | None = None
    override_photo_requirement: bool = False


class TransferRequest(BaseModel):
    to_worker_id: str
    from_worker_id: str | None = Field(default=None, description="Defaults to the caller")
    reason: str | None = None
