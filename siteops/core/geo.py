"""Great-circle distance and fence containment."""

import math

from siteops.core.config import Constants
from siteops.domain.geo import Geofence, GeoPoint


def distance_meters(a: GeoPoint, b: GeoPoint) -> float:
    """Haversine distance between two points on a sphere of the Earth's mean radius."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lng = math.radians(b.longitude - a.longitude)

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    # Clamp: rounding can push h a hair above 1 for antipodal points
    return 2 * Constants.EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(h)))


def within_fence(point: GeoPoint, center: GeoPoint, radius_m: float) -> bool:
    """Return True if `point` lies inside or exactly on the fence boundary."""
    return distance_meters(point, center) <= radius_m


def contains(fence: Geofence, point: GeoPoint) -> bool:
    """Shorthand for `within_fence` on a Geofence value."""
    return within_fence(point, fence.center, fence.radius_m)
