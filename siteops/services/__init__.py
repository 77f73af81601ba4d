from siteops.services import checkin_service, geofence, notification_service


__all__ = [
    "checkin_service",
    "geofence",
    "notification_service",
]
