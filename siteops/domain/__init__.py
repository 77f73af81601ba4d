"""Domain models and DTOs."""

from siteops.domain.checkin import CheckinSession
from siteops.domain.create_models import (
    RecurrenceFrequency,
    RecurrenceRule,
    SiteCreate,
    TaskCreate,
    TemplateCreate,
    WorkerCreate,
)
from siteops.domain.geo import Geofence, GeoPoint
from siteops.domain.notification import Notification, NotificationType
from siteops.domain.photo import ProofPhoto
from siteops.domain.site import Site
from siteops.domain.task import (
    AssigneeType,
    RecurrenceOrigin,
    StandaloneOrigin,
    Task,
    TaskPriority,
    TaskStatus,
    TemplateOrigin,
    is_claimable,
)
from siteops.domain.template import TaskTemplate
from siteops.domain.transfer import TransferRecord
from siteops.domain.user import UserRole, Worker


__all__ = [
    "AssigneeType",
    "CheckinSession",
    "GeoPoint",
    "Geofence",
    "Notification",
    "NotificationType",
    "ProofPhoto",
    "RecurrenceFrequency",
    "RecurrenceOrigin",
    "RecurrenceRule",
    "Site",
    "SiteCreate",
    "StandaloneOrigin",
    "Task",
    "TaskCreate",
    "TaskPriority",
    "TaskStatus",
    "TaskTemplate",
    "TemplateCreate",
    "TemplateOrigin",
    "TransferRecord",
    "UserRole",
    "Worker",
    "WorkerCreate",
    "is_claimable",
]
