"""Task domain models and enums."""

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, model_validator

from siteops.domain.geo import Geofence, GeoPoint


class TaskStatus(StrEnum):
    """Task lifecycle status."""

    PENDING = "pending"
    AVAILABLE = "available"
    CLAIMED = "claimed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    OVERDUE = "overdue"


# Statuses from which a task can be claimed
CLAIMABLE_STATUSES: frozenset[TaskStatus] = frozenset({TaskStatus.PENDING, TaskStatus.AVAILABLE})

# Statuses in which a claimant holds the task
IN_FLIGHT_STATUSES: frozenset[TaskStatus] = frozenset(
    {TaskStatus.CLAIMED, TaskStatus.IN_PROGRESS, TaskStatus.OVERDUE}
)


def is_claimable(status: TaskStatus | str) -> bool:
    """Return True if a task in `status` may be claimed."""
    return status in CLAIMABLE_STATUSES


class AssigneeType(StrEnum):
    """Who may claim a task."""

    STORE_WIDE = "store_wide"
    SPECIFIC_EMPLOYEE = "specific_employee"


class TaskPriority(StrEnum):
    """Task urgency."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class StandaloneOrigin(BaseModel):
    """Task created on its own."""

    kind: Literal["standalone"] = "standalone"


class TemplateOrigin(BaseModel):
    """Task instantiated once from a template."""

    kind: Literal["template"] = "template"
    template_id: str


class RecurrenceOrigin(BaseModel):
    """One occurrence of a recurring series."""

    kind: Literal["recurrence"] = "recurrence"
    template_id: str | None = None
    sequence_index: int = Field(..., ge=0)


TaskOrigin = Annotated[StandaloneOrigin | TemplateOrigin | RecurrenceOrigin, Field(discriminator="kind")]


def origin_columns(origin: StandaloneOrigin | TemplateOrigin | RecurrenceOrigin) -> dict[str, Any]:
    """Flatten an origin into its storage columns."""
    return {
        "origin_kind": origin.kind,
        "template_id": getattr(origin, "template_id", None),
        "sequence_index": getattr(origin, "sequence_index", None),
    }


class Task(BaseModel):
    """Task data transfer object."""

    id: str = Field(..., description="Unique task ID from database")
    created: str | None = Field(default=None, description="Creation timestamp")
    updated: str | None = Field(default=None, description="Last update timestamp")
    site_id: str = Field(..., description="Site the task belongs to")
    origin: TaskOrigin = Field(default_factory=StandaloneOrigin, description="How the task came to exist")
    title: str = Field(..., description="Task title")
    description: str | None = Field(default=None, description="Detailed task description")
    priority: TaskPriority = Field(default=TaskPriority.NORMAL, description="Task urgency")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Current lifecycle status")
    assignee_type: AssigneeType = Field(default=AssigneeType.STORE_WIDE, description="Who may claim")
    assigned_to: str | None = Field(default=None, description="Assignee worker ID for specific tasks")
    claimed_by: str | None = Field(default=None, description="Worker currently holding the task")
    completed_by: str | None = Field(default=None, description="Worker who completed the task")
    created_by: str | None = Field(default=None, description="Worker who created the task")
    scheduled_for: datetime | None = Field(default=None, description="When the task becomes relevant")
    due_at: datetime | None = Field(default=None, description="Deadline, after which the task is overdue")
    claimed_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    estimated_duration: int | None = Field(default=None, description="Estimated minutes")
    actual_duration: int | None = Field(default=None, description="Minutes from start to completion")
    photo_required: bool = Field(default=False, description="Completion requires proof photos")
    photo_count: int = Field(default=1, ge=0, description="Photos required for completion")
    photos_uploaded: int = Field(default=0, ge=0, description="Proof photos recorded so far")
    geofence_latitude: float | None = None
    geofence_longitude: float | None = None
    geofence_radius_m: float | None = None
    notes: str | None = None

    @model_validator(mode="before")
    @classmethod
    def build_origin(cls, data: Any) -> Any:
        """Assemble the origin variant from its storage columns."""
        if not isinstance(data, dict) or "origin" in data:
            return data
        data = dict(data)
        kind = data.pop("origin_kind", None) or "standalone"
        template_id = data.pop("template_id", None)
        sequence_index = data.pop("sequence_index", None)
        origin: dict[str, Any] = {"kind": kind}
        if template_id is not None:
            origin["template_id"] = str(template_id)
        if sequence_index is not None:
            origin["sequence_index"] = sequence_index
        data["origin"] = origin
        return data

    @property
    def fence(self) -> Geofence | None:
        """The task's own fence, set only when all three override fields are present."""
        if self.geofence_latitude is None or self.geofence_longitude is None or not self.geofence_radius_m:
            return None
        return Geofence(
            center=GeoPoint(latitude=self.geofence_latitude, longitude=self.geofence_longitude),
            radius_m=self.geofence_radius_m,
        )

    @property
    def template_id(self) -> str | None:
        return getattr(self.origin, "template_id", None)
