"""Pydantic models for creating records in database."""

from datetime import datetime
from enum import StrEnum
from typing import Self

from pydantic import BaseModel, Field, field_validator, model_validator

from siteops.core.config import Constants
from siteops.domain.task import AssigneeType, TaskPriority
from siteops.domain.user import UserRole


class RecurrenceFrequency(StrEnum):
    """Cadence of a recurring task series."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"  # cron expression


class RecurrenceRule(BaseModel):
    """How many occurrences to create and how far apart."""

    frequency: RecurrenceFrequency = Field(..., description="daily, weekly, monthly or custom")
    interval: int = Field(default=1, ge=1, description="Step between occurrences in frequency units")
    count: int = Field(default=1, ge=1, le=Constants.MAX_RECURRENCE_OCCURRENCES, description="Occurrences to create")
    cron: str | None = Field(default=None, description="Cron expression for custom frequency")

    @model_validator(mode="after")
    def validate_cron_for_custom(self) -> Self:
        """Custom frequency needs a cron expression; other frequencies must not carry one."""
        if self.frequency == RecurrenceFrequency.CUSTOM and not self.cron:
            raise ValueError("Custom recurrence requires a cron expression")
        if self.frequency != RecurrenceFrequency.CUSTOM and self.cron:
            raise ValueError("Cron expression is only valid with custom recurrence")
        return self


class TaskCreate(BaseModel):
    """Pydantic model for creating one task or a recurring series."""

    site_id: str = Field(..., description="Site the task belongs to")
    title: str = Field(..., description="Task title")
    description: str | None = Field(default=None, description="Detailed description")
    priority: TaskPriority = Field(default=TaskPriority.NORMAL)
    assignee_type: AssigneeType = Field(default=AssigneeType.STORE_WIDE)
    assigned_to: str | None = Field(default=None, description="Assignee for specific-employee tasks")
    scheduled_for: datetime | None = Field(default=None, description="Defaults to now")
    due_at: datetime | None = Field(default=None, description="Deadline of the first occurrence")
    estimated_duration: int | None = Field(default=None, ge=0, description="Estimated minutes")
    photo_required: bool = False
    photo_count: int = Field(default=Constants.DEFAULT_PHOTO_COUNT, ge=0)
    geofence_latitude: float | None = Field(default=None, ge=-90, le=90)
    geofence_longitude: float | None = Field(default=None, ge=-180, le=180)
    geofence_radius_m: float | None = Field(default=None, gt=0)
    notes: str | None = None
    recurrence: RecurrenceRule | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Validate title is not blank."""
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be empty")
        return v

    @model_validator(mode="after")
    def validate_consistency(self) -> Self:
        """Check geofence completeness, assignee mode and time ordering."""
        fence_fields = (self.geofence_latitude, self.geofence_longitude, self.geofence_radius_m)
        if any(f is not None for f in fence_fields) and not all(f is not None for f in fence_fields):
            raise ValueError("Geofence override needs latitude, longitude and radius together")

        if self.assigned_to and self.assignee_type == AssigneeType.STORE_WIDE:
            self.assignee_type = AssigneeType.SPECIFIC_EMPLOYEE
        if self.assignee_type == AssigneeType.SPECIFIC_EMPLOYEE and not self.assigned_to:
            raise ValueError("Specific-employee tasks need an assignee")

        if self.scheduled_for and self.due_at and self.due_at < self.scheduled_for:
            raise ValueError("Due time cannot be before the scheduled time")
        return self


class TemplateCreate(BaseModel):
    """Pydantic model for creating a task template."""

    title: str
    description: str | None = None
    site_id: str | None = None
    estimated_duration: int | None = Field(default=None, ge=0)
    photo_required: bool = False
    photo_count: int = Field(default=Constants.DEFAULT_PHOTO_COUNT, ge=0)
    assigned_to: str | None = None
    priority: TaskPriority = TaskPriority.NORMAL
    is_active: bool = True

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Validate title is not blank."""
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be empty")
        return v


class SiteCreate(BaseModel):
    """Pydantic model for creating a site record."""

    name: str = Field(..., min_length=1)
    address: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    geofence_radius_m: float | None = Field(default=None, gt=0)
    is_active: bool = True

    @model_validator(mode="after")
    def validate_coordinates(self) -> Self:
        """Latitude and longitude come as a pair."""
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("Latitude and longitude must be set together")
        return self


class WorkerCreate(BaseModel):
    """Pydantic model for creating a worker record."""

    name: str = Field(..., min_length=1)
    email: str | None = None
    role: UserRole = UserRole.EMPLOYEE
    site_id: str | None = None
    is_active: bool = True
