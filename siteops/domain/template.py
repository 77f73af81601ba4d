"""Task template domain model."""

from pydantic import BaseModel, Field

from siteops.domain.task import TaskPriority


class TaskTemplate(BaseModel):
    """Reusable definition from which concrete tasks are created."""

    id: str = Field(..., description="Template record ID")
    title: str = Field(..., description="Title copied to each task")
    description: str | None = None
    site_id: str | None = Field(default=None, description="Restrict to one site; None applies to every site")
    estimated_duration: int | None = Field(default=None, description="Minutes; sets the due time of created tasks")
    photo_required: bool = False
    photo_count: int = Field(default=1, ge=0)
    assigned_to: str | None = Field(default=None, description="Default assignee for created tasks")
    priority: TaskPriority = TaskPriority.NORMAL
    is_active: bool = True
