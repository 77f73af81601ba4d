"""Proof photo domain model."""

from datetime import datetime

from pydantic import BaseModel, Field


class ProofPhoto(BaseModel):
    """Immutable record of an uploaded proof photo. The bytes live elsewhere."""

    id: str = Field(..., description="Photo record ID")
    task_id: str = Field(..., description="Task the photo proves")
    task_item_id: str | None = Field(default=None, description="Checklist item within the task")
    site_id: str = Field(..., description="Site of the task")
    uploaded_by: str = Field(..., description="Uploader worker ID")
    latitude: float | None = Field(default=None, description="Capture latitude")
    longitude: float | None = Field(default=None, description="Capture longitude")
    filename: str | None = None
    mime_type: str | None = None
    size_bytes: int = Field(..., ge=0)
    uploaded_at: datetime
