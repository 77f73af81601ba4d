"""Notification domain model and enums."""

import json
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class NotificationType(StrEnum):
    """Events that produce a notification record."""

    TASK_CLAIMED = "task_claimed"
    TASK_COMPLETED = "task_completed"
    TASK_TRANSFERRED = "task_transferred"


class Notification(BaseModel):
    """A stored notification awaiting delivery by another system."""

    id: str
    worker_id: str = Field(..., description="Recipient worker ID")
    type: NotificationType
    title: str
    message: str
    data: dict[str, Any] = Field(default_factory=dict)
    is_read: bool = False

    @field_validator("data", mode="before")
    @classmethod
    def decode_data(cls, v: Any) -> Any:
        """Decode JSON text as stored by SQLite."""
        if isinstance(v, str):
            return json.loads(v) if v else {}
        return v if v is not None else {}
