"""Task transfer domain model."""

from datetime import datetime

from pydantic import BaseModel, Field


class TransferRecord(BaseModel):
    """Immutable log entry for a claim handed from one worker to another."""

    id: str
    task_id: str
    from_worker_id: str = Field(..., description="Previous claimant")
    to_worker_id: str = Field(..., description="New claimant")
    reason: str | None = None
    transferred_at: datetime
