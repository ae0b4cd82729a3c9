from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from feedline.main.models import GrabPayload, JobType, Status


class Job(BaseModel):
    type: JobType
    category: str
    subject: Optional[str] = None
    fingerprint: str
    payload: dict[str, Any] = Field(default_factory=dict)
    priority: int = 0
    status: Status = Status.QUEUED


class JobInDb(Job):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class EnqueueResult(BaseModel):
    job_id: Optional[int] = None
    created: bool = False
    payloads: list[GrabPayload] = Field(default_factory=list)
