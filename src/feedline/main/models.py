from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Status(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"

    @classmethod
    def active(cls) -> tuple["Status", ...]:
        return (cls.QUEUED, cls.RUNNING)

    @property
    def is_terminal(self) -> bool:
        return self in (Status.FINISHED, Status.FAILED)


class JobType(str, Enum):
    GRAB = "grab"
    PROCESS = "process"
    CRUNCH = "crunch"
    ANALYZE = "analyze"
    SAMPLE = "sample"


class QueueKind(str, Enum):
    """Which of a category's queue families a message is sent to."""

    GRAB = "grab"
    PROCESS = "process"
    CRUNCH = "crunch"
    ANALYZE = "analyze"
    SAMPLE = "sample"


class NotificationEvent(str, Enum):
    SEARCH_SUCCESS = "search_success"
    SEARCH_FAIL = "search_fail"
    PLAYER_PENDING = "player_pending"
    CRUNCH_PENDING = "crunch_pending"
    DONE = "done"
    FAILED = "failed"


class SubjectRecord(BaseModel):
    """A subject as returned by the upstream search API."""

    id: str
    name: str
    region: str
    created_at: Optional[datetime] = None
    raw: dict[str, Any] = Field(default_factory=dict)


class SubjectRef(BaseModel):
    """Merged lookup result from the relational store and the upstream API."""

    model_config = ConfigDict(frozen=True)

    name: str
    id: str
    region: str
    last_update: Optional[datetime] = None
    last_match_created_date: Optional[datetime] = None
    source: Literal["api", "db"]


class GrabParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subject_filter: Optional[str] = Field(default=None, alias="subjectFilter")
    window_start: datetime = Field(alias="windowStart")
    window_end: Optional[datetime] = Field(default=None, alias="windowEnd")
    game_mode_filter: str = Field(default="", alias="gameModeFilter")
    sort: str = "createdAt"


class GrabPayload(BaseModel):
    region: str
    params: GrabParams

    def to_message(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class QueueMessage(BaseModel):
    """Envelope pushed onto a queue: body plus transport headers."""

    body: Any
    type: Optional[str] = None
    headers: dict[str, str] = Field(default_factory=dict)


class GeneralError(BaseModel):
    message: str
    error_code: int
