"""Schemas for the time ledger API."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import Field, model_validator

from ..models import BreakType, TimeEntrySource
from .base import APIModel


class TimeEntryRead(APIModel):
    """A time segment; ``durationMinutes`` is derived from whole seconds."""

    id: int
    user_id: int
    task_id: int | None = None
    start_time: datetime
    end_time: datetime | None = None
    duration_seconds: int | None = None
    duration_minutes: float | None = None
    is_break: bool = False
    break_type: BreakType | None = None
    billable: bool = True
    tags: list[str] = Field(default_factory=list)
    description: str | None = None
    source: TimeEntrySource
    closed_by_reaper: bool = False
    is_active: bool = False

    @model_validator(mode="after")
    def _derive_minutes(self) -> "TimeEntryRead":
        if self.duration_seconds is not None:
            self.duration_minutes = round(self.duration_seconds / 60, 2)
        return self


class StartTimerRequest(APIModel):
    task_id: int = Field(ge=1)
    description: str | None = Field(default=None, max_length=1000)
    billable: bool = True
    tags: list[str] = Field(default_factory=list)


class StartTimerResponse(APIModel):
    entry_id: int
    entry: TimeEntryRead


class StopTimerRequest(APIModel):
    description: str | None = Field(default=None, max_length=1000)


class StopTimerResponse(APIModel):
    entry: TimeEntryRead


class StopAllResponse(APIModel):
    stopped: list[TimeEntryRead] = Field(default_factory=list)


class ActiveEntryResponse(APIModel):
    """The caller's single active segment, or ``null`` when idle."""

    entry: TimeEntryRead | None = None


class ManualEntryRequest(APIModel):
    task_id: int = Field(ge=1)
    start_time: datetime
    end_time: datetime
    description: str | None = Field(default=None, max_length=1000)
    billable: bool = True
    tags: list[str] = Field(default_factory=list)


class BreakEntryRequest(APIModel):
    start_time: datetime
    end_time: datetime
    break_type: BreakType = BreakType.OTHER
    description: str | None = Field(default=None, max_length=1000)


class StartBreakRequest(APIModel):
    break_type: BreakType = BreakType.OTHER
    description: str | None = Field(default=None, max_length=1000)


class TimeEntryUpdate(APIModel):
    """Partial update of an entry's annotations."""

    description: str | None = Field(default=None, max_length=1000)
    tags: list[str] | None = None
    billable: bool | None = None

    @model_validator(mode="after")
    def _ensure_payload_not_empty(self) -> "TimeEntryUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update.")
        return self


class TimeEntryListResponse(APIModel):
    items: list[TimeEntryRead]
    total: int
    limit: int
    offset: int


class TaskTimeEntriesResponse(APIModel):
    """A page of a task's entries in start order; pass ``nextAfterId`` to continue."""

    items: list[TimeEntryRead]
    next_after_id: int | None = None


class DailySummaryRead(APIModel):
    day: date
    work_seconds: int
    break_seconds: int
    billable_seconds: int
    work_minutes: float
    break_minutes: float
    billable_minutes: float
    tasks_worked: int
    entry_count: int


__all__ = [
    "ActiveEntryResponse",
    "BreakEntryRequest",
    "DailySummaryRead",
    "ManualEntryRequest",
    "StartBreakRequest",
    "StartTimerRequest",
    "StartTimerResponse",
    "StopAllResponse",
    "StopTimerRequest",
    "StopTimerResponse",
    "TaskTimeEntriesResponse",
    "TimeEntryListResponse",
    "TimeEntryRead",
    "TimeEntryUpdate",
]
