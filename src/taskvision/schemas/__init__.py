"""Pydantic schemas for the public API."""

from __future__ import annotations

from .auth import TokenPayload
from .base import APIModel
from .jobs import JobEnqueueResponse
from .system import ErrorResponse, HealthCheckResponse, RootResponse
from .task import (
    CarryoverStatsRead,
    DueSummaryRead,
    LocationInput,
    StatusChangeRead,
    StatusChangeRequest,
    StatusChangeResponse,
    TaskActionRequest,
    TaskAnalyticsRead,
    TaskCreate,
    TaskDetailRead,
    TaskListResponse,
    TaskLocationInput,
    TaskRead,
    TaskStateRead,
    UserTimeRead,
)
from .time_tracking import (
    ActiveEntryResponse,
    BreakEntryRequest,
    DailySummaryRead,
    ManualEntryRequest,
    StartBreakRequest,
    StartTimerRequest,
    StartTimerResponse,
    StopAllResponse,
    StopTimerRequest,
    StopTimerResponse,
    TaskTimeEntriesResponse,
    TimeEntryListResponse,
    TimeEntryRead,
    TimeEntryUpdate,
)

__all__ = [
    "APIModel",
    "ActiveEntryResponse",
    "BreakEntryRequest",
    "CarryoverStatsRead",
    "DailySummaryRead",
    "DueSummaryRead",
    "ErrorResponse",
    "HealthCheckResponse",
    "JobEnqueueResponse",
    "LocationInput",
    "ManualEntryRequest",
    "RootResponse",
    "StartBreakRequest",
    "StartTimerRequest",
    "StartTimerResponse",
    "StatusChangeRead",
    "StatusChangeRequest",
    "StatusChangeResponse",
    "StopAllResponse",
    "StopTimerRequest",
    "StopTimerResponse",
    "TaskActionRequest",
    "TaskAnalyticsRead",
    "TaskCreate",
    "TaskDetailRead",
    "TaskListResponse",
    "TaskLocationInput",
    "TaskRead",
    "TaskStateRead",
    "TaskTimeEntriesResponse",
    "TimeEntryListResponse",
    "TimeEntryRead",
    "TimeEntryUpdate",
    "TokenPayload",
    "UserTimeRead",
]
