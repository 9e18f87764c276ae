"""Task-related request and response schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, model_validator

from ..models import AssignmentType, Task, TaskStatus
from .base import APIModel
from .time_tracking import TimeEntryRead

TASK_READ_EXAMPLE = {
    "id": 7,
    "title": "Inspect pump station",
    "description": "Quarterly inspection of the north pump station.",
    "status": TaskStatus.IN_PROGRESS.value,
    "statusChangedAt": "2024-05-02T08:15:00Z",
    "assignmentType": AssignmentType.TEAM.value,
    "assignedTeamId": 3,
    "createdById": 1,
    "location": {"lat": 6.9271, "lng": 79.8612, "radiusMeters": 50, "address": "Pump station N"},
    "estimateMinutes": 90,
    "dueDate": "2024-05-02T17:00:00Z",
    "originalDueDate": None,
    "carryoverCount": 0,
    "createdAt": "2024-05-01T12:00:00Z",
    "updatedAt": "2024-05-02T08:15:00Z",
}


class LocationInput(APIModel):
    """A device location fix supplied with a status change."""

    lat: float
    lng: float
    address: str | None = Field(default=None, max_length=500)


class TaskLocationInput(APIModel):
    lat: float
    lng: float
    radius_meters: int | None = Field(default=None, description="Defaults to the configured radius.")
    address: str | None = Field(default=None, max_length=500)


class TaskLocationRead(APIModel):
    lat: float
    lng: float
    radius_meters: int
    address: str | None = None


class TaskCreate(APIModel):
    """Payload for creating a new task."""

    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None)
    assignment_type: AssignmentType = Field(default=AssignmentType.INDIVIDUAL)
    assignee_ids: list[int] = Field(default_factory=list)
    team_id: int | None = Field(default=None, ge=1)
    location: TaskLocationInput | None = Field(default=None)
    estimate_minutes: int | None = Field(default=None, ge=0)
    due_date: datetime | None = Field(default=None)


class TaskRead(APIModel):
    """Public representation of a task."""

    model_config = {"json_schema_extra": {"example": TASK_READ_EXAMPLE}}

    id: int
    title: str
    description: str | None = None
    status: TaskStatus
    status_changed_at: datetime | None = None
    assignment_type: AssignmentType
    assigned_team_id: int | None = None
    created_by_id: int
    location: TaskLocationRead | None = None
    estimate_minutes: int | None = None
    due_date: datetime | None = None
    original_due_date: datetime | None = None
    carryover_count: int = 0
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="before")
    @classmethod
    def _nest_location(cls, data: object) -> object:
        if not isinstance(data, Task):
            return data
        fields = {
            name: getattr(data, name)
            for name in (
                "id",
                "title",
                "description",
                "status",
                "status_changed_at",
                "assignment_type",
                "assigned_team_id",
                "created_by_id",
                "estimate_minutes",
                "due_date",
                "original_due_date",
                "carryover_count",
                "created_at",
                "updated_at",
            )
        }
        if data.has_location:
            fields["location"] = {
                "lat": data.location_lat,
                "lng": data.location_lng,
                "radius_meters": data.location_radius_meters,
                "address": data.location_address,
            }
        return fields


class TaskStateRead(APIModel):
    """Tagged status: ``since`` is when the current status was entered."""

    kind: TaskStatus
    since: datetime | None = None


class TaskDetailRead(TaskRead):
    assignee_ids: list[int] = Field(default_factory=list)
    capability: str
    state: TaskStateRead


class TaskListResponse(APIModel):
    """Paginated collection of tasks."""

    items: list[TaskRead]
    total: int
    limit: int
    offset: int


class StatusChangeRequest(APIModel):
    """Body of ``POST /tasks/{id}/status``.

    ``expectedStatus`` is the status the client last saw; when it no longer
    matches, the request fails with 409 and the current status.
    """

    new_status: TaskStatus
    location: LocationInput | None = None
    notes: str | None = Field(default=None, max_length=500)
    expected_status: TaskStatus | None = None


class TaskActionRequest(APIModel):
    """Optional body for the start/pause/resume/complete shortcuts."""

    location: LocationInput | None = None
    notes: str | None = Field(default=None, max_length=500)
    expected_status: TaskStatus | None = None


class StatusChangeResponse(APIModel):
    status: TaskStatus
    message: str
    task: TaskRead
    opened_entry: TimeEntryRead | None = None
    closed_entries: list[TimeEntryRead] = Field(default_factory=list)


class StatusChangeRead(APIModel):
    id: int
    task_id: int
    user_id: int
    from_status: TaskStatus
    to_status: TaskStatus
    changed_at: datetime
    latitude: float | None = None
    longitude: float | None = None
    address: str | None = None
    notes: str | None = None
    is_override: bool = False


class DueSummaryRead(APIModel):
    """Incomplete tasks bucketed by calendar day of their due date."""

    overdue: list[TaskRead] = Field(default_factory=list)
    due_today: list[TaskRead] = Field(default_factory=list)
    due_tomorrow: list[TaskRead] = Field(default_factory=list)
    upcoming: list[TaskRead] = Field(default_factory=list)


class CarryoverStatsRead(APIModel):
    total_tasks: int = Field(ge=0)
    carried_over_tasks: int = Field(ge=0)
    carryover_rate: float = Field(ge=0, description="Percent of tasks carried over at least once.")
    average_carryover_count: float = Field(ge=0)


class UserTimeRead(APIModel):
    user_id: int
    minutes: float
    sessions: int


class TaskAnalyticsRead(APIModel):
    """Estimate versus logged time; minutes are rounded to one decimal."""

    task_id: int
    total_actual_minutes: float
    estimated_minutes: int | None = None
    efficiency: float | None = None
    variance_minutes: float | None = None
    variance_percentage: float | None = None
    session_count: int
    first_logged_at: datetime | None = None
    last_logged_at: datetime | None = None
    user_breakdown: list[UserTimeRead] = Field(default_factory=list)


__all__ = [
    "CarryoverStatsRead",
    "DueSummaryRead",
    "LocationInput",
    "StatusChangeRead",
    "StatusChangeRequest",
    "StatusChangeResponse",
    "TaskActionRequest",
    "TaskAnalyticsRead",
    "TaskCreate",
    "TaskDetailRead",
    "TaskListResponse",
    "TaskLocationInput",
    "TaskLocationRead",
    "TaskRead",
    "TaskStateRead",
    "UserTimeRead",
]
