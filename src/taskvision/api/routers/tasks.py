"""Routes for task intake, lifecycle transitions and task analytics."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from ...core.config import Settings
from ...deps import (
    CurrentUserDependency,
    DatabaseSessionDependency,
    NowDependency,
    SettingsDependency,
)
from ...models import TaskStatus, TimeLogEntry, User
from ...schemas import (
    CarryoverStatsRead,
    DueSummaryRead,
    StatusChangeRead,
    StatusChangeRequest,
    StatusChangeResponse,
    TaskActionRequest,
    TaskAnalyticsRead,
    TaskCreate,
    TaskDetailRead,
    TaskListResponse,
    TaskRead,
    TaskStateRead,
    TaskTimeEntriesResponse,
    TimeEntryRead,
    UserTimeRead,
)
from ...services import (
    CarryoverTracker,
    EfficiencyCalculator,
    LocationFix,
    TaskDetail,
    TaskService,
    TaskStateMachine,
    TimeTrackingLedger,
)
from ...services.lifecycle import Completed, TaskState

router = APIRouter(prefix="/tasks", tags=["tasks"])

LimitQuery = Annotated[
    int,
    Query(ge=1, le=100, description="Maximum number of tasks to return in a single response."),
]
OffsetQuery = Annotated[
    int,
    Query(ge=0, description="Number of tasks to skip before collecting results."),
]
StatusQuery = Annotated[
    TaskStatus | None,
    Query(alias="status", description="Filter results to tasks matching the supplied status."),
]


def _round(value: float | None, digits: int = 1) -> float | None:
    return round(value, digits) if value is not None else None


def _state_read(state: TaskState) -> TaskStateRead:
    if isinstance(state, Completed):
        return TaskStateRead(kind=state.status, since=state.at)
    return TaskStateRead(kind=state.status, since=getattr(state, "since", None))


def _map_detail(detail: TaskDetail) -> TaskDetailRead:
    base = TaskRead.model_validate(detail.task)
    return TaskDetailRead(
        **base.model_dump(),
        assignee_ids=detail.assignee_ids,
        capability=detail.capability.value,
        state=_state_read(detail.state),
    )


def _map_entry(entry: TimeLogEntry | None) -> TimeEntryRead | None:
    return TimeEntryRead.model_validate(entry) if entry is not None else None


@router.get(
    "",
    response_model=TaskListResponse,
    summary="List tasks visible to the caller",
)
async def list_tasks(
    session: DatabaseSessionDependency,
    current_user: CurrentUserDependency,
    limit: LimitQuery = 20,
    offset: OffsetQuery = 0,
    status_filter: StatusQuery = None,
) -> TaskListResponse:
    tasks, total = await TaskService(session).list_visible(
        current_user,
        status=status_filter,
        limit=limit,
        offset=offset,
    )
    return TaskListResponse(
        items=[TaskRead.model_validate(task) for task in tasks],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post(
    "",
    response_model=TaskDetailRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a task (admin only)",
)
async def create_task(
    payload: TaskCreate,
    session: DatabaseSessionDependency,
    settings: SettingsDependency,
    current_user: CurrentUserDependency,
) -> TaskDetailRead:
    location = payload.location
    detail = await TaskService(session, settings).create(
        current_user,
        title=payload.title,
        description=payload.description,
        assignment_type=payload.assignment_type,
        assignee_ids=payload.assignee_ids,
        team_id=payload.team_id,
        location_lat=location.lat if location else None,
        location_lng=location.lng if location else None,
        location_radius_meters=location.radius_meters if location else None,
        location_address=location.address if location else None,
        estimate_minutes=payload.estimate_minutes,
        due_date=payload.due_date,
    )
    return _map_detail(detail)


@router.get(
    "/upcoming-overdue",
    response_model=DueSummaryRead,
    summary="Incomplete tasks grouped by due day",
)
async def get_upcoming_overdue(
    session: DatabaseSessionDependency,
    settings: SettingsDependency,
    current_user: CurrentUserDependency,
    now: NowDependency,
) -> DueSummaryRead:
    summary = await CarryoverTracker(session, settings).summarize(now, actor=current_user)
    return DueSummaryRead(
        overdue=[TaskRead.model_validate(task) for task in summary.overdue],
        due_today=[TaskRead.model_validate(task) for task in summary.due_today],
        due_tomorrow=[TaskRead.model_validate(task) for task in summary.due_tomorrow],
        upcoming=[TaskRead.model_validate(task) for task in summary.due_within_7_days],
    )


@router.get(
    "/carryover-stats",
    response_model=CarryoverStatsRead,
    summary="Carryover statistics over the caller's visible tasks",
)
async def get_carryover_stats(
    session: DatabaseSessionDependency,
    settings: SettingsDependency,
    current_user: CurrentUserDependency,
) -> CarryoverStatsRead:
    stats = await CarryoverTracker(session, settings).stats(actor=current_user)
    return CarryoverStatsRead(
        total_tasks=stats.total_tasks,
        carried_over_tasks=stats.carried_over_tasks,
        carryover_rate=round(stats.carryover_rate, 1),
        average_carryover_count=round(stats.average_carryover_count, 2),
    )


@router.get(
    "/{task_id}",
    response_model=TaskDetailRead,
    summary="Retrieve a task with its state and the caller's capability",
)
async def get_task(
    task_id: int,
    session: DatabaseSessionDependency,
    current_user: CurrentUserDependency,
) -> TaskDetailRead:
    return _map_detail(await TaskService(session).get(task_id, current_user))


@router.get(
    "/{task_id}/history",
    response_model=list[StatusChangeRead],
    summary="Status changes of a task in commit order",
)
async def get_task_history(
    task_id: int,
    session: DatabaseSessionDependency,
    settings: SettingsDependency,
    current_user: CurrentUserDependency,
) -> list[StatusChangeRead]:
    records = await TaskStateMachine(session, settings).history(task_id, current_user)
    return [StatusChangeRead.model_validate(record) for record in records]


@router.get(
    "/{task_id}/analytics",
    response_model=TaskAnalyticsRead,
    summary="Estimate versus logged time for a task",
)
async def get_task_analytics(
    task_id: int,
    session: DatabaseSessionDependency,
    current_user: CurrentUserDependency,
    user_id: Annotated[int | None, Query(alias="userId", ge=1)] = None,
) -> TaskAnalyticsRead:
    analysis = await EfficiencyCalculator(session).analyze(task_id, current_user, user_id=user_id)
    return TaskAnalyticsRead(
        task_id=analysis.task_id,
        total_actual_minutes=round(analysis.total_actual_minutes, 1),
        estimated_minutes=analysis.estimated_minutes,
        efficiency=_round(analysis.efficiency),
        variance_minutes=_round(analysis.variance_minutes),
        variance_percentage=_round(analysis.variance_percentage),
        session_count=analysis.session_count,
        first_logged_at=analysis.first_logged_at,
        last_logged_at=analysis.last_logged_at,
        user_breakdown=[
            UserTimeRead(user_id=item.user_id, minutes=round(item.minutes, 1), sessions=item.sessions)
            for item in analysis.contributions
        ],
    )


@router.get(
    "/{task_id}/time-entries",
    response_model=TaskTimeEntriesResponse,
    summary="Time entries of a task in start order",
)
async def list_task_time_entries(
    task_id: int,
    session: DatabaseSessionDependency,
    settings: SettingsDependency,
    current_user: CurrentUserDependency,
    after_id: Annotated[int | None, Query(alias="afterId", ge=1)] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> TaskTimeEntriesResponse:
    await TaskService(session, settings).get(task_id, current_user)
    entries = await TimeTrackingLedger(session, settings).entries_for_task(
        task_id,
        after_id=after_id,
        limit=limit,
    )
    return TaskTimeEntriesResponse(
        items=[TimeEntryRead.model_validate(entry) for entry in entries],
        next_after_id=entries[-1].id if len(entries) == limit else None,
    )


async def _transition(
    *,
    session: AsyncSession,
    settings: Settings,
    actor: User,
    task_id: int,
    target: TaskStatus,
    payload: TaskActionRequest | StatusChangeRequest | None,
    now: datetime,
) -> StatusChangeResponse:
    location = payload.location if payload is not None else None
    result = await TaskStateMachine(session, settings).transition(
        task_id,
        actor,
        target,
        location=LocationFix(lat=location.lat, lng=location.lng, address=location.address) if location else None,
        notes=payload.notes if payload is not None else None,
        expected_status=payload.expected_status if payload is not None else None,
        now=now,
    )
    return StatusChangeResponse(
        status=result.task.status,
        message=result.message,
        task=TaskRead.model_validate(result.task),
        opened_entry=_map_entry(result.opened_entry),
        closed_entries=[TimeEntryRead.model_validate(entry) for entry in result.closed_entries],
    )


@router.post(
    "/{task_id}/status",
    response_model=StatusChangeResponse,
    summary="Change the status of a task",
)
async def change_task_status(
    task_id: int,
    payload: StatusChangeRequest,
    session: DatabaseSessionDependency,
    settings: SettingsDependency,
    current_user: CurrentUserDependency,
    now: NowDependency,
) -> StatusChangeResponse:
    return await _transition(
        session=session,
        settings=settings,
        actor=current_user,
        task_id=task_id,
        target=payload.new_status,
        payload=payload,
        now=now,
    )


def _action_route(path: str, target: TaskStatus, summary: str) -> None:
    async def _endpoint(
        task_id: int,
        session: DatabaseSessionDependency,
        settings: SettingsDependency,
        current_user: CurrentUserDependency,
        now: NowDependency,
        payload: TaskActionRequest | None = None,
    ) -> StatusChangeResponse:
        return await _transition(
            session=session,
            settings=settings,
            actor=current_user,
            task_id=task_id,
            target=target,
            payload=payload,
            now=now,
        )

    _endpoint.__name__ = f"{path}_task"
    router.add_api_route(
        f"/{{task_id}}/{path}",
        _endpoint,
        methods=["POST"],
        response_model=StatusChangeResponse,
        summary=summary,
    )


_action_route("start", TaskStatus.IN_PROGRESS, "Start working on a task")
_action_route("pause", TaskStatus.PAUSED, "Pause a task")
_action_route("resume", TaskStatus.IN_PROGRESS, "Resume a paused task")
_action_route("complete", TaskStatus.COMPLETED, "Complete a task")


__all__ = ["router"]
