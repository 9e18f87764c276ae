"""Routes for the caller's own time ledger."""

from __future__ import annotations

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Query, status

from ...deps import (
    CurrentUserDependency,
    DatabaseSessionDependency,
    NowDependency,
    SettingsDependency,
)
from ...schemas import (
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
    TimeEntryListResponse,
    TimeEntryRead,
    TimeEntryUpdate,
)
from ...services import TimeTrackingLedger

router = APIRouter(prefix="/time-tracking", tags=["time-tracking"])


@router.post(
    "/start",
    response_model=StartTimerResponse,
    summary="Start a timer on a task",
)
async def start_timer(
    payload: StartTimerRequest,
    session: DatabaseSessionDependency,
    settings: SettingsDependency,
    current_user: CurrentUserDependency,
    now: NowDependency,
) -> StartTimerResponse:
    entry = await TimeTrackingLedger(session, settings).start(
        current_user,
        payload.task_id,
        payload.description,
        billable=payload.billable,
        tags=payload.tags,
        now=now,
    )
    return StartTimerResponse(entry_id=entry.id, entry=TimeEntryRead.model_validate(entry))


@router.post(
    "/stop/{entry_id}",
    response_model=StopTimerResponse,
    summary="Stop the caller's active entry",
)
async def stop_timer(
    entry_id: int,
    session: DatabaseSessionDependency,
    settings: SettingsDependency,
    current_user: CurrentUserDependency,
    now: NowDependency,
    payload: StopTimerRequest | None = None,
) -> StopTimerResponse:
    entry = await TimeTrackingLedger(session, settings).stop(
        current_user,
        entry_id,
        payload.description if payload is not None else None,
        now=now,
    )
    return StopTimerResponse(entry=TimeEntryRead.model_validate(entry))


@router.post(
    "/stop-all",
    response_model=StopAllResponse,
    summary="Stop whatever the caller is tracking",
)
async def stop_all_timers(
    session: DatabaseSessionDependency,
    settings: SettingsDependency,
    current_user: CurrentUserDependency,
    now: NowDependency,
) -> StopAllResponse:
    stopped = await TimeTrackingLedger(session, settings).stop_all(current_user, now=now)
    return StopAllResponse(stopped=[TimeEntryRead.model_validate(entry) for entry in stopped])


@router.get(
    "/active",
    response_model=ActiveEntryResponse,
    summary="The caller's active entry, if any",
)
async def get_active_entry(
    session: DatabaseSessionDependency,
    settings: SettingsDependency,
    current_user: CurrentUserDependency,
) -> ActiveEntryResponse:
    entry = await TimeTrackingLedger(session, settings).active_entry_for(current_user.id)
    return ActiveEntryResponse(entry=TimeEntryRead.model_validate(entry) if entry is not None else None)


@router.post(
    "/manual",
    response_model=TimeEntryRead,
    status_code=status.HTTP_201_CREATED,
    summary="Log a closed work interval after the fact",
)
async def log_manual_entry(
    payload: ManualEntryRequest,
    session: DatabaseSessionDependency,
    settings: SettingsDependency,
    current_user: CurrentUserDependency,
    now: NowDependency,
) -> TimeEntryRead:
    entry = await TimeTrackingLedger(session, settings).log_manual(
        current_user,
        payload.task_id,
        payload.start_time,
        payload.end_time,
        description=payload.description,
        billable=payload.billable,
        tags=payload.tags,
        now=now,
    )
    return TimeEntryRead.model_validate(entry)


@router.post(
    "/break",
    response_model=TimeEntryRead,
    status_code=status.HTTP_201_CREATED,
    summary="Log a closed break interval",
)
async def log_break(
    payload: BreakEntryRequest,
    session: DatabaseSessionDependency,
    settings: SettingsDependency,
    current_user: CurrentUserDependency,
    now: NowDependency,
) -> TimeEntryRead:
    entry = await TimeTrackingLedger(session, settings).log_break(
        current_user,
        payload.start_time,
        payload.end_time,
        payload.break_type,
        payload.description,
        now=now,
    )
    return TimeEntryRead.model_validate(entry)


@router.post(
    "/break/start",
    response_model=TimeEntryRead,
    summary="Start an open break",
)
async def start_break(
    session: DatabaseSessionDependency,
    settings: SettingsDependency,
    current_user: CurrentUserDependency,
    now: NowDependency,
    payload: StartBreakRequest | None = None,
) -> TimeEntryRead:
    payload = payload or StartBreakRequest()
    entry = await TimeTrackingLedger(session, settings).start_break(
        current_user,
        payload.break_type,
        payload.description,
        now=now,
    )
    return TimeEntryRead.model_validate(entry)


@router.get(
    "/logs",
    response_model=TimeEntryListResponse,
    summary="The caller's entries, newest first",
)
async def list_time_logs(
    session: DatabaseSessionDependency,
    settings: SettingsDependency,
    current_user: CurrentUserDependency,
    start_date: Annotated[date | None, Query(alias="startDate")] = None,
    end_date: Annotated[date | None, Query(alias="endDate")] = None,
    task_id: Annotated[int | None, Query(alias="taskId", ge=1)] = None,
    billable: bool | None = None,
    include_breaks: Annotated[bool, Query(alias="includeBreaks")] = True,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> TimeEntryListResponse:
    items, total = await TimeTrackingLedger(session, settings).list_entries(
        current_user.id,
        start_date=start_date,
        end_date=end_date,
        task_id=task_id,
        billable=billable,
        include_breaks=include_breaks,
        limit=limit,
        offset=offset,
    )
    return TimeEntryListResponse(
        items=[TimeEntryRead.model_validate(entry) for entry in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/summary/daily/{day}",
    response_model=DailySummaryRead,
    summary="Work, break and billable totals for one business day",
)
async def get_daily_summary(
    day: date,
    session: DatabaseSessionDependency,
    settings: SettingsDependency,
    current_user: CurrentUserDependency,
) -> DailySummaryRead:
    summary = await TimeTrackingLedger(session, settings).daily_summary(current_user.id, day)
    return DailySummaryRead(
        day=summary.day,
        work_seconds=summary.work_seconds,
        break_seconds=summary.break_seconds,
        billable_seconds=summary.billable_seconds,
        work_minutes=round(summary.work_seconds / 60, 1),
        break_minutes=round(summary.break_seconds / 60, 1),
        billable_minutes=round(summary.billable_seconds / 60, 1),
        tasks_worked=summary.tasks_worked,
        entry_count=summary.entry_count,
    )


@router.patch(
    "/{entry_id}",
    response_model=TimeEntryRead,
    summary="Edit an entry's description, tags or billable flag",
)
async def update_time_entry(
    entry_id: int,
    payload: TimeEntryUpdate,
    session: DatabaseSessionDependency,
    settings: SettingsDependency,
    current_user: CurrentUserDependency,
) -> TimeEntryRead:
    changes = payload.model_dump(exclude_unset=True)
    entry = await TimeTrackingLedger(session, settings).update_entry(current_user, entry_id, **changes)
    return TimeEntryRead.model_validate(entry)


__all__ = ["router"]
