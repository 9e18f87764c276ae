"""Per-user time ledger.

Each user owns at most one active segment (``end_time IS NULL``) across tasks
and breaks. Writers take the user's row lock before checking for an active
segment; the partial unique index on ``time_log_entries`` backs that check up
if two writers race anyway. Segments are never merged: pausing closes one and
resuming opens another, and reports sum the closed ones.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Sequence

from sqlalchemy.exc import IntegrityError
from sqlmodel.ext.asyncio.session import AsyncSession

from ..core.config import Settings, get_settings
from ..errors import (
    AlreadyTrackingError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from ..models import BreakType, TaskStatus, TimeEntrySource, TimeLogEntry, User, utcnow
from ..repositories import TaskRepository, TimeLogRepository, UserRepository
from .capabilities import CapabilityResolver

logger = logging.getLogger(__name__)

_UNSET: Any = object()


def describe_entry(entry: TimeLogEntry) -> dict[str, Any]:
    """Compact JSON-safe description used in error details."""

    return {
        "id": entry.id,
        "taskId": entry.task_id,
        "startTime": entry.start_time.isoformat(),
        "isBreak": entry.is_break,
    }


def _seconds_between(start: datetime, end: datetime) -> int:
    return max(round((end - start).total_seconds()), 0)


@dataclass(slots=True)
class DailySummary:
    day: date
    work_seconds: int
    break_seconds: int
    billable_seconds: int
    tasks_worked: int
    entry_count: int


class TimeTrackingLedger:
    """Open, close and query time segments."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._entries = TimeLogRepository(session)
        self._users = UserRepository(session)
        self._tasks = TaskRepository(session)
        self._capabilities = CapabilityResolver(session)

    # Flush-only primitives shared with the lifecycle state machine.

    async def _lock_user(self, user_id: int) -> User:
        user = await self._users.lock(user_id)
        if user is None:
            raise NotFoundError("User not found.", details={"userId": user_id})
        return user

    async def _insert_active(self, entry: TimeLogEntry) -> TimeLogEntry:
        user_id = entry.user_id
        try:
            return await self._entries.add(entry)
        except IntegrityError:
            await self._session.rollback()
            active = await self._entries.active_for_user(user_id)
            if active is None:
                raise
            raise AlreadyTrackingError(active_entry=describe_entry(active)) from None

    async def open_segment(
        self,
        user_id: int,
        task_id: int,
        *,
        at: datetime,
        reuse_existing: bool = False,
        description: str | None = None,
        billable: bool = True,
        tags: Sequence[str] | None = None,
    ) -> TimeLogEntry:
        """Insert an active work segment without committing.

        With ``reuse_existing`` an active segment of the same user on the same
        task is returned as-is instead of raising.
        """

        await self._lock_user(user_id)
        active = await self._entries.active_for_user(user_id)
        if active is not None:
            if reuse_existing and active.task_id == task_id and not active.is_break:
                return active
            raise AlreadyTrackingError(active_entry=describe_entry(active))
        entry = TimeLogEntry(
            user_id=user_id,
            task_id=task_id,
            start_time=at,
            description=description,
            billable=billable,
            tags=list(tags or []),
            source=TimeEntrySource.TIMER,
        )
        return await self._insert_active(entry)

    async def ensure_can_open(self, user_id: int, task_id: int) -> None:
        """Lock the user and fail unless a segment on ``task_id`` could be opened."""

        await self._lock_user(user_id)
        active = await self._entries.active_for_user(user_id)
        if active is not None and (active.task_id != task_id or active.is_break):
            raise AlreadyTrackingError(active_entry=describe_entry(active))

    async def _close(self, entry: TimeLogEntry, *, at: datetime, closed_by_reaper: bool = False) -> bool:
        end_time = max(at, entry.start_time)
        closed = await self._entries.close_if_active(
            entry.id,
            end_time=end_time,
            duration_seconds=_seconds_between(entry.start_time, end_time),
            closed_by_reaper=closed_by_reaper,
        )
        await self._entries.refresh(entry)
        return closed

    async def close_segments_for_task(self, task_id: int, *, at: datetime) -> list[TimeLogEntry]:
        """Close every active segment on ``task_id`` without committing."""

        closed: list[TimeLogEntry] = []
        for entry in await self._entries.active_for_task(task_id):
            if await self._close(entry, at=at):
                closed.append(entry)
        return closed

    # Public operations; each commits its own unit of work.

    async def start(
        self,
        actor: User,
        task_id: int,
        description: str | None = None,
        *,
        billable: bool = True,
        tags: Sequence[str] | None = None,
        now: datetime | None = None,
    ) -> TimeLogEntry:
        task = await self._tasks.get(task_id)
        if task is None:
            raise NotFoundError("Task not found.", details={"taskId": task_id})
        capability = await self._capabilities.resolve(task, actor)
        if not capability.can_view:
            raise PermissionDeniedError(
                "You are not assigned to this task.",
                details={"capability": capability.value},
            )
        if task.status == TaskStatus.COMPLETED:
            raise ValidationError(
                "Cannot start a timer on a completed task.",
                details={"taskId": task_id, "status": task.status.value},
            )

        entry = await self.open_segment(
            actor.id,
            task_id,
            at=now or utcnow(),
            description=description,
            billable=billable,
            tags=tags,
        )
        await self._session.commit()
        await self._entries.refresh(entry)
        logger.info(
            "Timer started",
            extra={"entry_id": entry.id, "task_id": task_id, "user_id": actor.id},
        )
        return entry

    async def start_break(
        self,
        actor: User,
        break_type: BreakType,
        description: str | None = None,
        *,
        now: datetime | None = None,
    ) -> TimeLogEntry:
        await self._lock_user(actor.id)
        active = await self._entries.active_for_user(actor.id)
        if active is not None:
            raise AlreadyTrackingError(active_entry=describe_entry(active))
        entry = await self._insert_active(
            TimeLogEntry(
                user_id=actor.id,
                start_time=now or utcnow(),
                is_break=True,
                break_type=break_type,
                billable=False,
                description=description,
                source=TimeEntrySource.TIMER,
            )
        )
        await self._session.commit()
        await self._entries.refresh(entry)
        logger.info(
            "Break started",
            extra={"entry_id": entry.id, "user_id": actor.id, "break_type": break_type.value},
        )
        return entry

    async def stop(
        self,
        actor: User,
        entry_id: int,
        description: str | None = None,
        *,
        now: datetime | None = None,
    ) -> TimeLogEntry:
        """Close the caller's active entry ``entry_id``."""

        entry = await self._entries.get(entry_id)
        if entry is None or entry.user_id != actor.id or entry.end_time is not None:
            raise NotFoundError("No active time entry with that id.", details={"entryId": entry_id})
        if not await self._close(entry, at=now or utcnow()):
            raise NotFoundError("No active time entry with that id.", details={"entryId": entry_id})
        if description is not None:
            entry.description = description
        await self._session.commit()
        await self._entries.refresh(entry)
        logger.info(
            "Timer stopped",
            extra={"entry_id": entry.id, "user_id": actor.id, "duration_seconds": entry.duration_seconds},
        )
        return entry

    async def stop_all(self, actor: User, *, now: datetime | None = None) -> list[TimeLogEntry]:
        active = await self._entries.active_for_user(actor.id)
        if active is None:
            return []
        await self._close(active, at=now or utcnow())
        await self._session.commit()
        await self._entries.refresh(active)
        return [active]

    async def pause(self, task_id: int, user_id: int, *, now: datetime | None = None) -> TimeLogEntry | None:
        """Close ``user_id``'s active segment on ``task_id``, if any."""

        active = await self._entries.active_for_user(user_id)
        if active is None or active.task_id != task_id or active.is_break:
            return None
        await self._close(active, at=now or utcnow())
        await self._session.commit()
        await self._entries.refresh(active)
        return active

    async def log_manual(
        self,
        actor: User,
        task_id: int | None,
        start: datetime,
        end: datetime,
        *,
        description: str | None = None,
        billable: bool = True,
        tags: Sequence[str] | None = None,
        is_break: bool = False,
        break_type: BreakType | None = None,
        now: datetime | None = None,
    ) -> TimeLogEntry:
        """Record a closed segment after the fact."""

        start = _as_utc(start)
        end = _as_utc(end)
        if end <= start:
            raise ValidationError(
                "End time must be after start time.",
                details={"startTime": start.isoformat(), "endTime": end.isoformat()},
            )
        if end > (now or utcnow()):
            raise ValidationError("Manual entries cannot end in the future.", details={"endTime": end.isoformat()})
        if is_break:
            task_id = None
            billable = False
        elif task_id is None:
            raise ValidationError("A task is required for work entries.")
        else:
            task = await self._tasks.get(task_id)
            if task is None:
                raise NotFoundError("Task not found.", details={"taskId": task_id})
            capability = await self._capabilities.resolve(task, actor)
            if not capability.can_view:
                raise PermissionDeniedError(
                    "You are not assigned to this task.",
                    details={"capability": capability.value},
                )

        await self._lock_user(actor.id)
        overlapping = await self._entries.overlapping(actor.id, start, end)
        if overlapping:
            raise ConflictError(
                "The interval overlaps an existing time entry.",
                code="overlapping_entry",
                details={"overlappingEntryIds": [entry.id for entry in overlapping]},
            )

        entry = TimeLogEntry(
            user_id=actor.id,
            task_id=task_id,
            start_time=start,
            end_time=end,
            duration_seconds=_seconds_between(start, end),
            is_break=is_break,
            break_type=break_type if is_break else None,
            billable=billable,
            tags=list(tags or []),
            description=description,
            source=TimeEntrySource.MANUAL,
        )
        await self._entries.add(entry)
        await self._session.commit()
        await self._entries.refresh(entry)
        logger.info(
            "Manual entry logged",
            extra={"entry_id": entry.id, "user_id": actor.id, "task_id": task_id, "is_break": is_break},
        )
        return entry

    async def log_break(
        self,
        actor: User,
        start: datetime,
        end: datetime,
        break_type: BreakType,
        description: str | None = None,
        *,
        now: datetime | None = None,
    ) -> TimeLogEntry:
        return await self.log_manual(
            actor,
            None,
            start,
            end,
            description=description,
            is_break=True,
            break_type=break_type,
            now=now,
        )

    async def active_entry_for(self, user_id: int) -> TimeLogEntry | None:
        return await self._entries.active_for_user(user_id)

    async def entries_for_task(
        self,
        task_id: int,
        *,
        after_id: int | None = None,
        limit: int = 100,
    ) -> list[TimeLogEntry]:
        """Entries ordered by start time; pass the last seen id to resume."""

        after: tuple[datetime, int] | None = None
        if after_id is not None:
            anchor = await self._entries.get(after_id)
            if anchor is None or anchor.task_id != task_id:
                raise ValidationError("Unknown cursor for this task.", details={"afterId": after_id})
            after = (anchor.start_time, anchor.id)
        return await self._entries.page_for_task(task_id, after=after, limit=limit)

    async def update_entry(
        self,
        actor: User,
        entry_id: int,
        *,
        description: str | None = _UNSET,
        tags: Sequence[str] | None = None,
        billable: bool | None = None,
    ) -> TimeLogEntry:
        """Edit the annotation fields of an entry; times are immutable."""

        entry = await self._entries.get(entry_id)
        if entry is None or (entry.user_id != actor.id and not actor.is_admin):
            raise NotFoundError("Time entry not found.", details={"entryId": entry_id})
        if description is not _UNSET:
            entry.description = description
        if tags is not None:
            entry.tags = list(tags)
        if billable is not None:
            if entry.is_break and billable:
                raise ValidationError("Breaks cannot be billable.", details={"entryId": entry_id})
            entry.billable = billable
        self._session.add(entry)
        await self._session.commit()
        await self._entries.refresh(entry)
        return entry

    async def list_entries(
        self,
        user_id: int,
        *,
        start_date: date | None = None,
        end_date: date | None = None,
        task_id: int | None = None,
        billable: bool | None = None,
        include_breaks: bool = True,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[TimeLogEntry], int]:
        """Entries starting within ``[start_date, end_date]`` in the business timezone."""

        start = self._day_start(start_date) if start_date is not None else None
        end = self._day_start(end_date + timedelta(days=1)) if end_date is not None else None
        if start is not None and end is not None and end <= start:
            raise ValidationError("endDate must not be before startDate.")
        return await self._entries.search(
            user_id,
            start=start,
            end=end,
            task_id=task_id,
            billable=billable,
            include_breaks=include_breaks,
            limit=limit,
            offset=offset,
        )

    async def daily_summary(self, user_id: int, day: date) -> DailySummary:
        start = self._day_start(day)
        end = self._day_start(day + timedelta(days=1))
        entries = await self._entries.closed_started_between(user_id, start, end)

        work = breaks = billable = 0
        tasks: set[int] = set()
        for entry in entries:
            seconds = entry.duration_seconds or 0
            if entry.is_break:
                breaks += seconds
                continue
            work += seconds
            if entry.billable:
                billable += seconds
            if entry.task_id is not None:
                tasks.add(entry.task_id)
        return DailySummary(
            day=day,
            work_seconds=work,
            break_seconds=breaks,
            billable_seconds=billable,
            tasks_worked=len(tasks),
            entry_count=len(entries),
        )

    async def reap_stale(
        self,
        *,
        now: datetime | None = None,
        timeout_minutes: int | None = None,
    ) -> list[TimeLogEntry]:
        """Close active entries older than the timeout at ``start + timeout``."""

        timeout = timedelta(minutes=timeout_minutes or self._settings.stale_timer_timeout_minutes)
        cutoff = (now or utcnow()) - timeout
        reaped: list[TimeLogEntry] = []
        for entry in await self._entries.stale_active(cutoff):
            if await self._close(entry, at=entry.start_time + timeout, closed_by_reaper=True):
                reaped.append(entry)
        await self._session.commit()
        if reaped:
            logger.warning(
                "Closed %d stale timers",
                len(reaped),
                extra={"entry_ids": [entry.id for entry in reaped], "timeout_minutes": timeout.total_seconds() // 60},
            )
        return reaped

    def _day_start(self, day: date) -> datetime:
        local = datetime.combine(day, time.min, tzinfo=self._settings.timezone)
        return local.astimezone(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


__all__ = ["DailySummary", "TimeTrackingLedger", "describe_entry"]
