"""Queries over the time ledger."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.sql.elements import ColumnElement
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..models import TimeLogEntry
from .base import BaseRepository


@dataclass(slots=True)
class UserTaskTotals:
    user_id: int
    seconds: int
    sessions: int
    first_start: datetime | None
    last_end: datetime | None


class TimeLogRepository(BaseRepository[TimeLogEntry]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, TimeLogEntry)

    async def active_for_user(self, user_id: int) -> TimeLogEntry | None:
        result = await self.session.execute(
            select(TimeLogEntry).where(
                TimeLogEntry.user_id == user_id,
                TimeLogEntry.end_time.is_(None),
            )
        )
        return result.scalars().first()

    async def active_for_task(self, task_id: int) -> list[TimeLogEntry]:
        result = await self.session.execute(
            select(TimeLogEntry)
            .where(TimeLogEntry.task_id == task_id, TimeLogEntry.end_time.is_(None))
            .order_by(TimeLogEntry.id)
        )
        return list(result.scalars().all())

    async def overlapping(self, user_id: int, start: datetime, end: datetime) -> list[TimeLogEntry]:
        """Entries of ``user_id`` intersecting ``[start, end)``; active entries are open-ended."""

        result = await self.session.execute(
            select(TimeLogEntry)
            .where(
                TimeLogEntry.user_id == user_id,
                TimeLogEntry.start_time < end,
                sa.or_(TimeLogEntry.end_time.is_(None), TimeLogEntry.end_time > start),
            )
            .order_by(TimeLogEntry.start_time)
        )
        return list(result.scalars().all())

    async def page_for_task(
        self,
        task_id: int,
        *,
        after: tuple[datetime, int] | None = None,
        limit: int = 100,
    ) -> list[TimeLogEntry]:
        """Entries ordered by ``(start_time, id)``, resuming strictly after ``after``."""

        filters: list[ColumnElement[bool]] = [TimeLogEntry.task_id == task_id]
        if after is not None:
            start, entry_id = after
            filters.append(
                sa.or_(
                    TimeLogEntry.start_time > start,
                    sa.and_(TimeLogEntry.start_time == start, TimeLogEntry.id > entry_id),
                )
            )
        result = await self.session.execute(
            select(TimeLogEntry)
            .where(*filters)
            .order_by(TimeLogEntry.start_time, TimeLogEntry.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def totals_for_task(self, task_id: int, *, user_id: int | None = None) -> list[UserTaskTotals]:
        """Closed, non-break seconds per user for a task."""

        filters: list[ColumnElement[bool]] = [
            TimeLogEntry.task_id == task_id,
            TimeLogEntry.end_time.is_not(None),
            TimeLogEntry.is_break.is_(False),
        ]
        if user_id is not None:
            filters.append(TimeLogEntry.user_id == user_id)
        statement = (
            select(
                TimeLogEntry.user_id,
                sa.func.coalesce(sa.func.sum(TimeLogEntry.duration_seconds), 0),
                sa.func.count(TimeLogEntry.id),
                sa.func.min(TimeLogEntry.start_time),
                sa.func.max(TimeLogEntry.end_time),
            )
            .where(*filters)
            .group_by(TimeLogEntry.user_id)
            .order_by(TimeLogEntry.user_id)
        )
        result = await self.session.execute(statement)
        return [
            UserTaskTotals(
                user_id=row[0],
                seconds=int(row[1]),
                sessions=int(row[2]),
                first_start=row[3],
                last_end=row[4],
            )
            for row in result.all()
        ]

    async def search(
        self,
        user_id: int,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        task_id: int | None = None,
        billable: bool | None = None,
        include_breaks: bool = True,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[TimeLogEntry], int]:
        filters: list[ColumnElement[bool]] = [TimeLogEntry.user_id == user_id]
        if start is not None:
            filters.append(TimeLogEntry.start_time >= start)
        if end is not None:
            filters.append(TimeLogEntry.start_time < end)
        if task_id is not None:
            filters.append(TimeLogEntry.task_id == task_id)
        if billable is not None:
            filters.append(TimeLogEntry.billable.is_(billable))
        if not include_breaks:
            filters.append(TimeLogEntry.is_break.is_(False))

        result = await self.session.execute(
            select(TimeLogEntry)
            .where(*filters)
            .order_by(TimeLogEntry.start_time.desc(), TimeLogEntry.id.desc())
            .limit(limit)
            .offset(offset)
        )
        count_result = await self.session.execute(
            select(sa.func.count()).select_from(TimeLogEntry).where(*filters)
        )
        return list(result.scalars().all()), int(count_result.scalar_one())

    async def closed_started_between(self, user_id: int, start: datetime, end: datetime) -> list[TimeLogEntry]:
        result = await self.session.execute(
            select(TimeLogEntry)
            .where(
                TimeLogEntry.user_id == user_id,
                TimeLogEntry.end_time.is_not(None),
                TimeLogEntry.start_time >= start,
                TimeLogEntry.start_time < end,
            )
            .order_by(TimeLogEntry.start_time)
        )
        return list(result.scalars().all())

    async def stale_active(self, started_before: datetime) -> list[TimeLogEntry]:
        result = await self.session.execute(
            select(TimeLogEntry)
            .where(TimeLogEntry.end_time.is_(None), TimeLogEntry.start_time < started_before)
            .order_by(TimeLogEntry.start_time)
        )
        return list(result.scalars().all())

    async def close_if_active(
        self,
        entry_id: int,
        *,
        end_time: datetime,
        duration_seconds: int,
        closed_by_reaper: bool = False,
    ) -> bool:
        """Close ``entry_id`` unless someone else closed it first."""

        statement = (
            sa.update(TimeLogEntry)
            .where(TimeLogEntry.id == entry_id, TimeLogEntry.end_time.is_(None))
            .values(
                end_time=end_time,
                duration_seconds=duration_seconds,
                closed_by_reaper=closed_by_reaper,
                updated_at=end_time,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(statement)
        return result.rowcount == 1


__all__ = ["TimeLogRepository", "UserTaskTotals"]
