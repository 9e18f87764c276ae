"""Task persistence: visibility scoping, status compare-and-swap, carryover."""

from __future__ import annotations

from datetime import date, datetime
from typing import Sequence

import sqlalchemy as sa
from sqlalchemy.sql.elements import ColumnElement
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..models import Task, TaskAssignee, TaskStatus, Team, TeamMember
from .base import BaseRepository


def visible_to(user_id: int) -> ColumnElement[bool]:
    """Tasks the user is assigned to, leads, or is a team member on."""

    assigned = select(TaskAssignee.task_id).where(TaskAssignee.user_id == user_id)
    led = select(Team.id).where(Team.leader_id == user_id)
    member_of = select(TeamMember.team_id).where(TeamMember.user_id == user_id)
    return sa.or_(
        Task.id.in_(assigned),
        Task.assigned_team_id.in_(led),
        Task.assigned_team_id.in_(member_of),
    )


class TaskRepository(BaseRepository[Task]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Task)

    async def assignee_ids(self, task_id: int) -> set[int]:
        result = await self.session.execute(
            select(TaskAssignee.user_id).where(TaskAssignee.task_id == task_id)
        )
        return set(result.scalars().all())

    async def add_assignees(self, task_id: int, user_ids: Sequence[int]) -> None:
        self.session.add_all(TaskAssignee(task_id=task_id, user_id=user_id) for user_id in user_ids)
        await self.session.flush()

    async def compare_and_set_status(
        self,
        task_id: int,
        *,
        expected: TaskStatus,
        target: TaskStatus,
        changed_at: datetime,
    ) -> bool:
        """Move ``task_id`` to ``target`` only if it is still ``expected``.

        Returns ``False`` when another writer changed the status first.
        """
        statement = (
            sa.update(Task)
            .where(Task.id == task_id, Task.status == expected)
            .values(status=target, status_changed_at=changed_at, updated_at=changed_at)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(statement)
        return result.rowcount == 1

    async def current_status(self, task_id: int) -> TaskStatus | None:
        result = await self.session.execute(select(Task.status).where(Task.id == task_id))
        return result.scalar_one_or_none()

    async def list_paginated(
        self,
        *,
        visible_to_user: int | None = None,
        status: TaskStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Task], int]:
        """Return a page of tasks and the total count; ``visible_to_user=None`` means all."""

        filters: list[ColumnElement[bool]] = []
        if visible_to_user is not None:
            filters.append(visible_to(visible_to_user))
        if status is not None:
            filters.append(Task.status == status)

        statement = select(Task).where(*filters).order_by(Task.id).limit(limit).offset(offset)
        result = await self.session.execute(statement)
        count_result = await self.session.execute(
            select(sa.func.count()).select_from(Task).where(*filters)
        )
        return list(result.scalars().all()), int(count_result.scalar_one())

    async def list_open_due_before(
        self,
        cutoff: datetime,
        *,
        visible_to_user: int | None = None,
    ) -> list[Task]:
        filters: list[ColumnElement[bool]] = [
            Task.due_date.is_not(None),
            Task.due_date < cutoff,
            Task.status != TaskStatus.COMPLETED,
        ]
        if visible_to_user is not None:
            filters.append(visible_to(visible_to_user))
        result = await self.session.execute(
            select(Task).where(*filters).order_by(Task.due_date, Task.id)
        )
        return list(result.scalars().all())

    async def mark_carried_over(
        self,
        task_id: int,
        *,
        swept_on: date,
        new_due_date: datetime | None,
        original_due_date: datetime | None,
        changed_at: datetime,
    ) -> bool:
        """Bump the carryover counter unless the task was already swept on ``swept_on``."""

        values: dict[str, object] = {
            "carryover_count": Task.carryover_count + 1,
            "last_carried_over_on": swept_on,
            "original_due_date": original_due_date,
            "updated_at": changed_at,
        }
        if new_due_date is not None:
            values["due_date"] = new_due_date
        statement = (
            sa.update(Task)
            .where(
                Task.id == task_id,
                Task.status != TaskStatus.COMPLETED,
                sa.or_(Task.last_carried_over_on.is_(None), Task.last_carried_over_on < swept_on),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(statement)
        return result.rowcount == 1

    async def carryover_counts(self, *, visible_to_user: int | None = None) -> tuple[int, int, float]:
        """Return ``(total, carried_over, average_count_among_carried)``."""

        filters: list[ColumnElement[bool]] = []
        if visible_to_user is not None:
            filters.append(visible_to(visible_to_user))
        carried = sa.case((Task.carryover_count > 0, 1), else_=0)
        carried_count = sa.case((Task.carryover_count > 0, Task.carryover_count), else_=None)
        statement = select(
            sa.func.count(Task.id),
            sa.func.coalesce(sa.func.sum(carried), 0),
            sa.func.avg(carried_count),
        ).where(*filters)
        total, carried_total, average = (await self.session.execute(statement)).one()
        return int(total), int(carried_total), float(average or 0.0)


__all__ = ["TaskRepository", "visible_to"]
