"""Overdue bookkeeping.

A sweep bumps ``carryover_count`` on every incomplete task whose due date has
passed, at most once per business-timezone calendar day. Under the
``roll_forward`` policy the due date also moves forward by
``carryover_roll_days``; ``original_due_date`` keeps the first due date either
way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone

from sqlmodel.ext.asyncio.session import AsyncSession

from ..core.config import Settings, get_settings
from ..models import Task, TaskCarryover, User, utcnow
from ..repositories import TaskRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class CarryoverUpdate:
    task_id: int
    swept_on: date
    carryover_count: int
    previous_due_date: datetime | None
    new_due_date: datetime | None


@dataclass(slots=True)
class DueSummary:
    overdue: list[Task] = field(default_factory=list)
    due_today: list[Task] = field(default_factory=list)
    due_tomorrow: list[Task] = field(default_factory=list)
    due_within_7_days: list[Task] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class CarryoverStats:
    total_tasks: int
    carried_over_tasks: int
    average_carryover_count: float

    @property
    def carryover_rate(self) -> float:
        if self.total_tasks == 0:
            return 0.0
        return self.carried_over_tasks / self.total_tasks * 100


class CarryoverTracker:
    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._tasks = TaskRepository(session)

    def business_day(self, moment: datetime) -> date:
        """Calendar date of ``moment`` in the configured business timezone."""

        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(self._settings.timezone).date()

    def day_start(self, day: date) -> datetime:
        local = datetime.combine(day, time.min, tzinfo=self._settings.timezone)
        return local.astimezone(timezone.utc)

    async def sweep(self, now: datetime | None = None) -> list[CarryoverUpdate]:
        now = now or utcnow()
        swept_on = self.business_day(now)
        roll = timedelta(days=self._settings.carryover_roll_days)
        rolls_forward = self._settings.carryover_policy == "roll_forward"

        updates: list[CarryoverUpdate] = []
        for task in await self._tasks.list_open_due_before(now):
            previous_due = task.due_date
            marked = await self._tasks.mark_carried_over(
                task.id,
                swept_on=swept_on,
                new_due_date=previous_due + roll if rolls_forward and previous_due else None,
                original_due_date=task.original_due_date or previous_due,
                changed_at=now,
            )
            if not marked:
                continue
            await self._tasks.refresh(task)
            self._session.add(
                TaskCarryover(
                    task_id=task.id,
                    swept_on=swept_on,
                    carried_at=now,
                    previous_due_date=previous_due,
                    new_due_date=task.due_date,
                    carryover_count=task.carryover_count,
                )
            )
            updates.append(
                CarryoverUpdate(
                    task_id=task.id,
                    swept_on=swept_on,
                    carryover_count=task.carryover_count,
                    previous_due_date=previous_due,
                    new_due_date=task.due_date,
                )
            )
        await self._session.commit()

        logger.info(
            "Carryover sweep finished",
            extra={
                "swept_on": swept_on.isoformat(),
                "policy": self._settings.carryover_policy,
                "carried_over": [update.task_id for update in updates],
            },
        )
        return updates

    async def summarize(self, now: datetime | None = None, *, actor: User | None = None) -> DueSummary:
        """Bucket incomplete tasks by due date relative to ``now``; read-only."""

        now = now or utcnow()
        today = self.business_day(now)
        today_start = self.day_start(today)
        tomorrow_start = self.day_start(today + timedelta(days=1))
        later_start = self.day_start(today + timedelta(days=2))
        window_end = self.day_start(today + timedelta(days=self._settings.upcoming_window_days + 1))

        visible_to_user = None if actor is None or actor.is_admin else actor.id
        summary = DueSummary()
        for task in await self._tasks.list_open_due_before(window_end, visible_to_user=visible_to_user):
            due = task.due_date
            if due < today_start:
                summary.overdue.append(task)
            elif due < tomorrow_start:
                summary.due_today.append(task)
            elif due < later_start:
                summary.due_tomorrow.append(task)
            else:
                summary.due_within_7_days.append(task)
        return summary

    async def stats(self, *, actor: User | None = None) -> CarryoverStats:
        visible_to_user = None if actor is None or actor.is_admin else actor.id
        total, carried, average = await self._tasks.carryover_counts(visible_to_user=visible_to_user)
        return CarryoverStats(
            total_tasks=total,
            carried_over_tasks=carried,
            average_carryover_count=average,
        )


__all__ = ["CarryoverStats", "CarryoverTracker", "CarryoverUpdate", "DueSummary"]
