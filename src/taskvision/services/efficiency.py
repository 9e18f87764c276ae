"""Estimate versus actual time for a task.

Aggregation stays in whole seconds until the reporting boundary, where it is
converted to minutes once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from sqlmodel.ext.asyncio.session import AsyncSession

from ..errors import NotFoundError, PermissionDeniedError
from ..models import User
from ..repositories import TaskRepository, TimeLogRepository
from .capabilities import CapabilityResolver


def efficiency(estimate_minutes: float | None, actual_minutes: float) -> float | None:
    """Percent of the estimate achieved; ``None`` until time has been logged."""

    if estimate_minutes is None or actual_minutes <= 0:
        return None
    return estimate_minutes / actual_minutes * 100


def variance(estimate_minutes: float | None, actual_minutes: float) -> float | None:
    if estimate_minutes is None:
        return None
    return actual_minutes - estimate_minutes


def variance_percentage(estimate_minutes: float | None, actual_minutes: float) -> float | None:
    if not estimate_minutes:
        return None
    return (actual_minutes - estimate_minutes) / estimate_minutes * 100


def seconds_to_minutes(seconds: int) -> float:
    return seconds / 60


@dataclass(slots=True)
class UserContribution:
    user_id: int
    seconds: int
    sessions: int

    @property
    def minutes(self) -> float:
        return seconds_to_minutes(self.seconds)


@dataclass(slots=True)
class TaskTimeAnalysis:
    task_id: int
    estimated_minutes: int | None
    total_seconds: int
    session_count: int
    first_logged_at: datetime | None = None
    last_logged_at: datetime | None = None
    contributions: list[UserContribution] = field(default_factory=list)

    @property
    def total_actual_minutes(self) -> float:
        return seconds_to_minutes(self.total_seconds)

    @property
    def efficiency(self) -> float | None:
        return efficiency(self.estimated_minutes, self.total_actual_minutes)

    @property
    def variance_minutes(self) -> float | None:
        return variance(self.estimated_minutes, self.total_actual_minutes)

    @property
    def variance_percentage(self) -> float | None:
        return variance_percentage(self.estimated_minutes, self.total_actual_minutes)


class EfficiencyCalculator:
    """Pool closed, non-break segments of a task and compare to its estimate."""

    def __init__(self, session: AsyncSession) -> None:
        self._tasks = TaskRepository(session)
        self._entries = TimeLogRepository(session)
        self._capabilities = CapabilityResolver(session)

    async def analyze(self, task_id: int, actor: User, *, user_id: int | None = None) -> TaskTimeAnalysis:
        task = await self._tasks.get(task_id)
        if task is None:
            raise NotFoundError("Task not found.", details={"taskId": task_id})
        capability = await self._capabilities.resolve(task, actor)
        if not capability.can_view:
            raise PermissionDeniedError(details={"capability": capability.value})

        totals = await self._entries.totals_for_task(task_id, user_id=user_id)
        starts = [row.first_start for row in totals if row.first_start is not None]
        ends = [row.last_end for row in totals if row.last_end is not None]
        return TaskTimeAnalysis(
            task_id=task_id,
            estimated_minutes=task.estimate_minutes,
            total_seconds=sum(row.seconds for row in totals),
            session_count=sum(row.sessions for row in totals),
            first_logged_at=min(starts) if starts else None,
            last_logged_at=max(ends) if ends else None,
            contributions=[
                UserContribution(user_id=row.user_id, seconds=row.seconds, sessions=row.sessions)
                for row in totals
            ],
        )


__all__ = [
    "EfficiencyCalculator",
    "TaskTimeAnalysis",
    "UserContribution",
    "efficiency",
    "seconds_to_minutes",
    "variance",
    "variance_percentage",
]
