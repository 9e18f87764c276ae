"""Task intake and visibility-scoped reads."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Sequence

from sqlmodel.ext.asyncio.session import AsyncSession

from ..core.config import Settings, get_settings
from ..errors import NotFoundError, PermissionDeniedError, ValidationError
from ..models import AssignmentType, Task, TaskStatus, User
from ..repositories import TaskRepository, TeamRepository, UserRepository
from . import geofence
from .capabilities import Capability, CapabilityResolver
from .lifecycle import TaskState, task_state

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TaskDetail:
    task: Task
    capability: Capability
    assignee_ids: list[int] = field(default_factory=list)

    @property
    def state(self) -> TaskState:
        return task_state(self.task)


class TaskService:
    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._tasks = TaskRepository(session)
        self._teams = TeamRepository(session)
        self._users = UserRepository(session)
        self._capabilities = CapabilityResolver(session)

    async def create(
        self,
        actor: User,
        *,
        title: str,
        description: str | None = None,
        assignment_type: AssignmentType = AssignmentType.INDIVIDUAL,
        assignee_ids: Sequence[int] = (),
        team_id: int | None = None,
        location_lat: float | None = None,
        location_lng: float | None = None,
        location_radius_meters: int | None = None,
        location_address: str | None = None,
        estimate_minutes: int | None = None,
        due_date: datetime | None = None,
    ) -> TaskDetail:
        """Create a task on behalf of an admin.

        Individual tasks need at least one existing assignee; team tasks need an
        existing team and take no individual assignees. When coordinates are
        given without a radius the configured default radius applies.
        """

        if not actor.is_admin:
            raise PermissionDeniedError("Only admins can create tasks.")
        title = title.strip()
        if not title:
            raise ValidationError("Title must not be empty.", details={"field": "title"})

        has_lat = location_lat is not None
        has_lng = location_lng is not None
        if has_lat != has_lng:
            raise ValidationError(
                "Both latitude and longitude are required for a task location.",
                details={"lat": location_lat, "lng": location_lng},
            )
        if has_lat:
            geofence.validate_coordinates(location_lat, location_lng)
            if location_radius_meters is None:
                location_radius_meters = self._settings.default_geofence_radius_meters
            geofence.validate_radius(location_radius_meters)
        elif location_radius_meters is not None:
            raise ValidationError(
                "A radius requires task coordinates.",
                details={"radiusMeters": location_radius_meters},
            )

        unique_assignees = sorted(set(assignee_ids))
        if assignment_type == AssignmentType.INDIVIDUAL:
            if team_id is not None:
                raise ValidationError("Individual tasks cannot reference a team.", details={"teamId": team_id})
            if not unique_assignees:
                raise ValidationError("Individual tasks need at least one assignee.")
            found = {user.id for user in await self._users.list_by_ids(unique_assignees)}
            missing = [user_id for user_id in unique_assignees if user_id not in found]
            if missing:
                raise NotFoundError("Assignee not found.", details={"userIds": missing})
        else:
            if unique_assignees:
                raise ValidationError(
                    "Team tasks are assigned through the team.",
                    details={"assigneeIds": unique_assignees},
                )
            if team_id is None:
                raise ValidationError("Team tasks need a team.")
            if await self._teams.get(team_id) is None:
                raise NotFoundError("Team not found.", details={"teamId": team_id})

        if due_date is not None and due_date.tzinfo is None:
            due_date = due_date.replace(tzinfo=timezone.utc)

        task = await self._tasks.add(
            Task(
                title=title,
                description=description,
                assignment_type=assignment_type,
                assigned_team_id=team_id,
                created_by_id=actor.id,
                location_lat=location_lat,
                location_lng=location_lng,
                location_radius_meters=location_radius_meters,
                location_address=location_address,
                estimate_minutes=estimate_minutes,
                due_date=due_date,
            )
        )
        if unique_assignees:
            await self._tasks.add_assignees(task.id, unique_assignees)
        await self._session.commit()
        await self._tasks.refresh(task)
        logger.info(
            "Task created",
            extra={
                "task_id": task.id,
                "user_id": actor.id,
                "assignment_type": assignment_type.value,
                "geofenced": task.has_location,
            },
        )
        return TaskDetail(task=task, capability=Capability.ADMIN, assignee_ids=unique_assignees)

    async def get(self, task_id: int, actor: User) -> TaskDetail:
        task = await self._tasks.get(task_id)
        if task is None:
            raise NotFoundError("Task not found.", details={"taskId": task_id})
        capability = await self._capabilities.resolve(task, actor)
        if not capability.can_view:
            raise PermissionDeniedError(details={"capability": capability.value})
        assignees = await self._tasks.assignee_ids(task_id)
        return TaskDetail(task=task, capability=capability, assignee_ids=sorted(assignees))

    async def list_visible(
        self,
        actor: User,
        *,
        status: TaskStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Task], int]:
        return await self._tasks.list_paginated(
            visible_to_user=None if actor.is_admin else actor.id,
            status=status,
            limit=limit,
            offset=offset,
        )


__all__ = ["TaskDetail", "TaskService"]
