"""Task status state machine.

Non-admin transitions must follow ``VALID_TRANSITIONS``, come from an actor who
controls the task (assignee of an individual task or leader of the assigned
team), and, when the task has a geofence, carry a location fix inside it.
Admins may move a task between any two distinct statuses; off-graph moves are
flagged ``is_override`` in the history.

Every successful transition is a compare-and-swap on ``tasks.status`` plus one
history row, committed together with the ledger side effect: entering
``in_progress`` opens a segment for the actor, entering ``paused`` or
``completed`` closes every open segment on the task.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Union

from sqlmodel.ext.asyncio.session import AsyncSession

from ..core.config import Settings
from ..errors import (
    ConflictError,
    GeofenceError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
)
from ..models import StatusChangeRecord, Task, TaskStatus, TimeLogEntry, User, utcnow
from ..repositories import StatusChangeRepository, TaskRepository
from . import geofence
from .capabilities import Capability, CapabilityResolver
from .time_tracking import TimeTrackingLedger

logger = logging.getLogger(__name__)

VALID_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.NOT_STARTED: frozenset({TaskStatus.IN_PROGRESS}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.PAUSED, TaskStatus.COMPLETED}),
    TaskStatus.PAUSED: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED}),
    TaskStatus.COMPLETED: frozenset(),
}

GEOFENCED_TARGETS = frozenset({TaskStatus.IN_PROGRESS, TaskStatus.PAUSED, TaskStatus.COMPLETED})


def is_valid_transition(current: TaskStatus, target: TaskStatus) -> bool:
    return target in VALID_TRANSITIONS[current]


def allowed_targets(current: TaskStatus) -> list[TaskStatus]:
    return sorted(VALID_TRANSITIONS[current], key=lambda status: status.value)


@dataclass(slots=True, frozen=True)
class NotStarted:
    status = TaskStatus.NOT_STARTED


@dataclass(slots=True, frozen=True)
class InProgress:
    since: datetime | None
    status = TaskStatus.IN_PROGRESS


@dataclass(slots=True, frozen=True)
class Paused:
    since: datetime | None
    status = TaskStatus.PAUSED


@dataclass(slots=True, frozen=True)
class Completed:
    at: datetime | None
    status = TaskStatus.COMPLETED


TaskState = Union[NotStarted, InProgress, Paused, Completed]


def task_state(task: Task) -> TaskState:
    """Tagged view of the task's status with the time it was entered."""

    entered = task.status_changed_at
    if task.status == TaskStatus.IN_PROGRESS:
        return InProgress(since=entered)
    if task.status == TaskStatus.PAUSED:
        return Paused(since=entered)
    if task.status == TaskStatus.COMPLETED:
        return Completed(at=entered)
    return NotStarted()


@dataclass(slots=True, frozen=True)
class LocationFix:
    lat: float
    lng: float
    address: str | None = None


@dataclass(slots=True)
class TransitionResult:
    task: Task
    record: StatusChangeRecord
    opened_entry: TimeLogEntry | None = None
    closed_entries: list[TimeLogEntry] = field(default_factory=list)

    @property
    def message(self) -> str:
        verb = "overridden" if self.record.is_override else "moved"
        return (
            f"Task {verb} from {self.record.from_status.value} "
            f"to {self.record.to_status.value}."
        )


class TaskStateMachine:
    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self._session = session
        self._tasks = TaskRepository(session)
        self._history = StatusChangeRepository(session)
        self._capabilities = CapabilityResolver(session)
        self._ledger = TimeTrackingLedger(session, settings)

    async def transition(
        self,
        task_id: int,
        actor: User,
        target: TaskStatus,
        *,
        location: LocationFix | None = None,
        notes: str | None = None,
        expected_status: TaskStatus | None = None,
        now: datetime | None = None,
    ) -> TransitionResult:
        """Validate and apply a status change for ``actor``.

        ``expected_status`` is the status the caller last observed; a mismatch
        fails with ``ConflictError`` before anything is written.
        """

        task = await self._tasks.get(task_id)
        if task is None:
            raise NotFoundError("Task not found.", details={"taskId": task_id})
        await self._tasks.refresh(task)
        current = task.status
        actor_id = actor.id

        if expected_status is not None and expected_status != current:
            raise ConflictError(current_status=current.value)
        if target == current:
            raise InvalidTransitionError(
                from_status=current.value,
                to_status=target.value,
                allowed=[status.value for status in allowed_targets(current)],
            )

        capability = await self._capabilities.resolve(task, actor)
        is_override = False
        if capability is Capability.ADMIN:
            is_override = not is_valid_transition(current, target)
            if location is not None:
                geofence.validate_coordinates(location.lat, location.lng)
        else:
            if not is_valid_transition(current, target):
                raise InvalidTransitionError(
                    from_status=current.value,
                    to_status=target.value,
                    allowed=[status.value for status in allowed_targets(current)],
                )
            if not capability.can_control_status:
                raise PermissionDeniedError(
                    "Only the assignee or the team leader can change this task's status.",
                    details={"capability": capability.value},
                )
            if task.has_location and target in GEOFENCED_TARGETS:
                self._enforce_geofence(task, location)
            elif location is not None:
                geofence.validate_coordinates(location.lat, location.lng)

        # Admin moves never open a segment for the admin.
        tracks_time = capability is not Capability.ADMIN
        if target == TaskStatus.IN_PROGRESS and tracks_time:
            await self._ledger.ensure_can_open(actor_id, task_id)

        changed_at = now or utcnow()
        if not await self._tasks.compare_and_set_status(
            task_id,
            expected=current,
            target=target,
            changed_at=changed_at,
        ):
            latest = await self._tasks.current_status(task_id)
            raise ConflictError(current_status=latest.value if latest is not None else None)

        try:
            record = await self._history.add(
                StatusChangeRecord(
                    task_id=task_id,
                    user_id=actor_id,
                    from_status=current,
                    to_status=target,
                    changed_at=changed_at,
                    latitude=location.lat if location else None,
                    longitude=location.lng if location else None,
                    address=location.address if location else None,
                    notes=notes,
                    is_override=is_override,
                )
            )
            opened: TimeLogEntry | None = None
            closed: list[TimeLogEntry] = []
            if target == TaskStatus.IN_PROGRESS:
                if tracks_time:
                    opened = await self._ledger.open_segment(
                        actor_id,
                        task_id,
                        at=changed_at,
                        reuse_existing=True,
                    )
            else:
                closed = await self._ledger.close_segments_for_task(task_id, at=changed_at)
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise

        await self._tasks.refresh(task)
        logger.info(
            "Task status changed",
            extra={
                "task_id": task_id,
                "user_id": actor_id,
                "from_status": current.value,
                "to_status": target.value,
                "override": is_override,
                "closed_entries": [entry.id for entry in closed],
            },
        )
        return TransitionResult(task=task, record=record, opened_entry=opened, closed_entries=closed)

    async def history(self, task_id: int, actor: User) -> list[StatusChangeRecord]:
        task = await self._tasks.get(task_id)
        if task is None:
            raise NotFoundError("Task not found.", details={"taskId": task_id})
        capability = await self._capabilities.resolve(task, actor)
        if not capability.can_view:
            raise PermissionDeniedError(details={"capability": capability.value})
        return await self._history.list_for_task(task_id)

    @staticmethod
    def _enforce_geofence(task: Task, location: LocationFix | None) -> None:
        radius = float(task.location_radius_meters)
        if location is None:
            raise GeofenceError(
                "A location fix is required to change the status of this task.",
                radius_meters=radius,
            )
        check = geofence.evaluate(
            geofence.GeoPoint(location.lat, location.lng),
            geofence.GeoPoint(task.location_lat, task.location_lng),
            radius,
        )
        if not check.passed:
            raise GeofenceError(radius_meters=radius, distance_meters=check.distance_meters)


__all__ = [
    "Completed",
    "GEOFENCED_TARGETS",
    "InProgress",
    "LocationFix",
    "NotStarted",
    "Paused",
    "TaskState",
    "TaskStateMachine",
    "TransitionResult",
    "VALID_TRANSITIONS",
    "allowed_targets",
    "is_valid_transition",
    "task_state",
]
