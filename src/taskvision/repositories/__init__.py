"""Repository layer for database interactions."""

from __future__ import annotations

from .base import BaseRepository
from .status_changes import StatusChangeRepository
from .tasks import TaskRepository
from .teams import TeamRepository
from .time_logs import TimeLogRepository, UserTaskTotals
from .users import UserRepository

__all__ = [
    "BaseRepository",
    "StatusChangeRepository",
    "TaskRepository",
    "TeamRepository",
    "TimeLogRepository",
    "UserRepository",
    "UserTaskTotals",
]
