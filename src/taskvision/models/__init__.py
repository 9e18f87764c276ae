"""SQLModel tables."""

from __future__ import annotations

from .common import TimestampMixin, utcnow
from .status_change import StatusChangeRecord
from .task import AssignmentType, Task, TaskAssignee, TaskCarryover, TaskStatus
from .team import Team, TeamMember
from .time_log import ACTIVE_ENTRY_INDEX, BreakType, TimeEntrySource, TimeLogEntry
from .user import User, UserRole

__all__ = [
    "ACTIVE_ENTRY_INDEX",
    "AssignmentType",
    "BreakType",
    "StatusChangeRecord",
    "Task",
    "TaskAssignee",
    "TaskCarryover",
    "TaskStatus",
    "Team",
    "TeamMember",
    "TimeEntrySource",
    "TimeLogEntry",
    "TimestampMixin",
    "User",
    "UserRole",
    "utcnow",
]
