"""Task records, assignments and carryover history."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from ..db.base import UTCDateTime
from .common import TimestampMixin, enum_type, utcnow


class TaskStatus(str, Enum):
    """Lifecycle states of a task."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"


class AssignmentType(str, Enum):
    INDIVIDUAL = "individual"
    TEAM = "team"


class Task(TimestampMixin, table=True):
    """A unit of field work.

    ``status`` is only ever written by the lifecycle state machine through a
    compare-and-swap update; ``status_changed_at`` records when the current
    status was entered.
    """

    __tablename__ = "tasks"
    __table_args__ = (
        sa.CheckConstraint("length(title) > 0", name="ck_tasks_title_length"),
        sa.CheckConstraint("carryover_count >= 0", name="ck_tasks_carryover_count"),
        sa.CheckConstraint(
            "location_radius_meters IS NULL OR "
            "(location_radius_meters >= 10 AND location_radius_meters <= 10000)",
            name="ck_tasks_location_radius",
        ),
        sa.CheckConstraint(
            "estimate_minutes IS NULL OR estimate_minutes >= 0",
            name="ck_tasks_estimate_minutes",
        ),
        sa.Index("ix_tasks_status_due_date", "status", "due_date"),
        sa.Index("ix_tasks_assigned_team_id", "assigned_team_id"),
    )

    id: int | None = Field(default=None, primary_key=True)
    title: str = Field(
        max_length=255,
        sa_column=sa.Column(sa.String(length=255), nullable=False),
    )
    description: str | None = Field(
        default=None,
        sa_column=sa.Column(sa.Text(), nullable=True),
    )
    status: TaskStatus = Field(
        default=TaskStatus.NOT_STARTED,
        sa_column=sa.Column(
            enum_type(TaskStatus, "task_status"),
            nullable=False,
            server_default=TaskStatus.NOT_STARTED.value,
        ),
    )
    status_changed_at: datetime | None = Field(
        default=None,
        sa_column=sa.Column(UTCDateTime(), nullable=True),
    )
    assignment_type: AssignmentType = Field(
        default=AssignmentType.INDIVIDUAL,
        sa_column=sa.Column(
            enum_type(AssignmentType, "assignment_type"),
            nullable=False,
            server_default=AssignmentType.INDIVIDUAL.value,
        ),
    )
    assigned_team_id: int | None = Field(
        default=None,
        sa_column=sa.Column(
            sa.Integer(),
            sa.ForeignKey("teams.id", ondelete="RESTRICT"),
            nullable=True,
        ),
    )
    created_by_id: int = Field(
        sa_column=sa.Column(
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
    )
    location_lat: float | None = Field(default=None, sa_column=sa.Column(sa.Float(), nullable=True))
    location_lng: float | None = Field(default=None, sa_column=sa.Column(sa.Float(), nullable=True))
    location_radius_meters: int | None = Field(
        default=None,
        sa_column=sa.Column(sa.Integer(), nullable=True),
    )
    location_address: str | None = Field(
        default=None,
        sa_column=sa.Column(sa.String(length=500), nullable=True),
    )
    estimate_minutes: int | None = Field(
        default=None,
        sa_column=sa.Column(sa.Integer(), nullable=True),
    )
    due_date: datetime | None = Field(
        default=None,
        sa_column=sa.Column(UTCDateTime(), nullable=True),
    )
    original_due_date: datetime | None = Field(
        default=None,
        sa_column=sa.Column(UTCDateTime(), nullable=True),
    )
    carryover_count: int = Field(
        default=0,
        sa_column=sa.Column(sa.Integer(), nullable=False, server_default="0"),
    )
    last_carried_over_on: date | None = Field(
        default=None,
        sa_column=sa.Column(sa.Date(), nullable=True),
    )

    @property
    def has_location(self) -> bool:
        return (
            self.location_lat is not None
            and self.location_lng is not None
            and self.location_radius_meters is not None
        )


class TaskAssignee(SQLModel, table=True):
    """Individual assignment of a user to a task."""

    __tablename__ = "task_assignees"
    __table_args__ = (sa.Index("ix_task_assignees_user_id", "user_id"),)

    task_id: int = Field(
        sa_column=sa.Column(
            sa.Integer(),
            sa.ForeignKey("tasks.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
    user_id: int = Field(
        sa_column=sa.Column(
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )


class TaskCarryover(SQLModel, table=True):
    """One row per task per calendar day on which a sweep carried it over."""

    __tablename__ = "task_carryovers"
    __table_args__ = (
        sa.UniqueConstraint("task_id", "swept_on", name="uq_task_carryovers_task_day"),
    )

    id: int | None = Field(default=None, primary_key=True)
    task_id: int = Field(
        sa_column=sa.Column(
            sa.Integer(),
            sa.ForeignKey("tasks.id", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    swept_on: date = Field(sa_column=sa.Column(sa.Date(), nullable=False))
    carried_at: datetime = Field(
        default_factory=utcnow,
        sa_column=sa.Column(UTCDateTime(), nullable=False),
    )
    previous_due_date: datetime | None = Field(
        default=None,
        sa_column=sa.Column(UTCDateTime(), nullable=True),
    )
    new_due_date: datetime | None = Field(
        default=None,
        sa_column=sa.Column(UTCDateTime(), nullable=True),
    )
    carryover_count: int = Field(sa_column=sa.Column(sa.Integer(), nullable=False))
    reason: str = Field(
        default="Task not completed by its due date",
        sa_column=sa.Column(sa.String(length=255), nullable=False),
    )


__all__ = ["AssignmentType", "Task", "TaskAssignee", "TaskCarryover", "TaskStatus"]
