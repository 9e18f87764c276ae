"""Time ledger entries."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

import sqlalchemy as sa
from sqlmodel import Field

from ..db.base import UTCDateTime
from .common import TimestampMixin, enum_type

ACTIVE_ENTRY_INDEX = "uq_time_log_entries_one_active_per_user"


class TimeEntrySource(str, Enum):
    TIMER = "timer"
    MANUAL = "manual"
    AUTO = "auto"


class BreakType(str, Enum):
    LUNCH = "lunch"
    COFFEE = "coffee"
    MEETING = "meeting"
    OTHER = "other"


class TimeLogEntry(TimestampMixin, table=True):
    """A work or break segment for one user.

    ``end_time IS NULL`` marks the user's single active segment; the partial
    unique index enforces that at the storage layer.
    """

    __tablename__ = "time_log_entries"
    __table_args__ = (
        sa.Index(
            ACTIVE_ENTRY_INDEX,
            "user_id",
            unique=True,
            sqlite_where=sa.text("end_time IS NULL"),
            postgresql_where=sa.text("end_time IS NULL"),
        ),
        sa.Index("ix_time_log_entries_task_start", "task_id", "start_time", "id"),
        sa.Index("ix_time_log_entries_user_start", "user_id", "start_time"),
        sa.CheckConstraint(
            "end_time IS NULL OR end_time >= start_time",
            name="ck_time_log_entries_range",
        ),
        sa.CheckConstraint(
            "is_break OR break_type IS NULL",
            name="ck_time_log_entries_break_type",
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(
        sa_column=sa.Column(
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    task_id: int | None = Field(
        default=None,
        sa_column=sa.Column(
            sa.Integer(),
            sa.ForeignKey("tasks.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    start_time: datetime = Field(sa_column=sa.Column(UTCDateTime(), nullable=False))
    end_time: datetime | None = Field(
        default=None,
        sa_column=sa.Column(UTCDateTime(), nullable=True),
    )
    duration_seconds: int | None = Field(
        default=None,
        sa_column=sa.Column(sa.Integer(), nullable=True),
    )
    is_break: bool = Field(
        default=False,
        sa_column=sa.Column(sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    break_type: BreakType | None = Field(
        default=None,
        sa_column=sa.Column(enum_type(BreakType, "break_type"), nullable=True),
    )
    billable: bool = Field(
        default=True,
        sa_column=sa.Column(sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    tags: list[str] = Field(
        default_factory=list,
        sa_column=sa.Column(sa.JSON(), nullable=False),
    )
    description: str | None = Field(
        default=None,
        sa_column=sa.Column(sa.Text(), nullable=True),
    )
    source: TimeEntrySource = Field(
        default=TimeEntrySource.TIMER,
        sa_column=sa.Column(
            enum_type(TimeEntrySource, "time_entry_source"),
            nullable=False,
            server_default=TimeEntrySource.TIMER.value,
        ),
    )
    closed_by_reaper: bool = Field(
        default=False,
        sa_column=sa.Column(sa.Boolean(), nullable=False, server_default=sa.false()),
    )

    @property
    def is_active(self) -> bool:
        return self.end_time is None


__all__ = ["ACTIVE_ENTRY_INDEX", "BreakType", "TimeEntrySource", "TimeLogEntry"]
