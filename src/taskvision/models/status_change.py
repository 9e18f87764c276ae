"""Append-only history of task status transitions."""

from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from ..db.base import UTCDateTime
from .common import enum_type, utcnow
from .task import TaskStatus


class StatusChangeRecord(SQLModel, table=True):
    """One committed transition. Rows are never updated or deleted."""

    __tablename__ = "task_status_changes"
    __table_args__ = (sa.Index("ix_task_status_changes_task_id", "task_id", "id"),)

    id: int | None = Field(default=None, primary_key=True)
    task_id: int = Field(
        sa_column=sa.Column(
            sa.Integer(),
            sa.ForeignKey("tasks.id", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    user_id: int = Field(
        sa_column=sa.Column(
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
    )
    from_status: TaskStatus = Field(
        sa_column=sa.Column(enum_type(TaskStatus, "task_status"), nullable=False),
    )
    to_status: TaskStatus = Field(
        sa_column=sa.Column(enum_type(TaskStatus, "task_status"), nullable=False),
    )
    changed_at: datetime = Field(
        default_factory=utcnow,
        sa_column=sa.Column(UTCDateTime(), nullable=False),
    )
    latitude: float | None = Field(default=None, sa_column=sa.Column(sa.Float(), nullable=True))
    longitude: float | None = Field(default=None, sa_column=sa.Column(sa.Float(), nullable=True))
    address: str | None = Field(
        default=None,
        sa_column=sa.Column(sa.String(length=500), nullable=True),
    )
    notes: str | None = Field(
        default=None,
        sa_column=sa.Column(sa.String(length=500), nullable=True),
    )
    is_override: bool = Field(
        default=False,
        sa_column=sa.Column(sa.Boolean(), nullable=False, server_default=sa.false()),
    )


__all__ = ["StatusChangeRecord"]
