"""create task lifecycle and time tracking schema"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4c8e1d2a9b70"
down_revision: str | None = None
branch_labels: tuple[str, ...] | None = None
depends_on: tuple[str, ...] | None = None

TASK_STATUSES = ("not_started", "in_progress", "paused", "completed")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _task_status(column: str, **kwargs) -> sa.Column:
    return sa.Column(
        column,
        sa.Enum(*TASK_STATUSES, name="task_status", native_enum=False, validate_strings=True),
        **kwargs,
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column(
            "role",
            sa.Enum("admin", "employee", name="user_role", native_enum=False, validate_strings=True),
            nullable=False,
            server_default="employee",
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("leader_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["leader_id"], ["users.id"], name="fk_teams_leader_id_users", ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id", name="pk_teams"),
        sa.UniqueConstraint("name", name="uq_teams_name"),
    )
    op.create_index("ix_teams_leader_id", "teams", ["leader_id"], unique=False)

    op.create_table(
        "team_members",
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"], name="fk_team_members_team_id_teams", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_team_members_user_id_users", ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("team_id", "user_id", name="pk_team_members"),
    )
    op.create_index("ix_team_members_user_id", "team_members", ["user_id"], unique=False)

    op.create_table(
        "tasks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _task_status("status", nullable=False, server_default="not_started"),
        sa.Column("status_changed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "assignment_type",
            sa.Enum("individual", "team", name="assignment_type", native_enum=False, validate_strings=True),
            nullable=False,
            server_default="individual",
        ),
        sa.Column("assigned_team_id", sa.Integer(), nullable=True),
        sa.Column("created_by_id", sa.Integer(), nullable=False),
        sa.Column("location_lat", sa.Float(), nullable=True),
        sa.Column("location_lng", sa.Float(), nullable=True),
        sa.Column("location_radius_meters", sa.Integer(), nullable=True),
        sa.Column("location_address", sa.String(length=500), nullable=True),
        sa.Column("estimate_minutes", sa.Integer(), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("original_due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("carryover_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_carried_over_on", sa.Date(), nullable=True),
        *_timestamps(),
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
        sa.ForeignKeyConstraint(
            ["assigned_team_id"], ["teams.id"], name="fk_tasks_assigned_team_id_teams", ondelete="RESTRICT"
        ),
        sa.ForeignKeyConstraint(
            ["created_by_id"], ["users.id"], name="fk_tasks_created_by_id_users", ondelete="RESTRICT"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_tasks"),
    )
    op.create_index("ix_tasks_status_due_date", "tasks", ["status", "due_date"], unique=False)
    op.create_index("ix_tasks_assigned_team_id", "tasks", ["assigned_team_id"], unique=False)

    op.create_table(
        "task_assignees",
        sa.Column("task_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], name="fk_task_assignees_task_id_tasks", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_task_assignees_user_id_users", ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("task_id", "user_id", name="pk_task_assignees"),
    )
    op.create_index("ix_task_assignees_user_id", "task_assignees", ["user_id"], unique=False)

    op.create_table(
        "task_carryovers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("task_id", sa.Integer(), nullable=False),
        sa.Column("swept_on", sa.Date(), nullable=False),
        sa.Column("carried_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("previous_due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("new_due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("carryover_count", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=255), nullable=False),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], name="fk_task_carryovers_task_id_tasks", ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id", name="pk_task_carryovers"),
        sa.UniqueConstraint("task_id", "swept_on", name="uq_task_carryovers_task_day"),
    )

    op.create_table(
        "time_log_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("task_id", sa.Integer(), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("is_break", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "break_type",
            sa.Enum("lunch", "coffee", "meeting", "other", name="break_type", native_enum=False, validate_strings=True),
            nullable=True,
        ),
        sa.Column("billable", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "source",
            sa.Enum("timer", "manual", "auto", name="time_entry_source", native_enum=False, validate_strings=True),
            nullable=False,
            server_default="timer",
        ),
        sa.Column("closed_by_reaper", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.CheckConstraint("end_time IS NULL OR end_time >= start_time", name="ck_time_log_entries_range"),
        sa.CheckConstraint("is_break OR break_type IS NULL", name="ck_time_log_entries_break_type"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_time_log_entries_user_id_users", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["task_id"], ["tasks.id"], name="fk_time_log_entries_task_id_tasks", ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_time_log_entries"),
    )
    op.create_index(
        "uq_time_log_entries_one_active_per_user",
        "time_log_entries",
        ["user_id"],
        unique=True,
        sqlite_where=sa.text("end_time IS NULL"),
        postgresql_where=sa.text("end_time IS NULL"),
    )
    op.create_index(
        "ix_time_log_entries_task_start",
        "time_log_entries",
        ["task_id", "start_time", "id"],
        unique=False,
    )
    op.create_index(
        "ix_time_log_entries_user_start",
        "time_log_entries",
        ["user_id", "start_time"],
        unique=False,
    )

    op.create_table(
        "task_status_changes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("task_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        _task_status("from_status", nullable=False),
        _task_status("to_status", nullable=False),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("address", sa.String(length=500), nullable=True),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("is_override", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(
            ["task_id"], ["tasks.id"], name="fk_task_status_changes_task_id_tasks", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_task_status_changes_user_id_users", ondelete="RESTRICT"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_task_status_changes"),
    )
    op.create_index("ix_task_status_changes_task_id", "task_status_changes", ["task_id", "id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_task_status_changes_task_id", table_name="task_status_changes")
    op.drop_table("task_status_changes")
    op.drop_index("ix_time_log_entries_user_start", table_name="time_log_entries")
    op.drop_index("ix_time_log_entries_task_start", table_name="time_log_entries")
    op.drop_index("uq_time_log_entries_one_active_per_user", table_name="time_log_entries")
    op.drop_table("time_log_entries")
    op.drop_table("task_carryovers")
    op.drop_index("ix_task_assignees_user_id", table_name="task_assignees")
    op.drop_table("task_assignees")
    op.drop_index("ix_tasks_assigned_team_id", table_name="tasks")
    op.drop_index("ix_tasks_status_due_date", table_name="tasks")
    op.drop_table("tasks")
    op.drop_index("ix_team_members_user_id", table_name="team_members")
    op.drop_table("team_members")
    op.drop_index("ix_teams_leader_id", table_name="teams")
    op.drop_table("teams")
    op.drop_table("users")
