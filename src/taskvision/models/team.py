"""Team records. Only the leader takes part in authorization."""

from __future__ import annotations

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .common import TimestampMixin


class Team(TimestampMixin, table=True):
    __tablename__ = "teams"
    __table_args__ = (sa.Index("ix_teams_leader_id", "leader_id"),)

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(
        max_length=255,
        sa_column=sa.Column(sa.String(length=255), nullable=False, unique=True),
    )
    leader_id: int = Field(
        sa_column=sa.Column(
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
    )


class TeamMember(SQLModel, table=True):
    __tablename__ = "team_members"
    __table_args__ = (sa.Index("ix_team_members_user_id", "user_id"),)

    team_id: int = Field(
        sa_column=sa.Column(
            sa.Integer(),
            sa.ForeignKey("teams.id", ondelete="CASCADE"),
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


__all__ = ["Team", "TeamMember"]
