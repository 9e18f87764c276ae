"""Repository for team lookups."""

from __future__ import annotations

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..models import Team, TeamMember
from .base import BaseRepository


class TeamRepository(BaseRepository[Team]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Team)

    async def member_ids(self, team_id: int) -> set[int]:
        result = await self.session.execute(
            select(TeamMember.user_id).where(TeamMember.team_id == team_id)
        )
        return set(result.scalars().all())


__all__ = ["TeamRepository"]
