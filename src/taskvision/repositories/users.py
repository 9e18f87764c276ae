"""Repository for interacting with user persistence models."""

from __future__ import annotations

from typing import Sequence

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..models import User
from .base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Read access to users plus the per-user lock used by the time ledger."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, User)

    async def lock(self, user_id: int) -> User | None:
        """Load the user row with ``SELECT ... FOR UPDATE``.

        Serialises timer writes for one user across workers. Backends without
        row locks (SQLite) ignore the clause.
        """
        statement = (
            select(User)
            .where(User.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def list_by_ids(self, ids: Sequence[int]) -> list[User]:
        """Fetch all users whose IDs are contained in the provided sequence."""
        if not ids:
            return []
        result = await self.session.execute(select(User).where(User.id.in_(ids)))
        return list(result.scalars().all())
