"""Append-only access to task status history."""

from __future__ import annotations

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..models import StatusChangeRecord
from .base import BaseRepository


class StatusChangeRepository(BaseRepository[StatusChangeRecord]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, StatusChangeRecord)

    async def list_for_task(self, task_id: int) -> list[StatusChangeRecord]:
        """History in commit order."""
        result = await self.session.execute(
            select(StatusChangeRecord)
            .where(StatusChangeRecord.task_id == task_id)
            .order_by(StatusChangeRecord.id)
        )
        return list(result.scalars().all())


__all__ = ["StatusChangeRepository"]
