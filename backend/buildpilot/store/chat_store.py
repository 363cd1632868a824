"""
Chat Log Store

Append-only per-project turn log with a global retention cap applied on write.
"""
import logging
from typing import List, Optional

from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.chat import ChatTurn

logger = logging.getLogger(__name__)

ROLES = ("user", "assistant")


class ChatStore:
    """Async access to a project's chat log."""

    def __init__(self, db: AsyncSession, retention: int = 200):
        self.db = db
        self.retention = retention

    async def append(
        self,
        project_id: str,
        role: str,
        content: str,
        image_url: Optional[str] = None,
        image_data_url: Optional[str] = None,
    ) -> ChatTurn:
        if role not in ROLES:
            raise ValueError(f"Unknown chat role: {role}")

        turn = ChatTurn(
            project_id=project_id,
            role=role,
            content=content,
            image_url=image_url,
            image_data_url=image_data_url,
        )
        self.db.add(turn)
        await self.db.flush()
        await self._apply_retention(project_id)
        await self.db.commit()
        await self.db.refresh(turn)
        return turn

    async def _apply_retention(self, project_id: str) -> None:
        if self.retention <= 0:
            return
        # Oldest id still kept after the cap
        keep_from = (
            select(ChatTurn.id)
            .where(ChatTurn.project_id == project_id)
            .order_by(ChatTurn.id.desc())
            .offset(self.retention - 1)
            .limit(1)
        )
        result = await self.db.execute(keep_from)
        cutoff = result.scalar_one_or_none()
        if cutoff is None:
            return
        await self.db.execute(
            delete(ChatTurn).where(
                ChatTurn.project_id == project_id,
                ChatTurn.id < cutoff,
            )
        )

    async def recent(self, project_id: str, limit: int = 120) -> List[ChatTurn]:
        """The last `limit` turns, oldest first."""
        stmt = (
            select(ChatTurn)
            .where(ChatTurn.project_id == project_id)
            .order_by(ChatTurn.id.desc())
            .limit(max(limit, 0))
        )
        result = await self.db.execute(stmt)
        turns = list(result.scalars().all())
        turns.reverse()
        return turns

    async def count(self, project_id: str) -> int:
        stmt = select(func.count(ChatTurn.id)).where(ChatTurn.project_id == project_id)
        result = await self.db.execute(stmt)
        return result.scalar() or 0
