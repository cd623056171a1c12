"""Direct manager lookups over ``manager_relationships``."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kudos_bot.database import StorageBackend
from kudos_bot.models.manager_relationship import ManagerRelationship

logger = logging.getLogger(__name__)


class ManagerRepository:
    def __init__(self, session: AsyncSession, backend: StorageBackend) -> None:
        self._session = session
        self._backend = backend

    async def set_manager(self, user_id: str, manager_id: str) -> None:
        """Insert or overwrite the manager of ``user_id``."""
        stmt = self._backend.insert(ManagerRelationship).values(
            user_id=user_id,
            manager_id=manager_id,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[ManagerRelationship.user_id],
            set_={"manager_id": stmt.excluded.manager_id, "updated_at": func.now()},
        )
        await self._session.execute(stmt)
        await self._session.commit()
        logger.info("Manager of %s set to %s", user_id, manager_id)

    async def get_manager(self, user_id: str) -> Optional[str]:
        return await self._session.scalar(
            select(ManagerRelationship.manager_id).where(ManagerRelationship.user_id == user_id)
        )

    async def get_direct_reports(self, manager_id: str) -> list[str]:
        result = await self._session.execute(
            select(ManagerRelationship.user_id)
            .where(ManagerRelationship.manager_id == manager_id)
            .order_by(ManagerRelationship.user_id)
        )
        return list(result.scalars().all())
