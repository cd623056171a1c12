"""Reads and writes over the ``kudos`` table."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import Select, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kudos_bot.config import settings
from kudos_bot.database import StorageBackend
from kudos_bot.models.kudos import Kudos
from kudos_bot.schemas.kudos import KudosStats, LeaderboardEntry, NewKudos
from kudos_bot.visibility import Visibility

logger = logging.getLogger(__name__)

_NEWEST_FIRST = (Kudos.created_at.desc(), Kudos.id.desc())


def _clamp_limit(limit: int) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValueError(f"limit must be a positive integer, got {limit!r}")
    return min(limit, settings.max_list_limit)


class KudosRepository:
    def __init__(self, session: AsyncSession, backend: StorageBackend) -> None:
        self._session = session
        self._backend = backend

    async def _list(self, stmt: Select, limit: int) -> list[Kudos]:
        result = await self._session.execute(
            stmt.order_by(*_NEWEST_FIRST).limit(_clamp_limit(limit))
        )
        return list(result.scalars().all())

    async def insert(self, record: NewKudos) -> int:
        """Insert one kudos and return its id."""
        kudos = Kudos(
            from_user_id=record.from_user_id,
            from_user_name=record.from_user_name,
            to_user_id=record.to_user_id,
            to_user_name=record.to_user_name,
            message=record.message,
            channel_id=record.channel_id,
            channel_name=record.channel_name,
            sent_dm=record.sent_dm,
            sent_channel=record.sent_channel,
            visibility=Visibility(record.visibility).value,
        )
        self._session.add(kudos)
        await self._session.commit()
        logger.info(
            "Kudos %d saved: %s -> %s (%s)",
            kudos.id,
            kudos.from_user_id,
            kudos.to_user_id,
            kudos.visibility,
        )
        return kudos.id

    async def list_by_recipient(
        self, user_id: str, limit: int = 10, include_private: bool = True
    ) -> list[Kudos]:
        stmt = select(Kudos).where(Kudos.to_user_id == user_id)
        if not include_private:
            stmt = stmt.where(Kudos.visibility == Visibility.PUBLIC.value)
        return await self._list(stmt, limit)

    async def list_by_sender(self, user_id: str, limit: int = 10) -> list[Kudos]:
        return await self._list(select(Kudos).where(Kudos.from_user_id == user_id), limit)

    async def list_all(self, limit: int = 50, visibility: Optional[str] = None) -> list[Kudos]:
        stmt = select(Kudos)
        if visibility is not None:
            stmt = stmt.where(Kudos.visibility == Visibility(visibility).value)
        return await self._list(stmt, limit)

    async def list_public(self, limit: int = 50) -> list[Kudos]:
        return await self.list_all(limit, Visibility.PUBLIC.value)

    async def stats(self) -> KudosStats:
        total = await self._session.scalar(select(func.count()).select_from(Kudos))
        recipients = await self._session.scalar(select(func.count(distinct(Kudos.to_user_id))))
        senders = await self._session.scalar(select(func.count(distinct(Kudos.from_user_id))))
        recent = await self._session.scalar(
            select(func.count())
            .select_from(Kudos)
            .where(Kudos.created_at >= self._backend.recent_cutoff(7))
        )
        return KudosStats(
            total=total or 0,
            unique_recipients=recipients or 0,
            unique_senders=senders or 0,
            last_7_days=recent or 0,
        )

    async def leaderboard(self, limit: int = 10) -> list[LeaderboardEntry]:
        """Recipients ranked by kudos received.

        Order among equal counts is not guaranteed; ``to_user_id`` is only a
        secondary key to keep repeated calls stable.
        """
        kudos_count = func.count(Kudos.id).label("kudos_count")
        stmt = (
            select(Kudos.to_user_id, Kudos.to_user_name, kudos_count)
            .group_by(Kudos.to_user_id, Kudos.to_user_name)
            .order_by(kudos_count.desc(), Kudos.to_user_id)
            .limit(_clamp_limit(limit))
        )
        result = await self._session.execute(stmt)
        return [
            LeaderboardEntry(
                to_user_id=row.to_user_id,
                to_user_name=row.to_user_name,
                kudos_count=row.kudos_count,
            )
            for row in result
        ]
