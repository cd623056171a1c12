"""Who may read which kudos.

Public kudos are readable by anyone. Private kudos are readable by their
sender, their recipient, and anyone in the recipient's manager chain.
Anonymous viewers only ever see public kudos.

The ``include_private`` switch on the repository merely excludes private
rows; it never grants access. Access is decided here, against the identity
of the viewer.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Iterable, Optional, Protocol

if TYPE_CHECKING:
    from kudos_bot.repositories.manager_repository import ManagerRepository

logger = logging.getLogger(__name__)


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class _KudosLike(Protocol):
    from_user_id: str
    to_user_id: str
    visibility: str


class VisibilityPolicy:
    def __init__(
        self,
        managers: ManagerRepository,
        *,
        enforce: bool = True,
        max_depth: int = 10,
    ) -> None:
        self._managers = managers
        self._enforce = enforce
        self._max_depth = max_depth

    async def manager_chain(self, user_id: str) -> list[str]:
        """Managers of ``user_id``, nearest first.

        Stops at the top of the chain, on a cycle, or after ``max_depth`` hops.
        """
        chain: list[str] = []
        seen = {user_id}
        current = user_id
        for _ in range(self._max_depth):
            manager_id = await self._managers.get_manager(current)
            if manager_id is None:
                break
            if manager_id in seen:
                logger.warning("Manager cycle detected above user %s at %s", user_id, manager_id)
                break
            chain.append(manager_id)
            seen.add(manager_id)
            current = manager_id
        return chain

    async def _allows(
        self,
        record: _KudosLike,
        viewer_id: Optional[str],
        chain_of: Callable[[str], Awaitable[list[str]]],
    ) -> bool:
        if record.visibility != Visibility.PRIVATE.value or not self._enforce:
            return True
        if not viewer_id:
            return False
        if viewer_id in (record.from_user_id, record.to_user_id):
            return True
        return viewer_id in await chain_of(record.to_user_id)

    async def can_view(self, record: _KudosLike, viewer_id: Optional[str]) -> bool:
        return await self._allows(record, viewer_id, self.manager_chain)

    async def filter(self, records: Iterable[_KudosLike], viewer_id: Optional[str]) -> list:
        """Drop the records ``viewer_id`` may not read, keeping order.

        Each recipient's manager chain is looked up at most once.
        """
        chains: dict[str, list[str]] = {}

        async def cached_chain(user_id: str) -> list[str]:
            if user_id not in chains:
                chains[user_id] = await self.manager_chain(user_id)
            return chains[user_id]

        visible = []
        for record in records:
            if await self._allows(record, viewer_id, cached_chain):
                visible.append(record)
        return visible
