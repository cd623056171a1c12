"""FastAPI dependencies: storage, repositories, policy, viewer and Slack."""

from __future__ import annotations

import hmac
from typing import AsyncIterator, Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from kudos_bot.clients.slack_client import SlackClient
from kudos_bot.config import settings
from kudos_bot.database import StorageBackend
from kudos_bot.repositories.kudos_repository import KudosRepository
from kudos_bot.repositories.manager_repository import ManagerRepository
from kudos_bot.visibility import VisibilityPolicy


def get_backend(request: Request) -> StorageBackend:
    return request.app.state.backend


async def get_db(backend: StorageBackend = Depends(get_backend)) -> AsyncIterator[AsyncSession]:
    async with backend.session() as session:
        yield session


def get_kudos_repository(
    db: AsyncSession = Depends(get_db),
    backend: StorageBackend = Depends(get_backend),
) -> KudosRepository:
    return KudosRepository(db, backend)


def get_manager_repository(
    db: AsyncSession = Depends(get_db),
    backend: StorageBackend = Depends(get_backend),
) -> ManagerRepository:
    return ManagerRepository(db, backend)


def get_visibility_policy(
    managers: ManagerRepository = Depends(get_manager_repository),
) -> VisibilityPolicy:
    return VisibilityPolicy(
        managers,
        enforce=settings.enforce_private_visibility,
        max_depth=settings.manager_chain_max_depth,
    )


def get_viewer_id(request: Request) -> Optional[str]:
    """Slack user id of the signed-in portal user, if any."""
    user = request.session.get("user") or {}
    return user.get("id")


async def get_slack_client() -> AsyncIterator[SlackClient]:
    slack = SlackClient()
    try:
        yield slack
    finally:
        await slack.close()


def require_admin(x_admin_token: Optional[str] = Header(None)) -> None:
    if not settings.admin_api_token:
        raise HTTPException(status_code=403, detail="Admin API disabled")
    if not x_admin_token or not hmac.compare_digest(x_admin_token, settings.admin_api_token):
        raise HTTPException(status_code=403, detail="Invalid admin token")
