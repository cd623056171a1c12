"""JSON API for the web portal: kudos feeds, stats and submission.

Every response uses the ``{"success": ..., "data": ...}`` envelope. Reads go
through the visibility policy for the signed-in viewer.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from kudos_bot.clients.slack_client import SlackClient
from kudos_bot.deps import (
    get_kudos_repository,
    get_manager_repository,
    get_slack_client,
    get_viewer_id,
    get_visibility_policy,
    require_admin,
)
from kudos_bot.handlers.kudos_handler import send_kudos
from kudos_bot.repositories.kudos_repository import KudosRepository
from kudos_bot.repositories.manager_repository import ManagerRepository
from kudos_bot.schemas.kudos import KudosOut, KudosSubmission, ManagerAssignment
from kudos_bot.visibility import Visibility, VisibilityPolicy

router = APIRouter(tags=["kudos"])


def _kudos_list(records):
    data = [KudosOut.model_validate(record) for record in records]
    return {"success": True, "data": data, "count": len(data)}


@router.get("/kudos")
async def list_kudos(
    limit: int = Query(50, ge=1),
    visibility: Optional[Visibility] = Query(None),
    repo: KudosRepository = Depends(get_kudos_repository),
    policy: VisibilityPolicy = Depends(get_visibility_policy),
    viewer_id: Optional[str] = Depends(get_viewer_id),
):
    """All kudos, newest first, optionally restricted to one visibility."""
    if visibility is Visibility.PUBLIC:
        records = await repo.list_public(limit)
    else:
        records = await repo.list_all(limit, visibility.value if visibility else None)
    return _kudos_list(await policy.filter(records, viewer_id))


@router.get("/kudos/public")
async def list_public_kudos(
    limit: int = Query(50, ge=1),
    repo: KudosRepository = Depends(get_kudos_repository),
):
    return _kudos_list(await repo.list_public(limit))


@router.get("/kudos/user/{user_id}")
async def list_received_kudos(
    user_id: str = Path(...),
    limit: int = Query(10, ge=1),
    include_private: bool = Query(True, alias="includePrivate"),
    repo: KudosRepository = Depends(get_kudos_repository),
    policy: VisibilityPolicy = Depends(get_visibility_policy),
    viewer_id: Optional[str] = Depends(get_viewer_id),
):
    """Kudos received by ``user_id``.

    ``includePrivate=false`` drops private kudos outright; otherwise they are
    returned only to viewers allowed to read them.
    """
    records = await repo.list_by_recipient(user_id, limit, include_private)
    return _kudos_list(await policy.filter(records, viewer_id))


@router.get("/kudos/sent/{user_id}")
async def list_sent_kudos(
    user_id: str = Path(...),
    limit: int = Query(10, ge=1),
    repo: KudosRepository = Depends(get_kudos_repository),
    policy: VisibilityPolicy = Depends(get_visibility_policy),
    viewer_id: Optional[str] = Depends(get_viewer_id),
):
    records = await repo.list_by_sender(user_id, limit)
    return _kudos_list(await policy.filter(records, viewer_id))


@router.get("/stats")
async def kudos_stats(repo: KudosRepository = Depends(get_kudos_repository)):
    return {"success": True, "data": await repo.stats()}


@router.get("/leaderboard")
async def leaderboard(
    limit: int = Query(10, ge=1),
    repo: KudosRepository = Depends(get_kudos_repository),
):
    return {"success": True, "data": await repo.leaderboard(limit)}


@router.get("/team-members")
async def team_members(slack: SlackClient = Depends(get_slack_client)):
    """Workspace members for the web form's recipient picker."""
    members = await slack.list_team_members()
    data = [
        {
            "id": member.id,
            "name": member.name,
            "displayName": member.display_name,
            "email": member.email,
            "image": member.image,
        }
        for member in members
    ]
    return {"success": True, "data": data}


@router.get("/channels")
async def channels(slack: SlackClient = Depends(get_slack_client)):
    result = await slack.list_channels()
    data = [
        {"id": channel.id, "name": channel.name, "is_private": channel.is_private}
        for channel in result
    ]
    return {"success": True, "data": data}


@router.post("/kudos/send")
async def submit_kudos(
    submission: KudosSubmission,
    repo: KudosRepository = Depends(get_kudos_repository),
    slack: SlackClient = Depends(get_slack_client),
):
    """Send kudos from the web portal.

    The kudos is recorded even when neither delivery succeeds; ``warning``
    tells the caller so.
    """
    result = await send_kudos(repo, slack, submission)
    return {"success": True, "message": "Kudos sent successfully!", "data": result}


@router.get("/managers/{user_id}")
async def get_manager(
    user_id: str = Path(...),
    managers: ManagerRepository = Depends(get_manager_repository),
):
    return {
        "success": True,
        "data": {
            "userId": user_id,
            "managerId": await managers.get_manager(user_id),
            "directReports": await managers.get_direct_reports(user_id),
        },
    }


@router.put("/managers/{user_id}", dependencies=[Depends(require_admin)])
async def set_manager(
    assignment: ManagerAssignment,
    user_id: str = Path(...),
    managers: ManagerRepository = Depends(get_manager_repository),
):
    await managers.set_manager(user_id, assignment.manager_id)
    return {"success": True, "data": {"userId": user_id, "managerId": assignment.manager_id}}
