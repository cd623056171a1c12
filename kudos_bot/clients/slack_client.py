"""Slack Web API client (Bot token)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from kudos_bot.config import settings

logger = logging.getLogger(__name__)

_SLACK_API = "https://slack.com/api"
_PAGE_SIZE = 200


class SlackApiError(RuntimeError):
    """A Slack Web API call answered ``ok: false``."""

    def __init__(self, method: str, error: str) -> None:
        super().__init__(f"Slack API error in {method}: {error}")
        self.method = method
        self.error = error


class SlackNotConfiguredError(RuntimeError):
    """No bot token is configured."""


@dataclass(frozen=True)
class SlackUser:
    id: str
    name: str
    display_name: str
    email: Optional[str] = None
    image: Optional[str] = None


@dataclass(frozen=True)
class SlackChannel:
    id: str
    name: str
    is_private: bool = False


def _user_from_payload(user: dict) -> SlackUser:
    profile = user.get("profile") or {}
    name = user.get("real_name") or user.get("name") or user.get("id", "")
    return SlackUser(
        id=user.get("id", ""),
        name=name,
        display_name=profile.get("display_name") or name,
        email=profile.get("email"),
        image=profile.get("image_72"),
    )


class SlackClient:
    """Post messages, open modals and look up users/channels."""

    def __init__(self, token: str | None = None, client: httpx.AsyncClient | None = None) -> None:
        token = token or settings.slack_bot_token
        if not token:
            raise SlackNotConfiguredError("Slack not configured: set KUDOS_SLACK_BOT_TOKEN")
        self._headers = {"Authorization": f"Bearer {token}"}
        self._client = client or httpx.AsyncClient(timeout=10.0)

    def _check(self, method: str, resp: httpx.Response) -> dict:
        resp.raise_for_status()
        data = resp.json()
        if not data.get("ok"):
            error_code = data.get("error", "unknown_error")
            logger.error("Slack API error in %s: %s", method, error_code)
            raise SlackApiError(method, error_code)
        return data

    async def _post(self, method: str, payload: dict) -> dict:
        """Call a write method with a JSON body."""
        resp = await self._client.post(
            f"{_SLACK_API}/{method}",
            json=payload,
            headers={**self._headers, "Content-Type": "application/json; charset=utf-8"},
        )
        return self._check(method, resp)

    async def _get(self, method: str, params: dict) -> dict:
        """Call a read method; these do not accept JSON bodies."""
        resp = await self._client.get(f"{_SLACK_API}/{method}", params=params, headers=self._headers)
        return self._check(method, resp)

    async def _paginate(self, method: str, key: str, params: dict) -> list[dict]:
        items: list[dict] = []
        cursor = ""
        while True:
            page_params = {**params, "limit": _PAGE_SIZE}
            if cursor:
                page_params["cursor"] = cursor
            data = await self._get(method, page_params)
            items.extend(data.get(key, []))
            cursor = (data.get("response_metadata") or {}).get("next_cursor", "")
            if not cursor:
                return items

    async def post_message(self, channel: str, text: str, blocks: list[dict] | None = None) -> dict:
        payload: dict = {"channel": channel, "text": text}
        if blocks:
            payload["blocks"] = blocks
        data = await self._post("chat.postMessage", payload)
        logger.info("Slack message sent to %s", channel)
        return data

    async def post_direct_message(
        self, user_id: str, text: str, blocks: list[dict] | None = None
    ) -> dict:
        # chat.postMessage opens the bot's IM with a user when given a user id.
        return await self.post_message(user_id, text, blocks)

    async def post_to_channel(
        self, channel_id: str, text: str, blocks: list[dict] | None = None
    ) -> dict:
        return await self.post_message(channel_id, text, blocks)

    async def post_ephemeral(self, channel_id: str, user_id: str, text: str) -> dict:
        return await self._post(
            "chat.postEphemeral", {"channel": channel_id, "user": user_id, "text": text}
        )

    async def lookup_user(self, user_id: str) -> SlackUser:
        data = await self._get("users.info", {"user": user_id})
        return _user_from_payload(data.get("user") or {})

    async def lookup_channel(self, channel_id: str) -> SlackChannel:
        data = await self._get("conversations.info", {"channel": channel_id})
        channel = data.get("channel") or {}
        return SlackChannel(
            id=channel.get("id", channel_id),
            name=channel.get("name", ""),
            is_private=bool(channel.get("is_private")),
        )

    async def join_channel(self, channel_id: str) -> dict:
        return await self._post("conversations.join", {"channel": channel_id})

    async def open_view(self, trigger_id: str, view: dict) -> dict:
        data = await self._post("views.open", {"trigger_id": trigger_id, "view": view})
        logger.info("Slack view opened: %s", (data.get("view") or {}).get("id"))
        return data

    async def list_team_members(self) -> list[SlackUser]:
        """Active human members of the workspace, sorted by name."""
        members = await self._paginate("users.list", "members", {})
        users = [
            _user_from_payload(member)
            for member in members
            if not member.get("deleted")
            and not member.get("is_bot")
            and member.get("id") != "USLACKBOT"
        ]
        return sorted(users, key=lambda user: user.name.lower())

    async def list_channels(self) -> list[SlackChannel]:
        """Public and private channels that are not archived, sorted by name."""
        channels = await self._paginate(
            "conversations.list",
            "channels",
            {"types": "public_channel,private_channel", "exclude_archived": "true"},
        )
        result = [
            SlackChannel(
                id=channel["id"],
                name=channel.get("name", ""),
                is_private=bool(channel.get("is_private")),
            )
            for channel in channels
        ]
        return sorted(result, key=lambda channel: channel.name)

    async def close(self) -> None:
        await self._client.aclose()
