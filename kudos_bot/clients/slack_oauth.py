"""Sign in with Slack (OpenID Connect) for the web portal."""

from __future__ import annotations

import logging
from urllib.parse import urlencode

import httpx

from kudos_bot.config import settings

logger = logging.getLogger(__name__)

_AUTHORIZE_URL = "https://slack.com/openid/connect/authorize"
_TOKEN_URL = "https://slack.com/api/openid.connect.token"
_USER_INFO_URL = "https://slack.com/api/openid.connect.userInfo"


class SlackOAuthError(RuntimeError):
    def __init__(self, error: str) -> None:
        super().__init__(f"Slack OAuth error: {error}")
        self.error = error


class SlackOAuthClient:
    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        if not settings.slack_client_id:
            raise RuntimeError("Slack login not configured: set KUDOS_SLACK_CLIENT_ID")
        self._client_id = settings.slack_client_id
        self._client_secret = settings.slack_client_secret
        self._client = client or httpx.AsyncClient(timeout=10.0)

    def authorize_url(self, redirect_uri: str, state: str) -> str:
        query = urlencode({
            "response_type": "code",
            "scope": "openid profile email",
            "client_id": self._client_id,
            "redirect_uri": redirect_uri,
            "state": state,
        })
        return f"{_AUTHORIZE_URL}?{query}"

    async def fetch_user(self, code: str, redirect_uri: str) -> dict:
        """Exchange an authorization code for the signed-in user's profile.

        Returns ``{"id", "name", "email", "image"}``.
        """
        resp = await self._client.post(_TOKEN_URL, data={
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": redirect_uri,
        })
        resp.raise_for_status()
        token = resp.json()
        if not token.get("ok"):
            raise SlackOAuthError(token.get("error", "unknown_error"))

        resp = await self._client.get(
            _USER_INFO_URL, headers={"Authorization": f"Bearer {token['access_token']}"}
        )
        resp.raise_for_status()
        info = resp.json()
        if not info.get("ok"):
            raise SlackOAuthError("user_info_failed")

        user = {
            "id": info.get("https://slack.com/user_id") or info.get("sub"),
            "name": info.get("name"),
            "email": info.get("email"),
            "image": info.get("picture"),
        }
        logger.info("User logged in: %s (%s)", user["name"], user["id"])
        return user

    async def close(self) -> None:
        await self._client.aclose()
