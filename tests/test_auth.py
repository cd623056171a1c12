"""Tests for Sign in with Slack."""

from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from kudos_bot.clients.slack_oauth import SlackOAuthClient, SlackOAuthError
from kudos_bot.config import settings
from kudos_bot.main import app


@pytest.fixture(autouse=True)
def slack_app(monkeypatch):
    monkeypatch.setattr(settings, "slack_client_id", "123.456")
    monkeypatch.setattr(settings, "slack_client_secret", "shh")


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def test_authorize_url():
    url = urlparse(SlackOAuthClient().authorize_url("http://test/cb", "xyz"))
    query = parse_qs(url.query)
    assert url.netloc == "slack.com"
    assert query["client_id"] == ["123.456"]
    assert query["scope"] == ["openid profile email"]
    assert query["state"] == ["xyz"]


async def test_fetch_user():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("openid.connect.token"):
            assert b"code=abc" in request.content
            return httpx.Response(200, json={"ok": True, "access_token": "xoxp-1"})
        assert request.headers["Authorization"] == "Bearer xoxp-1"
        return httpx.Response(200, json={
            "ok": True,
            "https://slack.com/user_id": "U_ALICE",
            "name": "Alice",
            "email": "alice@example.com",
            "picture": "https://img/alice.png",
        })

    oauth = SlackOAuthClient(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    user = await oauth.fetch_user("abc", "http://test/cb")
    assert user == {
        "id": "U_ALICE",
        "name": "Alice",
        "email": "alice@example.com",
        "image": "https://img/alice.png",
    }


async def test_fetch_user_rejected_code():
    oauth = SlackOAuthClient(client=httpx.AsyncClient(transport=httpx.MockTransport(
        lambda request: httpx.Response(200, json={"ok": False, "error": "invalid_code"})
    )))
    with pytest.raises(SlackOAuthError) as exc_info:
        await oauth.fetch_user("bad", "http://test/cb")
    assert exc_info.value.error == "invalid_code"


async def test_login_flow_sets_session(client):
    resp = await client.get("/api/auth/slack")
    assert resp.status_code == 307
    state = parse_qs(urlparse(resp.headers["location"]).query)["state"][0]

    fetch_user = AsyncMock(return_value={"id": "U_ALICE", "name": "Alice"})
    with patch.object(SlackOAuthClient, "fetch_user", fetch_user):
        resp = await client.get("/api/auth/slack/callback", params={"code": "abc", "state": state})
    assert resp.headers["location"] == "/"

    me = (await client.get("/api/auth/me")).json()
    assert me == {"success": True, "user": {"id": "U_ALICE", "name": "Alice"}}

    await client.get("/api/auth/logout")
    assert (await client.get("/api/auth/me")).json()["success"] is False


async def test_callback_rejects_unknown_state(client):
    await client.get("/api/auth/slack")
    resp = await client.get("/api/auth/slack/callback", params={"code": "abc", "state": "forged"})
    assert resp.headers["location"] == "/?error=invalid_state"


async def test_callback_requires_code(client):
    resp = await client.get("/api/auth/slack/callback")
    assert resp.headers["location"] == "/?error=missing_code"
