"""Tests for the Slack slash-command and modal submission endpoints."""

import hashlib
import hmac
import json
import time
from unittest.mock import AsyncMock, patch
from urllib.parse import urlencode

import pytest
from httpx import ASGITransport, AsyncClient

from kudos_bot.clients.slack_client import SlackApiError, SlackNotConfiguredError, SlackUser
from kudos_bot.config import settings
from kudos_bot.main import app
from kudos_bot.repositories.kudos_repository import KudosRepository
from kudos_bot.routes.slack import verify_slack_signature


def _signed_headers(body: bytes, timestamp: int | None = None) -> dict:
    ts = str(timestamp or int(time.time()))
    digest = hmac.new(
        settings.slack_signing_secret.encode(), f"v0:{ts}:".encode() + body, hashlib.sha256
    ).hexdigest()
    return {
        "X-Slack-Request-Timestamp": ts,
        "X-Slack-Signature": f"v0={digest}",
        "Content-Type": "application/x-www-form-urlencoded",
    }


def _view_submission(
    *,
    recipient="U_ALICE",
    message="Thanks for shipping the new dashboard!",
    visibility="public",
    options=("dm",),
    channel=None,
) -> dict:
    return {
        "type": "view_submission",
        "user": {"id": "U_SENDER", "name": "sam"},
        "view": {
            "callback_id": "kudos_modal",
            "private_metadata": "C_ORIGIN",
            "state": {
                "values": {
                    "recipient_block": {"recipient": {"selected_user": recipient}},
                    "message_block": {"message": {"value": message}},
                    "emoji_block": {"emoji": {"selected_option": {"value": "🌟"}}},
                    "visibility_block": {
                        "visibility": {"selected_option": {"value": visibility}}
                    },
                    "posting_options_block": {
                        "posting_options": {
                            "selected_options": [{"value": value} for value in options]
                        }
                    },
                    "channel_block": {"channel": {"selected_conversation": channel}},
                }
            },
        },
    }


def _mock_slack() -> AsyncMock:
    slack = AsyncMock()
    slack.lookup_user.side_effect = lambda user_id: SlackUser(
        id=user_id, name={"U_ALICE": "Alice", "U_SENDER": "Sam Sender"}[user_id], display_name=user_id
    )
    return slack


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def _post_form(client, path: str, form: dict):
    body = urlencode(form).encode()
    return await client.post(path, content=body, headers=_signed_headers(body))


async def _submit(client, payload: dict):
    return await _post_form(client, "/slack/interactions", {"payload": json.dumps(payload)})


def test_signature_verification():
    body = b"command=%2Fkudos"
    headers = _signed_headers(body)
    ts, sig = headers["X-Slack-Request-Timestamp"], headers["X-Slack-Signature"]

    assert verify_slack_signature(body, ts, sig) is True
    assert verify_slack_signature(body + b"x", ts, sig) is False
    assert verify_slack_signature(body, ts, None) is False

    stale = _signed_headers(body, timestamp=int(time.time()) - 3600)
    assert verify_slack_signature(
        body, stale["X-Slack-Request-Timestamp"], stale["X-Slack-Signature"]
    ) is False


async def test_unsigned_request_rejected(client):
    resp = await client.post(
        "/slack/commands",
        content=b"command=%2Fkudos",
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert resp.status_code == 401


async def test_slash_command_opens_modal(client):
    slack = _mock_slack()
    with patch("kudos_bot.handlers.slack_interactions.SlackClient", return_value=slack):
        resp = await _post_form(client, "/slack/commands", {
            "command": "/kudos",
            "user_id": "U_SENDER",
            "user_name": "sam",
            "channel_id": "C_ORIGIN",
            "trigger_id": "1337.42.abc",
        })

    assert resp.status_code == 200
    trigger_id, view = slack.open_view.await_args.args
    assert trigger_id == "1337.42.abc"
    assert view["callback_id"] == "kudos_modal"
    assert view["private_metadata"] == "C_ORIGIN"
    slack.close.assert_awaited()


async def test_slash_command_modal_failure_is_reported(client):
    slack = _mock_slack()
    slack.open_view.side_effect = SlackApiError("views.open", "expired_trigger_id")
    with patch("kudos_bot.handlers.slack_interactions.SlackClient", return_value=slack):
        resp = await _post_form(client, "/slack/commands", {
            "command": "/kudos",
            "user_id": "U_SENDER",
            "user_name": "sam",
            "channel_id": "C_ORIGIN",
            "trigger_id": "1337.42.abc",
        })

    assert resp.status_code == 200
    channel, user, text = slack.post_ephemeral.await_args.args
    assert (channel, user) == ("C_ORIGIN", "U_SENDER")
    assert "expired_trigger_id" in text


async def test_slash_command_without_bot_token_is_logged(client, caplog):
    unconfigured = SlackNotConfiguredError("Slack not configured")
    with patch("kudos_bot.handlers.slack_interactions.SlackClient", side_effect=unconfigured):
        resp = await _post_form(client, "/slack/commands", {
            "command": "/kudos",
            "user_id": "U_SENDER",
            "user_name": "sam",
            "channel_id": "C_ORIGIN",
            "trigger_id": "1337.42.abc",
        })

    assert resp.status_code == 200
    assert "Cannot open kudos modal for U_SENDER" in caplog.text


async def test_modal_submission_records_and_confirms(client, backend):
    slack = _mock_slack()
    with patch("kudos_bot.handlers.slack_interactions.SlackClient", return_value=slack):
        resp = await _submit(client, _view_submission())

    assert resp.status_code == 200
    async with backend.session() as db:
        [record] = await KudosRepository(db, backend).list_all(10)
    assert record.from_user_name == "Sam Sender"
    assert record.to_user_name == "Alice"
    assert record.sent_dm is True
    assert record.sent_channel is False

    channel, user, text = slack.post_ephemeral.await_args.args
    assert (channel, user) == ("C_ORIGIN", "U_SENDER")
    assert "✓ Direct message sent" in text
    assert "🌟" in text


async def test_modal_submission_undelivered_warns(client, backend):
    slack = _mock_slack()
    slack.post_direct_message.side_effect = SlackApiError("chat.postMessage", "channel_not_found")
    with patch("kudos_bot.handlers.slack_interactions.SlackClient", return_value=slack):
        await _submit(client, _view_submission())

    text = slack.post_ephemeral.await_args.args[2]
    assert "There was an issue sending the kudos" in text
    async with backend.session() as db:
        assert len(await KudosRepository(db, backend).list_all(10)) == 1


async def test_modal_submission_without_bot_token_is_logged(client, backend, caplog):
    unconfigured = SlackNotConfiguredError("Slack not configured")
    with patch("kudos_bot.handlers.slack_interactions.SlackClient", side_effect=unconfigured):
        resp = await _submit(client, _view_submission())

    assert resp.status_code == 200
    assert "Kudos from U_SENDER to U_ALICE dropped" in caplog.text
    async with backend.session() as db:
        assert await KudosRepository(db, backend).list_all(10) == []


async def test_modal_private_channel_rejected(client, backend):
    slack = _mock_slack()
    with patch("kudos_bot.handlers.slack_interactions.SlackClient", return_value=slack):
        resp = await _submit(
            client,
            _view_submission(visibility="private", options=("dm", "channel"), channel="C_GENERAL"),
        )

    assert resp.json() == {
        "response_action": "errors",
        "errors": {
            "posting_options_block": "Private Kudos can only be sent via Direct Message, not to channels.",
        },
    }
    slack.post_direct_message.assert_not_awaited()
    async with backend.session() as db:
        assert await KudosRepository(db, backend).list_all(10) == []


async def test_modal_requires_a_posting_option(client):
    with patch("kudos_bot.handlers.slack_interactions.SlackClient", return_value=_mock_slack()):
        resp = await _submit(client, _view_submission(options=()))
    assert "posting_options_block" in resp.json()["errors"]


async def test_modal_channel_required_when_posting_to_channel(client):
    with patch("kudos_bot.handlers.slack_interactions.SlackClient", return_value=_mock_slack()):
        resp = await _submit(client, _view_submission(options=("channel",)))
    assert "channel_block" in resp.json()["errors"]


async def test_modal_inaccessible_channel(client):
    slack = _mock_slack()
    slack.join_channel.side_effect = SlackApiError("conversations.join", "method_not_supported_for_channel_type")
    slack.lookup_channel.side_effect = SlackApiError("conversations.info", "channel_not_found")
    with patch("kudos_bot.handlers.slack_interactions.SlackClient", return_value=slack):
        resp = await _submit(client, _view_submission(options=("channel",), channel="G_SECRET"))

    assert "invite the bot" in resp.json()["errors"]["channel_block"]


async def test_modal_short_message(client):
    with patch("kudos_bot.handlers.slack_interactions.SlackClient", return_value=_mock_slack()):
        resp = await _submit(client, _view_submission(message="nice"))
    assert resp.json()["errors"] == {"message_block": "Message must be at least 10 characters long"}


async def test_other_interactions_are_acknowledged(client):
    resp = await _submit(client, {"type": "block_actions", "actions": []})
    assert resp.status_code == 200
    assert resp.content == b""


async def test_modal_channel_check_without_bot_token(client):
    unconfigured = SlackNotConfiguredError("Slack not configured")
    with patch("kudos_bot.handlers.slack_interactions.SlackClient", side_effect=unconfigured):
        resp = await _submit(client, _view_submission(options=("channel",), channel="C_GENERAL"))

    assert resp.json()["errors"] == {
        "channel_block": "The kudos bot is not configured to post messages.",
    }
