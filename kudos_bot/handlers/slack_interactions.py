"""Handles the ``/kudos`` slash command and the kudos modal submission.

Slack expects an acknowledgement within three seconds, so the modal is
validated synchronously and the actual delivery runs afterwards in a
background task with its own database session.
"""

from __future__ import annotations

import logging
from contextlib import suppress
from dataclasses import dataclass
from typing import Optional

from kudos_bot.clients.slack_client import SlackApiError, SlackClient, SlackNotConfiguredError
from kudos_bot.database import StorageBackend
from kudos_bot.handlers.kudos_handler import KudosValidationError, send_kudos, validate_submission
from kudos_bot.repositories.kudos_repository import KudosRepository
from kudos_bot.schemas.kudos import KudosSubmission
from kudos_bot.templates.slack_templates import (
    DEFAULT_EMOJI,
    build_confirmation_text,
    build_failure_text,
    build_kudos_modal,
    build_modal_error_text,
)

logger = logging.getLogger(__name__)

UNKNOWN_USER = "Unknown User"

# Modal block that displays errors for each validated field.
_FIELD_BLOCKS = {
    "recipient": "recipient_block",
    "message": "message_block",
    "visibility": "visibility_block",
    "posting_options": "posting_options_block",
    "channel": "channel_block",
}


@dataclass
class ModalSubmission:
    user_id: str
    user_name: str
    recipient_id: Optional[str]
    message: Optional[str]
    emoji: str
    visibility: str
    wants_dm: bool
    wants_channel: bool
    channel_id: Optional[str]
    # Where the confirmation goes: the channel /kudos was typed in, or the user.
    response_channel: str

    def to_submission(self, from_user_name: str, to_user_name: str) -> KudosSubmission:
        return KudosSubmission(
            from_user_id=self.user_id,
            from_user_name=from_user_name,
            to_user_id=self.recipient_id,
            to_user_name=to_user_name,
            message=self.message,
            emoji=self.emoji,
            visibility=self.visibility,
            wants_dm=self.wants_dm,
            wants_channel=self.wants_channel,
            channel_id=self.channel_id,
        )


def errors_response(errors: dict[str, str]) -> dict:
    return {"response_action": "errors", "errors": errors}


def parse_kudos_modal(payload: dict) -> ModalSubmission:
    """Pull the form values out of a ``view_submission`` payload."""
    view = payload.get("view") or {}
    values = (view.get("state") or {}).get("values") or {}
    user = payload.get("user") or {}

    def _element(block: str, action: str) -> dict:
        return (values.get(block) or {}).get(action) or {}

    selected_options = _element("posting_options_block", "posting_options").get("selected_options") or []
    chosen = {option.get("value") for option in selected_options}
    wants_channel = "channel" in chosen
    emoji_option = _element("emoji_block", "emoji").get("selected_option") or {}
    visibility_option = _element("visibility_block", "visibility").get("selected_option") or {}

    return ModalSubmission(
        user_id=user.get("id", ""),
        user_name=user.get("name") or user.get("username") or user.get("id", ""),
        recipient_id=_element("recipient_block", "recipient").get("selected_user"),
        message=_element("message_block", "message").get("value"),
        emoji=emoji_option.get("value") or DEFAULT_EMOJI,
        visibility=visibility_option.get("value") or "public",
        wants_dm="dm" in chosen,
        wants_channel=wants_channel,
        channel_id=(
            _element("channel_block", "channel").get("selected_conversation")
            if wants_channel
            else None
        ),
        response_channel=view.get("private_metadata") or user.get("id", ""),
    )


async def open_kudos_modal(form: dict) -> None:
    """Open the kudos modal for a ``/kudos`` invocation.

    A failure is reported back to the user: ephemerally in a channel, or as a
    DM anywhere else.
    """
    user_id = form.get("user_id", "")
    channel_id = form.get("channel_id", "")
    trigger_id = form.get("trigger_id")
    logger.info("/kudos invoked by %s (%s) in %s", form.get("user_name"), user_id, channel_id)

    try:
        slack = SlackClient()
    except SlackNotConfiguredError as exc:
        logger.error("Cannot open kudos modal for %s: %s", user_id, exc)
        return
    try:
        if not trigger_id:
            raise ValueError("Missing trigger_id. Please try the command again.")
        await slack.open_view(trigger_id, build_kudos_modal(form.get("user_name", ""), channel_id))
    except Exception as exc:
        logger.error("Could not open kudos modal for %s: %s", user_id, exc)
        text = build_modal_error_text(str(exc))
        try:
            if channel_id.startswith("C"):
                await slack.post_ephemeral(channel_id, user_id, text)
            else:
                await slack.post_direct_message(user_id, text)
        except Exception as notify_exc:
            logger.error("Failed to tell %s about the modal error: %s", user_id, notify_exc)
    finally:
        await slack.close()


async def _check_channel_access(slack: SlackClient, channel_id: str) -> Optional[str]:
    """Return an error message if the bot cannot post in ``channel_id``."""
    try:
        await slack.join_channel(channel_id)
    except Exception as exc:
        # Private channels cannot be joined; the bot may already be a member.
        logger.info("Could not join channel %s: %s", channel_id, exc)
    try:
        await slack.lookup_channel(channel_id)
    except SlackApiError as exc:
        if exc.error == "channel_not_found":
            return (
                "Bot cannot access this channel. If it is private, "
                "please invite the bot to the channel first."
            )
        logger.warning("Channel info failed for %s: %s", channel_id, exc)
    except Exception as exc:
        logger.warning("Channel info failed for %s: %s", channel_id, exc)
    return None


async def validate_kudos_modal(modal: ModalSubmission) -> Optional[dict]:
    """Return a Slack ``errors`` response, or None when the form is acceptable."""
    if modal.visibility == "private" and modal.wants_channel:
        return errors_response({
            "posting_options_block": "Private Kudos can only be sent via Direct Message, not to channels.",
        })
    if modal.wants_channel and modal.channel_id:
        try:
            slack = SlackClient()
        except SlackNotConfiguredError as exc:
            logger.error("Cannot check channel %s: %s", modal.channel_id, exc)
            return errors_response({
                "channel_block": "The kudos bot is not configured to post messages.",
            })
        try:
            error = await _check_channel_access(slack, modal.channel_id)
        finally:
            await slack.close()
        if error:
            return errors_response({"channel_block": error})
    if not modal.wants_dm and not modal.wants_channel:
        return errors_response({
            "posting_options_block": "Please select at least one posting option (DM or Channel).",
        })

    try:
        validate_submission(modal.to_submission(modal.user_name, UNKNOWN_USER))
    except KudosValidationError as exc:
        block = _FIELD_BLOCKS.get(exc.field or "", "message_block")
        return errors_response({block: str(exc)})
    return None


async def _display_name(slack: SlackClient, user_id: str, fallback: str) -> str:
    try:
        return (await slack.lookup_user(user_id)).name or fallback
    except Exception as exc:
        logger.error("Error fetching user info for %s: %s", user_id, exc)
        return fallback


async def process_kudos_modal(backend: StorageBackend, modal: ModalSubmission) -> None:
    """Deliver and record a validated modal submission, then confirm to the sender."""
    try:
        slack = SlackClient()
    except SlackNotConfiguredError as exc:
        logger.error("Kudos from %s to %s dropped: %s", modal.user_id, modal.recipient_id, exc)
        return
    try:
        recipient_name = await _display_name(slack, modal.recipient_id, UNKNOWN_USER)
        sender_name = await _display_name(slack, modal.user_id, modal.user_name)
        submission = modal.to_submission(sender_name, recipient_name)

        try:
            async with backend.session() as db:
                result = await send_kudos(KudosRepository(db, backend), slack, submission)
            text = build_confirmation_text(result, emoji=modal.emoji)
        except Exception as exc:
            logger.exception("Error processing kudos from %s: %s", modal.user_id, exc)
            text = build_failure_text()

        try:
            await slack.post_ephemeral(modal.response_channel, modal.user_id, text)
        except Exception as exc:
            logger.error("Failed to send kudos confirmation to %s: %s", modal.user_id, exc)
    finally:
        with suppress(Exception):
            await slack.close()
