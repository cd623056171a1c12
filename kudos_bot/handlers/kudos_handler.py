"""Validates a kudos submission, delivers it through Slack, and records it.

Graceful degradation: the DM and the channel post are attempted independently,
and neither failure prevents the kudos from being recorded. The stored
``sent_dm``/``sent_channel`` flags are the actual outcomes, not the request.
"""

from __future__ import annotations

import logging
from typing import Optional

from kudos_bot.clients.slack_client import SlackClient
from kudos_bot.repositories.kudos_repository import KudosRepository
from kudos_bot.schemas.kudos import KudosResult, KudosSubmission, NewKudos
from kudos_bot.templates.slack_templates import (
    DEFAULT_EMOJI,
    build_kudos_blocks,
    build_kudos_text,
)
from kudos_bot.visibility import Visibility

logger = logging.getLogger(__name__)

MIN_MESSAGE_LENGTH = 10
NOT_DELIVERED_WARNING = "Kudos was recorded but could not be delivered"


class KudosValidationError(ValueError):
    """The submission was rejected before any side effect.

    ``field`` names the offending input so the Slack modal can attach the
    message to the right block.
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


def _wants_channel(submission: KudosSubmission) -> bool:
    if submission.wants_channel is None:
        return bool(submission.channel_id)
    return submission.wants_channel


def validate_submission(submission: KudosSubmission) -> Visibility:
    """Raise :class:`KudosValidationError` for an unacceptable submission."""
    if not (
        submission.from_user_id
        and submission.from_user_name
        and submission.to_user_id
        and submission.message
    ):
        raise KudosValidationError(
            "Missing required fields: fromUserId, fromUserName, toUserId, message"
        )
    if len(submission.message) < MIN_MESSAGE_LENGTH:
        raise KudosValidationError(
            f"Message must be at least {MIN_MESSAGE_LENGTH} characters long", field="message"
        )
    try:
        visibility = Visibility(submission.visibility or Visibility.PUBLIC.value)
    except ValueError:
        raise KudosValidationError(
            "Visibility must be 'public' or 'private'", field="visibility"
        ) from None

    wants_channel = _wants_channel(submission)
    if visibility is Visibility.PRIVATE and wants_channel:
        raise KudosValidationError(
            "Private Kudos can only be sent via Direct Message, not to channels.",
            field="posting_options",
        )
    if wants_channel and not submission.channel_id:
        raise KudosValidationError(
            "Please select a channel when posting to channel is enabled.", field="channel"
        )
    return visibility


async def _resolve_recipient_name(slack: SlackClient, submission: KudosSubmission) -> str:
    if submission.to_user_name:
        return submission.to_user_name
    try:
        recipient = await slack.lookup_user(submission.to_user_id)
    except Exception as exc:
        logger.error("Recipient lookup failed for %s: %s", submission.to_user_id, exc)
        raise KudosValidationError("Invalid recipient user ID", field="recipient") from exc
    return recipient.name


async def send_kudos(
    repo: KudosRepository,
    slack: SlackClient,
    submission: KudosSubmission,
) -> KudosResult:
    """Process one kudos submission.

    1. Validate; no Slack call or write happens for a rejected submission.
    2. Send the DM, if requested.
    3. Post to the channel, if requested.
    4. Persist with the actual delivery outcomes.

    Storage errors propagate; Slack errors are logged and recorded as
    undelivered.
    """
    visibility = validate_submission(submission)
    to_user_name = await _resolve_recipient_name(slack, submission)

    emoji = submission.emoji or DEFAULT_EMOJI
    text = build_kudos_text(
        submission.from_user_id,
        submission.to_user_id,
        submission.message,
        emoji=emoji,
        visibility=visibility.value,
    )
    blocks = build_kudos_blocks(text)

    sent_dm = False
    if submission.wants_dm:
        try:
            await slack.post_direct_message(submission.to_user_id, text, blocks)
            sent_dm = True
        except Exception as exc:
            logger.error("Kudos DM to %s failed: %s", submission.to_user_id, exc)

    sent_channel = False
    channel_name: Optional[str] = None
    if _wants_channel(submission):
        channel_name = submission.channel_name
        if not channel_name:
            try:
                channel_name = (await slack.lookup_channel(submission.channel_id)).name or None
            except Exception as exc:
                logger.warning("Channel lookup failed for %s: %s", submission.channel_id, exc)
        try:
            await slack.post_to_channel(submission.channel_id, text, blocks)
            sent_channel = True
        except Exception as exc:
            logger.error("Kudos post to channel %s failed: %s", submission.channel_id, exc)

    kudos_id = await repo.insert(NewKudos(
        from_user_id=submission.from_user_id,
        from_user_name=submission.from_user_name,
        to_user_id=submission.to_user_id,
        to_user_name=to_user_name,
        message=submission.message,
        channel_id=submission.channel_id if sent_channel else None,
        channel_name=channel_name if sent_channel else None,
        sent_dm=sent_dm,
        sent_channel=sent_channel,
        visibility=visibility,
    ))

    warning = None
    if not (sent_dm or sent_channel):
        logger.warning("Kudos %d was recorded without any successful delivery", kudos_id)
        warning = NOT_DELIVERED_WARNING

    return KudosResult(
        kudos_id=kudos_id,
        sent_dm=sent_dm,
        sent_channel=sent_channel,
        visibility=visibility.value,
        channel_name=channel_name if sent_channel else None,
        warning=warning,
    )
