"""Slack message, Block Kit and modal builders."""

from __future__ import annotations

from typing import Optional

from kudos_bot.schemas.kudos import KudosResult
from kudos_bot.visibility import Visibility

KUDOS_MODAL_CALLBACK_ID = "kudos_modal"
DEFAULT_EMOJI = "🎉"
KUDOS_EMOJIS = ["🎉", "👏", "🌟", "💯", "🔥", "✨", "🙌", "💪", "🚀", "⭐"]

_PUBLIC_DESCRIPTION = "Visible to everyone"
_PRIVATE_DESCRIPTION = "Only visible to you, recipient, and managers"


def visibility_label(visibility: str) -> str:
    return "🔒 Private" if visibility == Visibility.PRIVATE.value else "🌐 Public"


def build_kudos_text(
    from_user_id: str,
    to_user_id: str,
    message: str,
    emoji: str = DEFAULT_EMOJI,
    visibility: str = Visibility.PUBLIC.value,
) -> str:
    return (
        f"{emoji} *Kudos to <@{to_user_id}>!* {visibility_label(visibility)}\n\n"
        f"*From:* <@{from_user_id}>\n"
        f"*Message:* {message}"
    )


def build_kudos_blocks(text: str) -> list[dict]:
    return [{"type": "section", "text": {"type": "mrkdwn", "text": text}}]


def build_confirmation_text(
    result: KudosResult, emoji: str = DEFAULT_EMOJI
) -> str:
    """Ephemeral summary shown to the sender after a modal submission."""
    details = [f"Visibility: {visibility_label(result.visibility)}"]
    if result.sent_dm:
        details.append("✓ Direct message sent")
    if result.sent_channel:
        details.append(f"✓ Posted in {result.channel_name or 'channel'}")
    if not result.delivered:
        details.append("⚠️ Note: There was an issue sending the kudos. Please try again.")
    return f"✅ Kudos sent successfully! {emoji}\n\n" + "\n".join(details)


def build_failure_text() -> str:
    return "Sorry, there was an error sending the kudos. Please try again."


def build_modal_error_text(error: str) -> str:
    return (
        f"Sorry, there was an error opening the kudos form: {error}. "
        "Please check the bot logs or try again."
    )


def _plain(text: str, emoji: bool = False) -> dict:
    block = {"type": "plain_text", "text": text}
    if emoji:
        block["emoji"] = True
    return block


def _visibility_option(visibility: Visibility) -> dict:
    description = (
        _PRIVATE_DESCRIPTION if visibility is Visibility.PRIVATE else _PUBLIC_DESCRIPTION
    )
    return {
        "text": _plain(visibility_label(visibility.value)),
        "value": visibility.value,
        "description": _plain(description),
    }


def build_kudos_modal(user_name: str, channel_id: Optional[str] = None) -> dict:
    """Modal opened by ``/kudos``; ``private_metadata`` remembers the channel."""
    dm_option = {"text": _plain("Send Direct Message to recipient"), "value": "dm"}
    channel_option = {"text": _plain("Post in a channel"), "value": "channel"}
    emoji_options = [{"text": _plain(emoji), "value": emoji} for emoji in KUDOS_EMOJIS]

    return {
        "type": "modal",
        "callback_id": KUDOS_MODAL_CALLBACK_ID,
        "private_metadata": channel_id or "",
        "title": _plain("Send Kudos", emoji=True),
        "submit": _plain("Send Kudos", emoji=True),
        "close": _plain("Cancel"),
        "blocks": [
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": (
                        f"*Hey {user_name}!* 👋\n\n"
                        "Send kudos to recognize your team member's great work!\n\n"
                        "_💡 Tip: Use the search box to find any team member._"
                    ),
                },
            },
            {"type": "divider"},
            {
                "type": "input",
                "block_id": "recipient_block",
                "label": _plain("Team Member", emoji=True),
                "element": {
                    "type": "users_select",
                    "action_id": "recipient",
                    "placeholder": _plain("Select a team member (searchable)"),
                },
            },
            {
                "type": "input",
                "block_id": "message_block",
                "label": _plain("Kudos Message", emoji=True),
                "element": {
                    "type": "plain_text_input",
                    "action_id": "message",
                    "placeholder": _plain("What did they do that deserves kudos?"),
                    "multiline": True,
                    "min_length": 10,
                },
            },
            {
                "type": "input",
                "block_id": "emoji_block",
                "optional": True,
                "label": _plain("Emoji", emoji=True),
                "element": {
                    "type": "static_select",
                    "action_id": "emoji",
                    "placeholder": _plain("Choose an emoji"),
                    "initial_option": emoji_options[0],
                    "options": emoji_options,
                },
            },
            {"type": "divider"},
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": (
                        "*Visibility*\nChoose who can see this Kudos:\n"
                        "• *Public*: Visible to everyone (default)\n"
                        "• *Private*: Only visible to you, recipient, and managers"
                    ),
                },
            },
            {
                "type": "input",
                "block_id": "visibility_block",
                "optional": True,
                "label": _plain("Visibility", emoji=True),
                "element": {
                    "type": "radio_buttons",
                    "action_id": "visibility",
                    "options": [
                        _visibility_option(Visibility.PUBLIC),
                        _visibility_option(Visibility.PRIVATE),
                    ],
                    # Must match one of the options exactly.
                    "initial_option": _visibility_option(Visibility.PUBLIC),
                },
            },
            {"type": "divider"},
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": "*Where should this kudos be sent?*"},
            },
            {
                "type": "input",
                "block_id": "posting_options_block",
                "label": _plain("Posting Options", emoji=True),
                "element": {
                    "type": "checkboxes",
                    "action_id": "posting_options",
                    "options": [dm_option, channel_option],
                    "initial_options": [dm_option],
                },
            },
            {
                "type": "input",
                "block_id": "channel_block",
                "optional": True,
                "label": _plain("Channel (if posting to channel)", emoji=True),
                "element": {
                    "type": "conversations_select",
                    "action_id": "channel",
                    "placeholder": _plain("Select a channel"),
                    "filter": {
                        "include": ["public", "private"],
                        "exclude_bot_users": True,
                        "exclude_external_shared_channels": False,
                    },
                },
            },
        ],
    }
