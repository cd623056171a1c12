"""Pydantic models for kudos records, submissions and API payloads."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from kudos_bot.visibility import Visibility


class NewKudos(BaseModel):
    """A kudos row ready to be inserted."""

    from_user_id: str
    from_user_name: str
    to_user_id: str
    to_user_name: str
    message: str
    channel_id: Optional[str] = None
    channel_name: Optional[str] = None
    sent_dm: bool = False
    sent_channel: bool = False
    visibility: Visibility = Visibility.PUBLIC


class KudosOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    from_user_id: str
    from_user_name: str
    to_user_id: str
    to_user_name: str
    message: str
    channel_id: Optional[str] = None
    channel_name: Optional[str] = None
    sent_dm: bool
    sent_channel: bool
    visibility: str
    created_at: Optional[datetime] = None


class KudosStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int
    unique_recipients: int = Field(alias="uniqueRecipients")
    unique_senders: int = Field(alias="uniqueSenders")
    last_7_days: int = Field(alias="last7Days")


class LeaderboardEntry(BaseModel):
    to_user_id: str
    to_user_name: str
    kudos_count: int


class KudosSubmission(BaseModel):
    """A request to send kudos, from the web form or the Slack modal.

    Every field is optional here; :func:`kudos_bot.handlers.kudos_handler.send_kudos`
    performs the validation so both entry points report the same errors.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    from_user_id: Optional[str] = Field(None, alias="fromUserId")
    from_user_name: Optional[str] = Field(None, alias="fromUserName")
    to_user_id: Optional[str] = Field(None, alias="toUserId")
    to_user_name: Optional[str] = Field(None, alias="toUserName")
    message: Optional[str] = None
    emoji: Optional[str] = None
    visibility: Optional[str] = None
    wants_dm: bool = Field(True, alias="sendDm")
    # None means "post if a channel was given".
    wants_channel: Optional[bool] = Field(None, alias="postToChannel")
    channel_id: Optional[str] = Field(None, alias="channelId")
    channel_name: Optional[str] = Field(None, alias="channelName")


class KudosResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kudos_id: int = Field(alias="kudosId")
    sent_dm: bool = Field(alias="sentDm")
    sent_channel: bool = Field(alias="sentChannel")
    visibility: str
    channel_name: Optional[str] = Field(None, alias="channelName")
    warning: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.sent_dm or self.sent_channel


class ManagerAssignment(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    manager_id: str = Field(alias="managerId", min_length=1)
