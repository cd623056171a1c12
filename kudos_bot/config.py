"""Configuration for kudos-bot."""

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Networked PostgreSQL backend; blank selects the embedded SQLite file.
    database_url: str = ""
    sqlite_path: str = "./kudos.db"
    api_prefix: str = "/api"
    debug: bool = False

    # Hard cap applied to every list query regardless of the requested limit.
    max_list_limit: int = 200

    # Private kudos are only readable by sender, recipient and the
    # recipient's manager chain. False restores the legacy open behaviour.
    enforce_private_visibility: bool = True
    manager_chain_max_depth: int = 10

    # Slack
    slack_bot_token: str = ""
    slack_signing_secret: str = ""
    slack_client_id: str = ""
    slack_client_secret: str = ""

    # Web portal
    session_secret: str = "kudos-secret-key"
    admin_api_token: str = ""

    model_config = {"env_prefix": "KUDOS_"}

    @field_validator(
        "database_url",
        "slack_bot_token",
        "slack_signing_secret",
        "slack_client_id",
        "slack_client_secret",
        "admin_api_token",
        mode="before",
    )
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        return value


settings = Settings()
