from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ._validators import _ensure_api_key, _parse_bool, parse_telegram_secret


class TelegramConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    api_id: int = Field(
        ...,
        validation_alias=AliasChoices("TELEGRAM_API_ID", "API_ID"),
        description="Telegram API ID (MTProto, required by Pyrogram even for bots)",
    )
    api_hash: str = Field(
        ...,
        validation_alias=AliasChoices("TELEGRAM_API_HASH", "API_HASH"),
        description="Telegram API hash",
    )
    bot_token: str = Field(
        ...,
        validation_alias=AliasChoices("TELEGRAM_BOT_TOKEN", "BOT_TOKEN"),
        description="Telegram bot token",
    )
    chat_id: int = Field(
        ...,
        validation_alias="TELEGRAM_CHAT_ID",
        description="The only chat entries are posted to and callbacks are accepted from",
    )
    secret: str = Field(
        ...,
        validation_alias="TELEGRAM_SECRET",
        description="Pre-shared token embedded in every callback payload",
    )
    silent_notification: bool = Field(
        default=True,
        validation_alias="TELEGRAM_SILENT_NOTIFICATION",
        description="Send entry messages without a notification sound",
    )
    cleanup_messages: bool = Field(
        default=True,
        validation_alias="TELEGRAM_CLEANUP_MESSAGES",
        description="Run the reconciliation sweep",
    )
    delete_on_read: bool = Field(
        default=True,
        validation_alias="TELEGRAM_DELETE_ON_READ",
        description="Remove messages once their entry has been read for the grace period",
    )
    command_username: str | None = Field(
        default=None,
        validation_alias="TELEGRAM_COMMAND_USERNAME",
        description="Only this username may run bot commands (optional)",
    )

    @field_validator("api_id", mode="before")
    @classmethod
    def _parse_api_id(cls, value: Any) -> int:
        if value is None or value == "":
            msg = "API ID is required"
            raise ValueError(msg)
        try:
            api_id = int(str(value))
        except ValueError as exc:
            msg = "API ID must be a valid integer"
            raise ValueError(msg) from exc
        if api_id < 0:
            msg = "API ID must be non-negative"
            raise ValueError(msg)
        return api_id

    @field_validator("api_hash", mode="before")
    @classmethod
    def _validate_api_hash(cls, value: Any) -> str:
        api_hash = str(value or "")
        if not api_hash:
            return ""
        return _ensure_api_key(api_hash, name="API Hash")

    @field_validator("bot_token", mode="before")
    @classmethod
    def _validate_bot_token(cls, value: Any) -> str:
        token = str(value or "")
        if not token:
            return ""
        parts = token.split(":")
        if len(parts) != 2:
            msg = "Bot token format appears invalid"
            raise ValueError(msg)
        if not parts[0].isdigit():
            msg = "Bot token ID part appears invalid"
            raise ValueError(msg)
        if len(parts[1]) < 30:
            msg = "Bot token secret part appears too short"
            raise ValueError(msg)
        return token

    @field_validator("chat_id", mode="before")
    @classmethod
    def _validate_chat_id(cls, value: Any) -> int:
        try:
            chat_id = int(str(value or 0))
        except ValueError as exc:
            msg = "TELEGRAM_CHAT_ID must be a valid integer"
            raise ValueError(msg) from exc
        if chat_id == 0:
            msg = "TELEGRAM_CHAT_ID is not set"
            raise ValueError(msg)
        return chat_id

    @field_validator("secret", mode="before")
    @classmethod
    def _validate_secret(cls, value: Any) -> str:
        return parse_telegram_secret(value)

    @field_validator("silent_notification", "cleanup_messages", "delete_on_read", mode="before")
    @classmethod
    def _validate_flag(cls, value: Any) -> bool:
        return _parse_bool(value, default=True)

    @field_validator("command_username", mode="before")
    @classmethod
    def _validate_command_username(cls, value: Any) -> str | None:
        if value in (None, ""):
            return None
        username = str(value).strip().lstrip("@")
        return username or None
