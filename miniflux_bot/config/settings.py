from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from miniflux_bot.domain.exceptions import ConfigInvalidError

from ._validators import _parse_positive_int
from .database import DatabaseConfig
from .miniflux import MinifluxConfig
from .telegram import TelegramConfig

logger = logging.getLogger(__name__)


class RuntimeConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    db_path: str = Field(default="data/store.db", validation_alias="DB_PATH")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="LOG_FILE")
    sweep_interval_minutes: int = Field(default=10, validation_alias="SWEEP_INTERVAL_MINUTES")

    @field_validator("log_level", mode="before")
    @classmethod
    def _validate_log_level(cls, value: Any) -> str:
        log_level = str(value or "INFO").upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if log_level not in valid_levels:
            msg = f"Invalid log level: {value}. Must be one of {valid_levels}"
            raise ValueError(msg)
        return log_level

    @field_validator("db_path", mode="before")
    @classmethod
    def _validate_db_path(cls, value: Any) -> str:
        path = str(value or "data/store.db").strip()
        if "\x00" in path:
            msg = "DB path contains invalid characters"
            raise ValueError(msg)
        return path

    @field_validator("log_file", mode="before")
    @classmethod
    def _validate_log_file(cls, value: Any) -> str | None:
        if value is None:
            return None
        trimmed = str(value).strip()
        return trimmed or None

    @field_validator("sweep_interval_minutes", mode="before")
    @classmethod
    def _validate_sweep_interval(cls, value: Any) -> int:
        return _parse_positive_int(value, default=10, name="Sweep interval", maximum=1440)


@dataclass(frozen=True)
class AppConfig:
    telegram: TelegramConfig
    miniflux: MinifluxConfig
    runtime: RuntimeConfig
    database: DatabaseConfig


class Settings(BaseSettings):
    """Application settings loaded automatically from environment variables.

    Nested models are populated by matching validation_alias on each field,
    so the flat variable names (``TELEGRAM_CHAT_ID``, ``MINIFLUX_URL``...) map
    onto the right section.
    """

    model_config = SettingsConfigDict(
        extra="ignore",
        populate_by_name=True,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    telegram: TelegramConfig
    miniflux: MinifluxConfig
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    @model_validator(mode="before")
    @classmethod
    def _build_nested_from_env(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Build nested config objects from flat environment variables.

        Constructor arguments take precedence over the environment.
        """
        if not isinstance(data, dict):
            return data

        result = dict(data)
        merged_source = {**dict(os.environ), **data}

        for field_name, field_info in cls.model_fields.items():
            annotation = field_info.annotation
            if not isinstance(annotation, type) or not issubclass(annotation, BaseModel):
                continue

            nested_data: dict[str, Any] = {}
            for nested_field_name, nested_field in annotation.model_fields.items():
                env_value = cls._resolve_env_value(merged_source, nested_field)
                if env_value is not None:
                    nested_data[nested_field_name] = env_value

            if nested_data:
                if field_name in result and isinstance(result[field_name], dict):
                    result[field_name] = {**nested_data, **result[field_name]}
                else:
                    result[field_name] = nested_data

        return result

    @staticmethod
    def _resolve_env_value(data: dict[str, Any], field: Any) -> Any | None:
        """Resolve environment variable value for a field using its aliases."""
        aliases: list[str] = []
        alias = field.validation_alias
        if isinstance(alias, AliasChoices):
            aliases.extend(choice for choice in alias.choices if isinstance(choice, str))
        elif isinstance(alias, str):
            aliases.append(alias)
        if field.alias:
            aliases.append(field.alias)

        for name in aliases:
            if name in data:
                return data[name]
        return None

    def as_app_config(self) -> AppConfig:
        return AppConfig(
            telegram=self.telegram,
            miniflux=self.miniflux,
            runtime=self.runtime,
            database=self.database,
        )


def load_config(**overrides: Any) -> AppConfig:
    """Load application configuration from environment variables and ``.env``.

    Keyword arguments override whole sections (``telegram={...}``) and are
    mainly useful in tests.

    Raises:
        ConfigInvalidError: If any section fails validation (bad secret,
            missing chat ID, missing API key...).
    """
    # Nested sections read os.environ directly, so surface .env values there first.
    load_dotenv(Path(".env"), override=False)
    try:
        settings = Settings(**overrides)
    except ValidationError as exc:
        msg = f"Configuration validation failed: {exc}"
        raise ConfigInvalidError(msg) from exc

    cfg = settings.as_app_config()
    logger.debug(
        "config_loaded",
        extra={
            "miniflux_url": cfg.miniflux.url,
            "chat_id": cfg.telegram.chat_id,
            "poll_minutes": cfg.miniflux.sleep_time_minutes,
            "sweep_enabled": cfg.telegram.cleanup_messages,
            "ignored_categories": list(cfg.miniflux.ignored_categories),
        },
    )
    return cfg
