from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from ._validators import _ensure_api_key, _parse_csv, _parse_positive_int


class MinifluxConfig(BaseModel):
    """Connection and polling settings for the Miniflux instance."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    url: str = Field(
        default="https://reader.miniflux.app",
        validation_alias="MINIFLUX_URL",
        description="Base URL of the Miniflux instance",
    )
    api_key: str = Field(
        ...,
        validation_alias="MINIFLUX_API_KEY",
        description="Miniflux API token (Settings > API Keys)",
    )
    sleep_time_minutes: int = Field(
        default=30,
        validation_alias="MINIFLUX_SLEEP_TIME",
        description="Minutes between polls for new unread entries",
    )
    timeout_sec: int = Field(
        default=30,
        validation_alias="MINIFLUX_TIMEOUT_SEC",
        description="HTTP timeout for Miniflux API calls",
    )
    ignored_categories: tuple[str, ...] = Field(
        default_factory=tuple,
        validation_alias="MINIFLUX_IGNORED_CATEGORIES",
        description="Comma separated category IDs or titles whose entries are never forwarded",
    )

    @field_validator("url", mode="before")
    @classmethod
    def _normalize_url(cls, value: Any) -> str:
        url = str(value or "https://reader.miniflux.app").strip().rstrip("/")
        if url.endswith("/v1"):
            url = url[: -len("/v1")]
        if not url.startswith(("http://", "https://")):
            msg = "MINIFLUX_URL must start with http:// or https://"
            raise ValueError(msg)
        return url

    @field_validator("api_key", mode="before")
    @classmethod
    def _validate_api_key(cls, value: Any) -> str:
        return _ensure_api_key(str(value or ""), name="Miniflux")

    @field_validator("sleep_time_minutes", "timeout_sec", mode="before")
    @classmethod
    def _validate_positive(cls, value: Any, info: ValidationInfo) -> int:
        default = cls.model_fields[info.field_name].default
        return _parse_positive_int(
            value, default=int(default), name=info.field_name.replace("_", " "), maximum=1440
        )

    @field_validator("ignored_categories", mode="before")
    @classmethod
    def _parse_ignored(cls, value: Any) -> tuple[str, ...]:
        return _parse_csv(value)

    def is_ignored(self, category_id: int | None, category_title: str) -> bool:
        """Return True when a category matches the ignore list by ID or (case-insensitive) title."""
        if not self.ignored_categories:
            return False
        lowered = {item.lower() for item in self.ignored_categories}
        if category_id is not None and str(category_id) in lowered:
            return True
        return bool(category_title) and category_title.lower() in lowered
