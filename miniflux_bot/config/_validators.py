from __future__ import annotations

import re
from typing import Any

from miniflux_bot.domain.exceptions import InvalidSecretError

# Callback data is capped at 64 bytes by Telegram; "secret:deleteAndMarkRead:<id>"
# must still fit with a 19-digit entry ID, hence the 15 character ceiling.
SECRET_PATTERN = re.compile(r"^[A-Za-z0-9]{1,15}$")


def parse_telegram_secret(value: Any) -> str:
    """Validate the callback secret, raising ``InvalidSecretError`` on anything but 1-15 alphanumerics."""
    secret = "" if value is None else str(value)
    if not SECRET_PATTERN.fullmatch(secret):
        msg = "Telegram secret must be 1-15 alphanumeric characters"
        raise InvalidSecretError(msg)
    return secret


def _ensure_api_key(value: str, *, name: str) -> str:
    if not value:
        msg = f"{name} API key is required"
        raise ValueError(msg)
    value = value.strip()
    if not value:
        msg = f"{name} API key is required"
        raise ValueError(msg)
    if len(value) > 500:
        msg = f"{name} API key appears to be too long"
        raise ValueError(msg)
    if any(char in value for char in [" ", "\n", "\t"]):
        msg = f"{name} API key contains invalid characters"
        raise ValueError(msg)
    return value


def _parse_csv(value: Any) -> tuple[str, ...]:
    if value in (None, ""):
        return ()
    values = value if isinstance(value, list | tuple | set | frozenset) else str(value).split(",")
    return tuple(piece for piece in (str(raw).strip() for raw in values) if piece)


def _parse_bool(value: Any, *, default: bool) -> bool:
    if value in (None, ""):
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    msg = f"Invalid boolean value: {value}"
    raise ValueError(msg)


def _parse_positive_int(value: Any, *, default: int, name: str, maximum: int | None = None) -> int:
    if value in (None, ""):
        return default
    try:
        parsed = int(str(value))
    except ValueError as exc:
        msg = f"{name} must be a valid integer"
        raise ValueError(msg) from exc
    if parsed <= 0:
        msg = f"{name} must be positive"
        raise ValueError(msg)
    if maximum is not None and parsed > maximum:
        msg = f"{name} must be {maximum} or less"
        raise ValueError(msg)
    return parsed
