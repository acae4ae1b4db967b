from __future__ import annotations

from ._validators import SECRET_PATTERN, parse_telegram_secret
from .database import DatabaseConfig
from .miniflux import MinifluxConfig
from .settings import AppConfig, RuntimeConfig, Settings, load_config
from .telegram import TelegramConfig

__all__ = [
    "SECRET_PATTERN",
    "AppConfig",
    "DatabaseConfig",
    "MinifluxConfig",
    "RuntimeConfig",
    "Settings",
    "TelegramConfig",
    "load_config",
    "parse_telegram_secret",
]
