"""Access control for Telegram updates.

The bot serves exactly one chat. Button presses must come from the
configured chat ID (a private chat ID equals the user ID), and commands may
additionally be pinned to a single username.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from miniflux_bot.config import AppConfig

logger = logging.getLogger(__name__)


def _sender(update: Any) -> tuple[int | None, str | None]:
    user = getattr(update, "from_user", None)
    if user is None:
        return None, None
    return getattr(user, "id", None), getattr(user, "username", None)


class AccessController:
    """Decide whether an update may act on the configured chat."""

    def __init__(self, cfg: AppConfig) -> None:
        self.chat_id = cfg.telegram.chat_id
        self.command_username = cfg.telegram.command_username

    def is_authorized_callback(self, query: Any, *, cid: str | None = None) -> bool:
        uid, _ = _sender(query)
        if uid != self.chat_id:
            logger.warning(
                "callback_unauthorized_sender",
                extra={"uid": uid, "chat_id": self.chat_id, "cid": cid},
            )
            return False
        return True

    def is_authorized_command(self, message: Any) -> bool:
        uid, username = _sender(message)
        chat = getattr(message, "chat", None)
        chat_id = getattr(chat, "id", uid)
        if chat_id != self.chat_id:
            logger.warning(
                "command_wrong_chat", extra={"uid": uid, "chat_id": chat_id}
            )
            return False
        if self.command_username and (username or "").lower() != self.command_username.lower():
            logger.warning(
                "command_username_mismatch", extra={"uid": uid, "username": username}
            )
            return False
        return True
