"""Chat client protocol: the narrow slice of Telegram the core logic depends on.

The dispatcher, callback handler and sweep only talk to this interface, so
tests drive them with an in-memory fake and production plugs in the
Pyrogram-backed ``TelegramClient``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from miniflux_bot.adapters.telegram.keyboard import Keyboard


@dataclass(frozen=True)
class SentMessage:
    message_id: int


@runtime_checkable
class ChatClientProtocol(Protocol):
    """Operations on the single configured chat.

    Implementations raise ``UpstreamUnavailableError`` when Telegram rejects
    or fails a call.
    """

    async def send_message(
        self,
        text: str,
        *,
        reply_markup: Keyboard | None = None,
        parse_mode: str | None = None,
        disable_notification: bool = False,
    ) -> SentMessage: ...

    async def edit_reply_markup(self, message_id: int, reply_markup: Keyboard) -> None: ...

    async def delete_message(self, message_id: int) -> None: ...

    async def answer_callback(
        self, callback_id: str, text: str, *, show_alert: bool = False
    ) -> None: ...
