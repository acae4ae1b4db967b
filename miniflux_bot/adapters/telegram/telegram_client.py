from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any


def _ensure_event_loop() -> None:
    # Pyrogram's sync adapter grabs an event loop at import time; newer Pythons
    # raise when none is set, so provision one before the import below.
    try:
        asyncio.get_event_loop()
    except RuntimeError:
        asyncio.set_event_loop(asyncio.new_event_loop())


_ensure_event_loop()

from pyrogram import Client, enums, filters  # noqa: E402
from pyrogram.errors import RPCError  # noqa: E402
from pyrogram.handlers import CallbackQueryHandler, MessageHandler  # noqa: E402
from pyrogram.types import BotCommand, InlineKeyboardButton, InlineKeyboardMarkup  # noqa: E402

from miniflux_bot.adapters.telegram.protocol import SentMessage  # noqa: E402
from miniflux_bot.domain.exceptions import UpstreamUnavailableError  # noqa: E402

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from miniflux_bot.adapters.telegram.keyboard import Keyboard
    from miniflux_bot.config import AppConfig

logger = logging.getLogger(__name__)

BOT_COMMANDS = (
    ("status", "Show poll watermark and tracked messages"),
    ("poll", "Check Miniflux for new entries now"),
    ("help", "Show help and usage"),
)


def to_inline_markup(keyboard: Keyboard) -> InlineKeyboardMarkup:
    """Convert the transport-neutral keyboard into Pyrogram's markup type."""
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton(button.label, callback_data=button.callback_data)
                for button in row
            ]
            for row in keyboard
        ]
    )


def _parse_mode(value: str | None) -> enums.ParseMode | None:
    if value is None:
        return None
    return enums.ParseMode(value.lower())


class TelegramClient:
    """Pyrogram client bound to the one configured chat.

    Implements ``ChatClientProtocol``; every Telegram error is re-raised as
    ``UpstreamUnavailableError`` so callers only handle domain errors.
    """

    def __init__(self, cfg: AppConfig, client: Client | None = None) -> None:
        self.cfg = cfg
        self.chat_id = cfg.telegram.chat_id
        self.client = client or Client(
            name="miniflux_telegram_bot",
            api_id=cfg.telegram.api_id,
            api_hash=cfg.telegram.api_hash,
            bot_token=cfg.telegram.bot_token,
            in_memory=True,
        )
        self._started = False

    async def send_message(
        self,
        text: str,
        *,
        reply_markup: Keyboard | None = None,
        parse_mode: str | None = None,
        disable_notification: bool = False,
    ) -> SentMessage:
        try:
            message = await self.client.send_message(
                self.chat_id,
                text,
                parse_mode=_parse_mode(parse_mode),
                disable_notification=disable_notification,
                reply_markup=to_inline_markup(reply_markup) if reply_markup else None,
            )
        except RPCError as exc:
            msg = f"Telegram send_message failed: {exc}"
            raise UpstreamUnavailableError(msg, details={"chat_id": self.chat_id}) from exc
        return SentMessage(message_id=message.id)

    async def edit_reply_markup(self, message_id: int, reply_markup: Keyboard) -> None:
        try:
            await self.client.edit_message_reply_markup(
                self.chat_id, message_id, reply_markup=to_inline_markup(reply_markup)
            )
        except RPCError as exc:
            msg = f"Telegram edit_message_reply_markup failed: {exc}"
            raise UpstreamUnavailableError(msg, details={"message_id": message_id}) from exc

    async def delete_message(self, message_id: int) -> None:
        try:
            await self.client.delete_messages(self.chat_id, message_id)
        except RPCError as exc:
            msg = f"Telegram delete_messages failed: {exc}"
            raise UpstreamUnavailableError(msg, details={"message_id": message_id}) from exc

    async def answer_callback(
        self, callback_id: str, text: str, *, show_alert: bool = False
    ) -> None:
        try:
            await self.client.answer_callback_query(callback_id, text=text, show_alert=show_alert)
        except RPCError as exc:
            msg = f"Telegram answer_callback_query failed: {exc}"
            raise UpstreamUnavailableError(msg, details={"callback_id": callback_id}) from exc

    async def start(
        self,
        message_handler: Callable[[Any], Awaitable[None]],
        callback_query_handler: Callable[[Any], Awaitable[None]],
    ) -> None:
        """Register update handlers and connect; returns once the client is running."""

        async def _on_message(_client: Any, message: Any) -> None:
            await message_handler(message)

        async def _on_callback(_client: Any, callback_query: Any) -> None:
            await callback_query_handler(callback_query)

        commands = filters.command(["start", "help", "status", "poll"])
        self.client.add_handler(MessageHandler(_on_message, filters.private & commands))
        self.client.add_handler(CallbackQueryHandler(_on_callback))

        await self.client.start()
        self._started = True
        logger.info("telegram_client_started", extra={"chat_id": self.chat_id})
        await self._setup_bot_commands()

    async def stop(self) -> None:
        if not self._started:
            return
        with contextlib.suppress(ConnectionError, RPCError):
            await self.client.stop()
        self._started = False
        logger.info("telegram_client_stopped")

    async def _setup_bot_commands(self) -> None:
        try:
            await self.client.set_bot_commands(
                [BotCommand(name, description) for name, description in BOT_COMMANDS]
            )
        except RPCError as exc:
            logger.warning("bot_commands_set_failed", extra={"error": str(exc)})
            return
        logger.info("bot_commands_set", extra={"count": len(BOT_COMMANDS)})

