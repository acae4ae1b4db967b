"""Bot commands (/start, /help, /status, /poll) for the configured chat."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from miniflux_bot.core.logging_utils import generate_correlation_id
from miniflux_bot.services.scheduler import POLL_JOB_ID, SWEEP_JOB_ID

if TYPE_CHECKING:
    from datetime import datetime

    from miniflux_bot.adapters.telegram.access_controller import AccessController
    from miniflux_bot.config import AppConfig
    from miniflux_bot.infrastructure.persistence.sqlite.repositories import (
        SqliteEntryRepository,
    )
    from miniflux_bot.services.poller import EntryPoller
    from miniflux_bot.services.scheduler import SchedulerService

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "Miniflux bot\n\n"
    "New unread Miniflux entries are posted here with buttons to mark them "
    "read or unread, star them, or delete the message.\n\n"
    "Commands:\n"
    "/status - show poll watermark and tracked messages\n"
    "/poll - check Miniflux for new entries now\n"
    "/help - show this message"
)


def _format_time(value: datetime | None) -> str:
    if value is None:
        return "not scheduled"
    return value.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def _command_name(message: Any) -> str:
    command = getattr(message, "command", None)
    if command:
        return str(command[0]).lower()
    text = (getattr(message, "text", None) or "").strip()
    if not text.startswith("/"):
        return ""
    return text[1:].split()[0].split("@")[0].lower()


class CommandHandler:
    """Route slash commands from the configured chat."""

    def __init__(
        self,
        cfg: AppConfig,
        *,
        access: AccessController,
        poller: EntryPoller,
        store: SqliteEntryRepository,
        scheduler: SchedulerService | None = None,
    ) -> None:
        self.cfg = cfg
        self.access = access
        self.poller = poller
        self.store = store
        self.scheduler = scheduler

    async def handle_message(self, message: Any) -> None:
        """Entry point for Pyrogram message updates."""
        cid = generate_correlation_id()
        if not self.access.is_authorized_command(message):
            return

        command = _command_name(message)
        uid = getattr(getattr(message, "from_user", None), "id", None)
        logger.info("command_received", extra={"command": command, "uid": uid, "cid": cid})

        try:
            if command in ("start", "help"):
                await self._reply(message, HELP_TEXT)
            elif command == "status":
                await self._reply(message, await self.status_text())
            elif command == "poll":
                await self.handle_poll(message, cid)
            else:
                logger.debug("unknown_command", extra={"command": command, "cid": cid})
        except Exception as e:
            logger.exception(
                "command_failed", extra={"command": command, "error": str(e), "cid": cid}
            )

    async def status_text(self) -> str:
        tracked = await self.store.async_count()
        sweep_enabled = self.cfg.telegram.cleanup_messages
        next_poll = self.scheduler.get_next_run_time(POLL_JOB_ID) if self.scheduler else None
        next_sweep = self.scheduler.get_next_run_time(SWEEP_JOB_ID) if self.scheduler else None
        lines = [
            f"Watermark: {self.poller.watermark}",
            f"Tracked messages: {tracked}",
            f"Sweep: {'on' if sweep_enabled else 'off'}",
            f"Next poll: {_format_time(next_poll)}",
        ]
        if sweep_enabled:
            lines.append(f"Next sweep: {_format_time(next_sweep)}")
        return "\n".join(lines)

    async def handle_poll(self, message: Any, cid: str) -> None:
        if self.poller.is_polling:
            logger.info("command_poll_busy", extra={"cid": cid})
            await self._reply(message, "A poll is already running.")
            return
        report = await self.poller.poll_once()
        logger.info(
            "command_poll_completed",
            extra={"forwarded": report.forwarded, "watermark": report.watermark, "cid": cid},
        )
        await self._reply(
            message,
            f"Poll finished: {report.forwarded} forwarded, {report.ignored} ignored, "
            f"{report.failed} failed. Watermark {report.watermark}.",
        )

    @staticmethod
    async def _reply(message: Any, text: str) -> None:
        await message.reply_text(text)
