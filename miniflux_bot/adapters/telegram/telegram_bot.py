from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from miniflux_bot.adapters.miniflux.client import MinifluxClient
from miniflux_bot.adapters.telegram.access_controller import AccessController
from miniflux_bot.adapters.telegram.callback_handler import CallbackHandler
from miniflux_bot.adapters.telegram.command_handler import CommandHandler
from miniflux_bot.adapters.telegram.dispatcher import EntryDispatcher
from miniflux_bot.adapters.telegram.task_manager import BackgroundTaskSet
from miniflux_bot.core.logging_utils import setup_json_logging
from miniflux_bot.infrastructure.persistence.sqlite.repositories import SqliteEntryRepository
from miniflux_bot.services.poller import EntryPoller
from miniflux_bot.services.reconciler import ReconciliationSweep
from miniflux_bot.services.scheduler import SchedulerService

if TYPE_CHECKING:
    from miniflux_bot.adapters.telegram.telegram_client import TelegramClient
    from miniflux_bot.config import AppConfig
    from miniflux_bot.db.session import DatabaseSessionManager

logger = logging.getLogger(__name__)

# Upper bound on how long shutdown waits for in-flight button presses.
SHUTDOWN_DRAIN_TIMEOUT = 10.0


@dataclass
class TelegramBot:
    """Wires the Miniflux client, the chat client, the store and the loops together."""

    cfg: AppConfig
    db: DatabaseSessionManager
    telegram_client: TelegramClient | None = None
    feed: MinifluxClient | None = None
    _stopping: asyncio.Event | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        """Initialize bot components."""
        setup_json_logging(self.cfg.runtime.log_level, log_file=self.cfg.runtime.log_file)
        logger.info(
            "bot_init",
            extra={
                "db_path": self.cfg.runtime.db_path,
                "log_level": self.cfg.runtime.log_level,
                "miniflux_url": self.cfg.miniflux.url,
            },
        )

        if self.telegram_client is None:
            from miniflux_bot.adapters.telegram.telegram_client import TelegramClient

            self.telegram_client = TelegramClient(self.cfg)
        if self.feed is None:
            self.feed = MinifluxClient(
                self.cfg.miniflux.url,
                self.cfg.miniflux.api_key,
                timeout_sec=self.cfg.miniflux.timeout_sec,
            )

        self.store = SqliteEntryRepository(self.db)
        self.tasks = BackgroundTaskSet()
        self.access = AccessController(self.cfg)

        self.dispatcher = EntryDispatcher(
            self.telegram_client,
            self.store,
            self.cfg.telegram.secret,
            delete_on_read=self.cfg.telegram.delete_on_read,
        )
        self.poller = EntryPoller(
            self.feed,
            self.dispatcher,
            self.cfg.miniflux,
            silent=self.cfg.telegram.silent_notification,
        )
        self.sweeper = ReconciliationSweep(
            self.feed, self.telegram_client, self.store, self.cfg.telegram.secret
        )
        self.scheduler = SchedulerService(
            self.cfg,
            self.poller,
            self.sweeper if self.cfg.telegram.cleanup_messages else None,
        )
        self.callback_handler = CallbackHandler(
            access=self.access,
            secret=self.cfg.telegram.secret,
            feed=self.feed,
            chat=self.telegram_client,
            store=self.store,
            tasks=self.tasks,
        )
        self.command_handler = CommandHandler(
            self.cfg,
            access=self.access,
            poller=self.poller,
            store=self.store,
            scheduler=self.scheduler,
        )

    async def start(self) -> None:
        """Seed the watermark, connect to Telegram, schedule the loops and idle until stopped.

        Raises:
            UpstreamUnavailableError: If the newest Miniflux entry cannot be read.
        """
        assert self.telegram_client is not None
        self._stopping = asyncio.Event()

        try:
            await self.poller.initialize()
            await self.telegram_client.start(
                self.command_handler.handle_message, self.callback_handler.on_callback_query
            )
            await self.scheduler.start()
            await self.poller.poll_once()
            logger.info("bot_started", extra={"watermark": self.poller.watermark})
            await self._stopping.wait()
        finally:
            await self.shutdown()

    def request_stop(self) -> None:
        if self._stopping is not None:
            self._stopping.set()

    async def shutdown(self) -> None:
        await self.scheduler.stop()
        await self.tasks.drain(timeout=SHUTDOWN_DRAIN_TIMEOUT)
        if self.telegram_client is not None:
            await self.telegram_client.stop()
        if self.feed is not None:
            await self.feed.aclose()
        logger.info("bot_stopped")
