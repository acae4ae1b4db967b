"""Poll loop: find unread Miniflux entries newer than the watermark and forward them."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from miniflux_bot.domain.exceptions import DomainException, UpstreamUnavailableError
from miniflux_bot.domain.models import STATUS_UNREAD

if TYPE_CHECKING:
    from miniflux_bot.adapters.miniflux.client import MinifluxClient
    from miniflux_bot.adapters.telegram.dispatcher import EntryDispatcher
    from miniflux_bot.config import MinifluxConfig

logger = logging.getLogger(__name__)


@dataclass
class PollState:
    """The ID of the newest entry already handled; only ``EntryPoller`` mutates it."""

    last_entry_id: int = 0
    initialized: bool = False


@dataclass
class PollReport:
    fetched: int = 0
    forwarded: int = 0
    ignored: int = 0
    failed: int = 0
    watermark: int = 0
    forwarded_ids: list[int] = field(default_factory=list)


class EntryPoller:
    """Owns the watermark and drives one forward per new unread entry."""

    def __init__(
        self,
        feed: MinifluxClient,
        dispatcher: EntryDispatcher,
        cfg: MinifluxConfig,
        *,
        silent: bool = True,
        state: PollState | None = None,
    ) -> None:
        self.feed = feed
        self.dispatcher = dispatcher
        self.cfg = cfg
        self.silent = silent
        self.state = state or PollState()
        self._lock = asyncio.Lock()

    @property
    def watermark(self) -> int:
        return self.state.last_entry_id

    @property
    def is_polling(self) -> bool:
        return self._lock.locked()

    async def initialize(self) -> int:
        """Seed the watermark from the newest unread entry so old entries are not replayed.

        Raises:
            UpstreamUnavailableError: If Miniflux cannot be queried.
        """
        try:
            page = await self.feed.get_entries(
                status=STATUS_UNREAD, order="id", direction="desc", limit=1
            )
        except DomainException as exc:
            msg = f"Cannot determine the latest Miniflux entry: {exc.message}"
            raise UpstreamUnavailableError(msg, details=exc.details) from exc

        self.state.last_entry_id = page.entries[0].id if page.entries else 0
        self.state.initialized = True
        logger.info("poll_watermark_initialized", extra={"watermark": self.state.last_entry_id})
        return self.state.last_entry_id

    async def poll_once(self) -> PollReport:
        """Fetch entries after the watermark and forward them in ascending ID order.

        Runs are serialised so two callers never forward the same entries.
        """
        async with self._lock:
            return await self._poll()

    async def _poll(self) -> PollReport:
        report = PollReport(watermark=self.state.last_entry_id)
        try:
            page = await self.feed.get_entries(
                status=STATUS_UNREAD,
                order="id",
                direction="asc",
                after_entry_id=self.state.last_entry_id,
            )
        except DomainException as exc:
            logger.error(
                "poll_fetch_failed",
                extra={"watermark": self.state.last_entry_id, "error": exc.message},
            )
            return report

        articles = sorted(page.entries, key=lambda a: a.id)
        report.fetched = len(articles)
        for article in articles:
            if article.id <= self.state.last_entry_id:
                continue
            if self.cfg.is_ignored(article.category_id, article.category_title):
                report.ignored += 1
                logger.debug(
                    "entry_ignored_category",
                    extra={"entry_id": article.id, "category": article.category_title},
                )
            else:
                try:
                    result = await self.dispatcher.forward(article, silent=self.silent)
                except Exception as exc:
                    logger.exception(
                        "entry_forward_error", extra={"entry_id": article.id, "error": str(exc)}
                    )
                    report.failed += 1
                else:
                    if result.sent:
                        report.forwarded += 1
                        report.forwarded_ids.append(article.id)
                    else:
                        report.failed += 1
            self.state.last_entry_id = article.id

        report.watermark = self.state.last_entry_id
        if report.fetched:
            logger.info(
                "poll_completed",
                extra={
                    "fetched": report.fetched,
                    "forwarded": report.forwarded,
                    "ignored": report.ignored,
                    "failed": report.failed,
                    "watermark": report.watermark,
                },
            )
        else:
            logger.debug("poll_no_new_entries", extra={"watermark": report.watermark})
        return report
