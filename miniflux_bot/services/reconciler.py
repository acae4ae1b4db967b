"""Reconciliation sweep: keep forwarded messages in step with Miniflux.

Every round walks the stored mappings and, per row, either prunes it
(message older than :data:`RETENTION`), deletes the message (entry read for
longer than :data:`READ_GRACE` and the row opted in), redraws the keyboard
(entry changed upstream since we last looked) or leaves it alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from miniflux_bot.adapters.telegram.keyboard import build_keyboard
from miniflux_bot.core.time_utils import age, truncate_to_second, utc_now
from miniflux_bot.domain.exceptions import DomainException, NotFoundError

if TYPE_CHECKING:
    from miniflux_bot.adapters.miniflux.client import MinifluxClient
    from miniflux_bot.adapters.telegram.protocol import ChatClientProtocol
    from miniflux_bot.domain.models import Article, EntryMapping
    from miniflux_bot.infrastructure.persistence.sqlite.repositories import (
        SqliteEntryRepository,
    )

logger = logging.getLogger(__name__)

# Telegram refuses to edit or delete bot messages older than this.
RETENTION = timedelta(hours=48)
READ_GRACE = timedelta(hours=2)


@dataclass
class SweepReport:
    pruned: int = 0
    deleted: int = 0
    refreshed: int = 0
    skipped: int = 0
    unchanged: int = 0


class ReconciliationSweep:
    def __init__(
        self,
        feed: MinifluxClient,
        chat: ChatClientProtocol,
        store: SqliteEntryRepository,
        secret: str,
    ) -> None:
        self.feed = feed
        self.chat = chat
        self.store = store
        self.secret = secret

    async def sweep(self, now: datetime | None = None) -> SweepReport:
        """Run one round over every stored mapping."""
        now = now or utc_now()
        report = SweepReport()
        try:
            mappings = await self.store.async_get_all()
        except Exception as exc:
            logger.exception("sweep_load_failed", extra={"error": str(exc)})
            return report

        for mapping in mappings:
            try:
                await self._reconcile(mapping, now, report)
            except Exception as exc:
                report.skipped += 1
                logger.exception(
                    "sweep_entry_failed", extra={"entry_id": mapping.entry_id, "error": str(exc)}
                )

        logger.info(
            "sweep_completed",
            extra={
                "rows": len(mappings),
                "pruned": report.pruned,
                "deleted": report.deleted,
                "refreshed": report.refreshed,
                "skipped": report.skipped,
                "unchanged": report.unchanged,
            },
        )
        return report

    async def _reconcile(self, mapping: EntryMapping, now: datetime, report: SweepReport) -> None:
        if age(mapping.sent_time, now) >= RETENTION:
            await self.store.async_delete_by_entry_id(mapping.entry_id)
            report.pruned += 1
            logger.info(
                "sweep_row_pruned",
                extra={"entry_id": mapping.entry_id, "sent_time": mapping.sent_time.isoformat()},
            )
            return

        try:
            article = await self.feed.get_entry(mapping.entry_id)
        except NotFoundError:
            await self.store.async_delete_by_entry_id(mapping.entry_id)
            report.pruned += 1
            logger.info("sweep_entry_gone_upstream", extra={"entry_id": mapping.entry_id})
            return
        except DomainException as exc:
            report.skipped += 1
            logger.warning(
                "sweep_entry_fetch_failed",
                extra={"entry_id": mapping.entry_id, "error": exc.message},
            )
            return

        if article.is_read and age(article.changed_at, now) > READ_GRACE and mapping.delete_on_read:
            await self._delete(mapping)
            report.deleted += 1
            return

        if truncate_to_second(article.changed_at) > mapping.updated_time:
            await self._refresh(mapping, article)
            report.refreshed += 1
            return

        report.unchanged += 1

    async def _delete(self, mapping: EntryMapping) -> None:
        try:
            await self.chat.delete_message(mapping.message_id)
        except DomainException as exc:
            logger.warning(
                "sweep_message_delete_failed",
                extra={
                    "entry_id": mapping.entry_id,
                    "message_id": mapping.message_id,
                    "error": exc.message,
                },
            )
        await self.store.async_delete_by_entry_id(mapping.entry_id)
        logger.info(
            "sweep_read_entry_deleted",
            extra={"entry_id": mapping.entry_id, "message_id": mapping.message_id},
        )

    async def _refresh(self, mapping: EntryMapping, article: Article) -> None:
        try:
            await self.chat.edit_reply_markup(
                mapping.message_id, build_keyboard(article, self.secret)
            )
        except DomainException as exc:
            logger.warning(
                "sweep_keyboard_update_failed",
                extra={"entry_id": mapping.entry_id, "error": exc.message},
            )
        try:
            await self.store.async_update_timestamp(mapping.entry_id, article.changed_at)
        except NotFoundError:
            logger.info("sweep_entry_removed_meanwhile", extra={"entry_id": mapping.entry_id})
            return
        logger.info("sweep_keyboard_updated", extra={"entry_id": mapping.entry_id})
