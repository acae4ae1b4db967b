"""Send path: post one Miniflux entry to the chat and remember the message."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from miniflux_bot.adapters.telegram.keyboard import build_keyboard
from miniflux_bot.core.html_utils import PARSE_MODE, format_entry_message
from miniflux_bot.core.time_utils import utc_now
from miniflux_bot.domain.exceptions import DomainException
from miniflux_bot.domain.models import EntryMapping

if TYPE_CHECKING:
    from miniflux_bot.adapters.telegram.protocol import ChatClientProtocol
    from miniflux_bot.domain.models import Article
    from miniflux_bot.infrastructure.persistence.sqlite.repositories import (
        SqliteEntryRepository,
    )


@dataclass(frozen=True)
class ForwardResult:
    entry_id: int
    sent: bool
    stored: bool = False
    message_id: int | None = None


logger = logging.getLogger(__name__)


class EntryDispatcher:
    """Format an article, send it with its keyboard, then insert the mapping row."""

    def __init__(
        self,
        chat: ChatClientProtocol,
        store: SqliteEntryRepository,
        secret: str,
        *,
        delete_on_read: bool = True,
    ) -> None:
        self.chat = chat
        self.store = store
        self.secret = secret
        self.delete_on_read = delete_on_read

    async def forward(self, article: Article, *, silent: bool = True) -> ForwardResult:
        try:
            sent = await self.chat.send_message(
                format_entry_message(article),
                reply_markup=build_keyboard(article, self.secret),
                parse_mode=PARSE_MODE,
                disable_notification=silent,
            )
        except DomainException as exc:
            logger.error(
                "entry_send_failed",
                extra={"entry_id": article.id, "error": exc.message, **exc.details},
            )
            return ForwardResult(entry_id=article.id, sent=False)

        mapping = EntryMapping(
            entry_id=article.id,
            message_id=sent.message_id,
            sent_time=utc_now(),
            updated_time=article.changed_at,
            delete_on_read=self.delete_on_read,
        )
        try:
            await self.store.async_insert(mapping)
        except DomainException as exc:
            # The message is already in the chat; it just won't be reconciled.
            logger.error(
                "entry_store_failed",
                extra={
                    "entry_id": article.id,
                    "message_id": sent.message_id,
                    "error": exc.message,
                },
            )
            return ForwardResult(
                entry_id=article.id, sent=True, stored=False, message_id=sent.message_id
            )

        logger.info(
            "entry_forwarded",
            extra={"entry_id": article.id, "message_id": sent.message_id, "silent": silent},
        )
        return ForwardResult(
            entry_id=article.id, sent=True, stored=True, message_id=sent.message_id
        )
