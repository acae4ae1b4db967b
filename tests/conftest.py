"""Pytest configuration and shared fixtures.

Fakes for the two external services live here so every test drives the real
dispatcher, handlers and loops against an in-process chat and feed.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

import pytest

from miniflux_bot.adapters.telegram.protocol import SentMessage
from miniflux_bot.config import (
    AppConfig,
    DatabaseConfig,
    MinifluxConfig,
    RuntimeConfig,
    TelegramConfig,
)
from miniflux_bot.core.time_utils import UTC
from miniflux_bot.db.session import DatabaseSessionManager
from miniflux_bot.domain.exceptions import NotFoundError, UpstreamUnavailableError
from miniflux_bot.domain.models import STATUS_READ, STATUS_UNREAD, Article, EntryPage
from miniflux_bot.infrastructure.persistence.sqlite.repositories import SqliteEntryRepository

CHAT_ID = 4242
SECRET = "abc123"
BOT_TOKEN = "123456:" + "A" * 35


def make_article(entry_id: int = 42, **overrides: Any) -> Article:
    fields: dict[str, Any] = {
        "id": entry_id,
        "title": f"Entry {entry_id}",
        "url": f"https://example.com/posts/{entry_id}",
        "status": STATUS_UNREAD,
        "starred": False,
        "changed_at": datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC),
        "feed_title": "Example Feed",
        "category_id": 1,
        "category_title": "News",
    }
    fields.update(overrides)
    return Article(**fields)


def make_config(db_path: str = ":memory:", **telegram: Any) -> AppConfig:
    miniflux = telegram.pop("miniflux", None) or {}
    telegram_fields: dict[str, Any] = {
        "api_id": 1,
        "api_hash": "hash",
        "bot_token": BOT_TOKEN,
        "chat_id": CHAT_ID,
        "secret": SECRET,
    }
    telegram_fields.update(telegram)
    return AppConfig(
        telegram=TelegramConfig(**telegram_fields),
        miniflux=MinifluxConfig(api_key="miniflux-token", **miniflux),
        runtime=RuntimeConfig(db_path=db_path),
        database=DatabaseConfig(),
    )


class FakeChatClient:
    """In-memory stand-in for the Telegram chat; records every call."""

    def __init__(self, first_message_id: int = 1000) -> None:
        self._next_id = first_message_id
        self.sent: list[dict[str, Any]] = []
        self.edits: list[tuple[int, Any]] = []
        self.deleted: list[int] = []
        self.answers: list[dict[str, Any]] = []
        self.fail_send = False
        self.fail_delete = False
        self.fail_edit = False
        self.started = False

    async def send_message(
        self,
        text: str,
        *,
        reply_markup: Any = None,
        parse_mode: str | None = None,
        disable_notification: bool = False,
    ) -> SentMessage:
        if self.fail_send:
            msg = "send failed"
            raise UpstreamUnavailableError(msg)
        message_id = self._next_id
        self._next_id += 1
        self.sent.append(
            {
                "message_id": message_id,
                "text": text,
                "reply_markup": reply_markup,
                "parse_mode": parse_mode,
                "disable_notification": disable_notification,
            }
        )
        return SentMessage(message_id=message_id)

    async def edit_reply_markup(self, message_id: int, reply_markup: Any) -> None:
        if self.fail_edit:
            msg = "edit failed"
            raise UpstreamUnavailableError(msg)
        self.edits.append((message_id, reply_markup))

    async def delete_message(self, message_id: int) -> None:
        if self.fail_delete:
            msg = "delete failed"
            raise UpstreamUnavailableError(msg)
        self.deleted.append(message_id)

    async def answer_callback(self, callback_id: str, text: str, *, show_alert: bool = False) -> None:
        self.answers.append({"id": callback_id, "text": text, "show_alert": show_alert})

    async def start(self, message_handler: Any, callback_query_handler: Any) -> None:
        self.message_handler = message_handler
        self.callback_query_handler = callback_query_handler
        self.started = True

    async def stop(self) -> None:
        self.started = False


class FakeMinifluxClient:
    """Serves articles from a dict and applies status/bookmark changes to it."""

    def __init__(self, articles: list[Article] | None = None) -> None:
        self.articles: dict[int, Article] = {a.id: a for a in articles or []}
        self.fail_entries = False
        self.fail_entry: set[int] = set()
        self.fail_updates = False
        self.entries_calls: list[dict[str, Any]] = []
        self.updates: list[tuple[list[int], str]] = []
        self.toggled: list[int] = []
        self.closed = False

    def add(self, article: Article) -> None:
        self.articles[article.id] = article

    async def get_entries(
        self,
        *,
        status: str | None = None,
        order: str = "id",
        direction: str = "asc",
        after_entry_id: int | None = None,
        limit: int | None = None,
    ) -> EntryPage:
        self.entries_calls.append(
            {
                "status": status,
                "order": order,
                "direction": direction,
                "after_entry_id": after_entry_id,
                "limit": limit,
            }
        )
        if self.fail_entries:
            msg = "miniflux down"
            raise UpstreamUnavailableError(msg)
        entries = [
            a
            for a in self.articles.values()
            if (status is None or a.status == status)
            and (not after_entry_id or a.id > after_entry_id)
        ]
        entries.sort(key=lambda a: a.id, reverse=direction == "desc")
        if limit:
            entries = entries[:limit]
        return EntryPage(total=len(entries), entries=entries)

    async def get_entry(self, entry_id: int) -> Article:
        if entry_id in self.fail_entry:
            msg = "miniflux down"
            raise UpstreamUnavailableError(msg)
        if entry_id not in self.articles:
            msg = f"Miniflux returned 404 for /entries/{entry_id}"
            raise NotFoundError(msg)
        return self.articles[entry_id]

    async def update_entries(self, entry_ids: list[int], status: str) -> None:
        if self.fail_updates:
            msg = "miniflux down"
            raise UpstreamUnavailableError(msg)
        self.updates.append((list(entry_ids), status))
        for entry_id in entry_ids:
            if entry_id in self.articles:
                self.articles[entry_id] = _replace(
                    self.articles[entry_id], status=status, changed_at=datetime.now(UTC)
                )

    async def toggle_bookmark(self, entry_id: int) -> None:
        if self.fail_updates:
            msg = "miniflux down"
            raise UpstreamUnavailableError(msg)
        self.toggled.append(entry_id)
        if entry_id in self.articles:
            article = self.articles[entry_id]
            self.articles[entry_id] = _replace(
                article, starred=not article.starred, changed_at=datetime.now(UTC)
            )

    async def aclose(self) -> None:
        self.closed = True


def _replace(article: Article, **changes: Any) -> Article:
    from dataclasses import replace

    return replace(article, **changes)


def hours_ago(hours: float, now: datetime | None = None) -> datetime:
    return (now or datetime.now(UTC)) - timedelta(hours=hours)


@pytest.fixture
def db(tmp_path):
    session = DatabaseSessionManager(path=str(tmp_path / "store.db"))
    session.migrate()
    yield session
    session.close()


@pytest.fixture
def store(db):
    return SqliteEntryRepository(db)


@pytest.fixture
def chat():
    return FakeChatClient()


@pytest.fixture
def feed():
    return FakeMinifluxClient()
