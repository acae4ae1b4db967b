"""Plain value types shared by the store, the clients and the loops."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from miniflux_bot.core.time_utils import ensure_utc, truncate_to_second

STATUS_READ = "read"
STATUS_UNREAD = "unread"


@dataclass(frozen=True)
class Article:
    """A Miniflux entry, reduced to the fields the bot uses."""

    id: int
    title: str
    url: str
    status: str
    starred: bool
    changed_at: datetime
    feed_title: str = ""
    category_id: int | None = None
    category_title: str = ""

    @property
    def is_read(self) -> bool:
        return self.status == STATUS_READ

    @property
    def is_unread(self) -> bool:
        return self.status == STATUS_UNREAD

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> Article:
        """Build an article from the JSON object returned by ``/v1/entries``."""
        feed = payload.get("feed") or {}
        category = feed.get("category") or {}
        changed_raw = payload.get("changed_at") or payload.get("published_at")
        if not changed_raw:
            msg = f"Entry {payload.get('id')} has no changed_at timestamp"
            raise ValueError(msg)
        return cls(
            id=int(payload["id"]),
            title=str(payload.get("title") or ""),
            url=str(payload.get("url") or ""),
            status=str(payload.get("status") or STATUS_UNREAD),
            starred=bool(payload.get("starred", False)),
            changed_at=parse_timestamp(changed_raw),
            feed_title=str(feed.get("title") or ""),
            category_id=int(category["id"]) if category.get("id") is not None else None,
            category_title=str(category.get("title") or ""),
        )


@dataclass(frozen=True)
class EntryMapping:
    """One forwarded entry: which Telegram message shows which Miniflux entry."""

    entry_id: int
    message_id: int
    sent_time: datetime
    updated_time: datetime
    delete_on_read: bool = True

    def normalized(self) -> EntryMapping:
        """Return a copy with both timestamps in UTC at whole-second precision."""
        return EntryMapping(
            entry_id=self.entry_id,
            message_id=self.message_id,
            sent_time=truncate_to_second(self.sent_time),
            updated_time=truncate_to_second(self.updated_time),
            delete_on_read=self.delete_on_read,
        )


@dataclass(frozen=True)
class EntryPage:
    total: int
    entries: list[Article]


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse a Miniflux RFC 3339 timestamp into an aware UTC datetime."""
    if isinstance(value, datetime):
        return ensure_utc(value)
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    # Miniflux may emit nanoseconds; fromisoformat only accepts up to microseconds.
    if "." in raw:
        head, _, tail = raw.partition(".")
        digits = ""
        rest = ""
        for index, char in enumerate(tail):
            if not char.isdigit():
                rest = tail[index:]
                break
            digits += char
        raw = f"{head}.{digits[:6].ljust(6, '0')}{rest}"
    return ensure_utc(datetime.fromisoformat(raw))
