"""SQLite implementation of the entry mapping store.

One row per forwarded Miniflux entry, keyed by the entry ID. Every method
commits before returning; nothing is cached between calls, so each loop
always sees what is on disk.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import peewee

from miniflux_bot.core.time_utils import truncate_to_second
from miniflux_bot.db.models import Entry
from miniflux_bot.domain.exceptions import ConflictError, NotFoundError
from miniflux_bot.infrastructure.persistence.sqlite.base import SqliteBaseRepository

if TYPE_CHECKING:
    from datetime import datetime

    from miniflux_bot.domain.models import EntryMapping


class SqliteEntryRepository(SqliteBaseRepository):
    """Adapter for entry mapping persistence operations."""

    async def async_insert(self, mapping: EntryMapping) -> None:
        """Persist a new mapping.

        Raises:
            ConflictError: If a row for ``mapping.entry_id`` already exists.
        """
        row = mapping.normalized()

        def _insert() -> None:
            Entry.insert(
                entry_id=row.entry_id,
                message_id=row.message_id,
                sent_time=row.sent_time,
                updated_time=row.updated_time,
                delete_on_read=row.delete_on_read,
            ).execute()

        try:
            await self._execute(_insert, operation_name="insert_entry")
        except peewee.IntegrityError as exc:
            msg = f"Entry {row.entry_id} is already stored"
            raise ConflictError(
                msg, details={"entry_id": row.entry_id, "message_id": row.message_id}
            ) from exc

    async def async_get_all(self) -> list[EntryMapping]:
        """Return every stored mapping ordered by entry ID."""

        def _get_all() -> list[EntryMapping]:
            return [row.to_mapping() for row in Entry.select().order_by(Entry.entry_id)]

        return await self._execute(_get_all, operation_name="get_all_entries", read_only=True)

    async def async_get_by_entry_id(self, entry_id: int) -> EntryMapping:
        """Return the mapping for ``entry_id``.

        Raises:
            NotFoundError: If no row exists.
        """

        def _get() -> EntryMapping | None:
            row = Entry.get_or_none(Entry.entry_id == entry_id)
            return row.to_mapping() if row else None

        mapping = await self._execute(_get, operation_name="get_entry", read_only=True)
        if mapping is None:
            msg = f"Entry {entry_id} is not stored"
            raise NotFoundError(msg, details={"entry_id": entry_id})
        return mapping

    async def async_update_timestamp(self, entry_id: int, when: datetime) -> datetime:
        """Advance ``updated_time`` for ``entry_id`` and return the stored value.

        The timestamp is truncated to whole seconds and never moves backwards:
        an older ``when`` leaves the row untouched.

        Raises:
            NotFoundError: If no row exists.
        """
        new_value = truncate_to_second(when)

        def _update() -> datetime | None:
            row = Entry.get_or_none(Entry.entry_id == entry_id)
            if row is None:
                return None
            current = row.updated_time
            if current is not None and current >= new_value:
                return current
            Entry.update(updated_time=new_value).where(Entry.entry_id == entry_id).execute()
            return new_value

        stored = await self._execute(_update, operation_name="update_entry_time")
        if stored is None:
            msg = f"Entry {entry_id} is not stored"
            raise NotFoundError(msg, details={"entry_id": entry_id})
        return stored

    async def async_delete_by_entry_id(self, entry_id: int) -> int:
        """Delete the mapping for ``entry_id``; a missing row is not an error."""

        def _delete() -> int:
            return Entry.delete().where(Entry.entry_id == entry_id).execute()

        return await self._execute(_delete, operation_name="delete_entry")

    async def async_delete_by_message_id(self, message_id: int) -> int:
        """Delete the mapping(s) pointing at ``message_id``; a missing row is not an error."""

        def _delete() -> int:
            return Entry.delete().where(Entry.message_id == message_id).execute()

        return await self._execute(_delete, operation_name="delete_entry_by_message")

    async def async_count(self) -> int:
        def _count() -> int:
            return Entry.select().count()

        return await self._execute(_count, operation_name="count_entries", read_only=True)
