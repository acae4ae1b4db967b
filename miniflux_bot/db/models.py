"""Peewee ORM models for the application database."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import peewee

from miniflux_bot.core.time_utils import truncate_to_second
from miniflux_bot.domain.models import EntryMapping, parse_timestamp

# A proxy that will be initialised with the concrete database instance at runtime.
database_proxy: peewee.Database = peewee.DatabaseProxy()


class UtcDateTimeField(peewee.TextField):
    """Whole-second UTC timestamps stored as RFC 3339 text.

    Peewee's ``DateTimeField`` cannot read back offsets, and every value in the
    store has to compare correctly as text, so one fixed format is enforced.
    """

    def db_value(self, value: Any) -> str | None:
        if value is None:
            return None
        if isinstance(value, str):
            value = parse_timestamp(value)
        return truncate_to_second(value).isoformat()

    def python_value(self, value: Any) -> datetime | None:
        if value is None or value == "":
            return None
        return truncate_to_second(parse_timestamp(value))


class BaseModel(peewee.Model):
    """Base Peewee model bound to the lazily initialised database proxy."""

    class Meta:
        database = database_proxy
        legacy_table_names = False


class Entry(BaseModel):
    """Mapping from a Miniflux entry to the Telegram message that shows it."""

    entry_id = peewee.BigIntegerField(primary_key=True, column_name="id")
    message_id = peewee.BigIntegerField(column_name="telegram_id", index=True)
    sent_time = UtcDateTimeField()
    updated_time = UtcDateTimeField(column_name="updated", null=True)
    delete_on_read = peewee.BooleanField(column_name="delete_read", default=True)

    class Meta:
        table_name = "entries"

    def to_mapping(self) -> EntryMapping:
        return EntryMapping(
            entry_id=int(self.entry_id),
            message_id=int(self.message_id),
            sent_time=self.sent_time,
            # Rows written before the "updated" column existed fall back to the send time.
            updated_time=self.updated_time or self.sent_time,
            delete_on_read=bool(self.delete_on_read),
        )


ALL_MODELS = (Entry,)
