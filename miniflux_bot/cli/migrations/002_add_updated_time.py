"""Add the ``updated`` column tracking the last known upstream change.

Existing rows are backfilled with their send time so the sweep compares
against a real timestamp instead of NULL.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import peewee
from playhouse.migrate import SqliteMigrator, migrate

if TYPE_CHECKING:
    from miniflux_bot.db.session import DatabaseSessionManager

logger = logging.getLogger(__name__)


def upgrade(db: DatabaseSessionManager) -> None:
    existing = {col.name for col in db.database.get_columns("entries")}
    if "updated" in existing:
        logger.info("updated_column_exists_skipping")
    else:
        migrator = SqliteMigrator(db.database)
        migrate(migrator.add_column("entries", "updated", peewee.TextField(null=True)))
        logger.info("updated_column_added")

    db.database.execute_sql("UPDATE entries SET updated = sent_time WHERE updated IS NULL")


def downgrade(db: DatabaseSessionManager) -> None:
    migrator = SqliteMigrator(db.database)
    migrate(migrator.drop_column("entries", "updated"))
