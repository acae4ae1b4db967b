"""Add the per-entry ``delete_read`` flag used by the reconciliation sweep."""

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
    if "delete_read" in existing:
        logger.info("delete_read_column_exists_skipping")
        return

    migrator = SqliteMigrator(db.database)
    migrate(migrator.add_column("entries", "delete_read", peewee.BooleanField(default=True)))
    logger.info("delete_read_column_added")


def downgrade(db: DatabaseSessionManager) -> None:
    migrator = SqliteMigrator(db.database)
    migrate(migrator.drop_column("entries", "delete_read"))
