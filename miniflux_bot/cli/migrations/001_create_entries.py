"""Create the entries table mapping Miniflux entries to Telegram messages."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from miniflux_bot.db.session import DatabaseSessionManager

logger = logging.getLogger(__name__)


def upgrade(db: DatabaseSessionManager) -> None:
    db.database.execute_sql(
        """
        CREATE TABLE IF NOT EXISTS entries (
            id INTEGER NOT NULL PRIMARY KEY,
            telegram_id INTEGER NOT NULL,
            sent_time TEXT NOT NULL
        )
        """
    )
    db.database.execute_sql(
        "CREATE INDEX IF NOT EXISTS entries_telegram_id ON entries (telegram_id)"
    )
    logger.info("entries_table_created")


def downgrade(db: DatabaseSessionManager) -> None:
    db.database.execute_sql("DROP INDEX IF EXISTS entries_telegram_id")
    db.database.execute_sql("DROP TABLE IF EXISTS entries")
