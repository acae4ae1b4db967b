from .entry_repository import SqliteEntryRepository

__all__ = ["SqliteEntryRepository"]
