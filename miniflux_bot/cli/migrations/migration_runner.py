"""Database migration runner with version tracking.

- Tracks applied migrations in the ``migration_history`` table
- Runs migrations in order by filename (``NNN_name.py``)
- Supports rollback of individual migrations
- Wraps each migration and its history row in one transaction

Usage:
    python -m miniflux_bot.cli.migrations.migration_runner status --db data/store.db
    python -m miniflux_bot.cli.migrations.migration_runner run
    python -m miniflux_bot.cli.migrations.migration_runner rollback 003_add_delete_on_read
"""

from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import peewee

from miniflux_bot.core.time_utils import utc_now

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import ModuleType

    from miniflux_bot.db.session import DatabaseSessionManager

logger = logging.getLogger(__name__)

MIGRATIONS_PACKAGE = "miniflux_bot.cli.migrations"
MIGRATIONS_DIR = Path(__file__).parent


class MigrationHistory(peewee.Model):
    """Track applied migrations in the database."""

    migration_name = peewee.TextField(primary_key=True)
    applied_at = peewee.DateTimeField(default=utc_now)

    class Meta:
        table_name = "migration_history"


class MigrationError(Exception):
    """Raised when a migration fails."""


class MigrationRunner:
    """Manages database schema migrations with version tracking."""

    def __init__(self, db: DatabaseSessionManager, migrations_dir: Path = MIGRATIONS_DIR) -> None:
        self.db = db
        self.migrations_dir = migrations_dir
        self._ensure_migration_table()

    def _ensure_migration_table(self) -> None:
        MigrationHistory.bind(self.db.database)
        self.db.database.create_tables([MigrationHistory], safe=True)

    def all_migrations(self) -> list[Path]:
        return sorted(self.migrations_dir.glob("[0-9][0-9][0-9]_*.py"))

    def get_applied_migrations(self) -> set[str]:
        return {m.migration_name for m in MigrationHistory.select()}

    def get_pending_migrations(self) -> list[Path]:
        """Return migration files that have not been applied, in filename order."""
        applied = self.get_applied_migrations()
        pending = [m for m in self.all_migrations() if m.stem not in applied]
        logger.debug(
            "migrations_scanned",
            extra={"applied": len(applied), "pending": [p.stem for p in pending]},
        )
        return pending

    @staticmethod
    def _load(migration_name: str) -> ModuleType:
        module = importlib.import_module(f"{MIGRATIONS_PACKAGE}.{migration_name}")
        for hook in ("upgrade", "downgrade"):
            if not callable(getattr(module, hook, None)):
                msg = f"Migration {migration_name} is missing {hook}()"
                raise MigrationError(msg)
        return module

    def run_migration(self, migration_path: Path) -> None:
        migration_name = migration_path.stem
        try:
            module = self._load(migration_name)
        except ImportError as e:
            msg = f"Migration {migration_name} failed to import: {e}"
            raise MigrationError(msg) from e

        upgrade_fn: Callable[[DatabaseSessionManager], None] = module.upgrade
        try:
            with self.db.database.atomic():
                upgrade_fn(self.db)
                MigrationHistory.create(migration_name=migration_name, applied_at=utc_now())
        except Exception as e:
            logger.exception("migration_failed", extra={"migration": migration_name})
            msg = f"Migration {migration_name} failed: {e}"
            raise MigrationError(msg) from e

        logger.info("migration_applied", extra={"migration": migration_name})

    def run_pending(self) -> int:
        """Run all pending migrations in order and return how many were applied."""
        pending = self.get_pending_migrations()
        for migration_path in pending:
            self.run_migration(migration_path)
        return len(pending)

    def rollback(self, migration_name: str) -> None:
        """Undo one applied migration.

        Raises:
            MigrationError: If the migration was never applied or its downgrade fails.
        """
        history = MigrationHistory.get_or_none(MigrationHistory.migration_name == migration_name)
        if history is None:
            msg = f"Migration {migration_name} has not been applied"
            raise MigrationError(msg)

        module = self._load(migration_name)
        downgrade_fn: Callable[[DatabaseSessionManager], None] = module.downgrade
        try:
            with self.db.database.atomic():
                downgrade_fn(self.db)
                MigrationHistory.delete().where(
                    MigrationHistory.migration_name == migration_name
                ).execute()
        except Exception as e:
            logger.exception("migration_rollback_failed", extra={"migration": migration_name})
            msg = f"Rollback of {migration_name} failed: {e}"
            raise MigrationError(msg) from e

        logger.info("migration_rolled_back", extra={"migration": migration_name})

    def get_migration_status(self) -> dict[str, Any]:
        applied = {m.migration_name: m.applied_at for m in MigrationHistory.select()}
        migrations = self.all_migrations()
        return {
            "total": len(migrations),
            "applied": len(applied),
            "pending": len([m for m in migrations if m.stem not in applied]),
            "migrations": [
                {
                    "name": m.stem,
                    "applied": m.stem in applied,
                    "applied_at": str(applied[m.stem]) if m.stem in applied else None,
                }
                for m in migrations
            ],
        }


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for the migration runner."""
    from miniflux_bot.db.session import DatabaseSessionManager

    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("Usage: python -m miniflux_bot.cli.migrations.migration_runner <command> [args]")
        print("\nCommands:")
        print("  status               - Show migration status")
        print("  pending              - List pending migrations")
        print("  run                  - Run pending migrations")
        print("  rollback <name>      - Rollback a specific migration")
        print("\nOptions:")
        print("  --db <path>          - Database file (default: data/store.db)")
        return 1

    db_path = "data/store.db"
    if "--db" in args:
        db_index = args.index("--db")
        if len(args) > db_index + 1:
            db_path = args[db_index + 1]
            del args[db_index : db_index + 2]

    command = args[0]
    db = DatabaseSessionManager(path=db_path)

    try:
        with db.connection_context():
            runner = MigrationRunner(db)

            if command == "status":
                status = runner.get_migration_status()
                print(f"Total: {status['total']}  Applied: {status['applied']}  Pending: {status['pending']}")
                for m in status["migrations"]:
                    marker = "x" if m["applied"] else " "
                    suffix = f" (applied {m['applied_at']})" if m["applied"] else ""
                    print(f"  [{marker}] {m['name']}{suffix}")
                return 0

            if command == "pending":
                pending = runner.get_pending_migrations()
                if not pending:
                    print("No pending migrations")
                for p in pending:
                    print(f"  - {p.stem}")
                return 0

            if command == "run":
                count = runner.run_pending()
                print(f"Applied {count} migration(s)")
                return 0

            if command == "rollback":
                if len(args) < 2:
                    print("Error: rollback requires migration name")
                    return 1
                runner.rollback(args[1])
                print(f"Rolled back migration: {args[1]}")
                return 0

        print(f"Unknown command: {command}")
        return 1

    except MigrationError as e:
        logger.error("migration_command_failed", extra={"error": str(e)})
        print(f"Migration error: {e}")
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    sys.exit(main())
