import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

from miniflux_bot.cli.migrations.migration_runner import MigrationError, MigrationRunner, main
from miniflux_bot.db.session import DatabaseSessionManager


def _columns(db: DatabaseSessionManager) -> set[str]:
    return {col.name for col in db.database.get_columns("entries")}


class TestMigrationRunner(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = TemporaryDirectory()
        self.db_path = str(Path(self._tmp.name) / "store.db")
        self.db = DatabaseSessionManager(path=self.db_path)

    def tearDown(self) -> None:
        self.db.close()
        self._tmp.cleanup()

    def test_fresh_database_gets_full_schema(self) -> None:
        applied = self.db.migrate()

        self.assertEqual(applied, 3)
        with self.db.connection_context():
            self.assertEqual(
                _columns(self.db), {"id", "telegram_id", "sent_time", "updated", "delete_read"}
            )

    def test_migrate_is_a_no_op_the_second_time(self) -> None:
        self.db.migrate()

        self.assertEqual(self.db.migrate(), 0)

    def test_legacy_rows_are_backfilled(self) -> None:
        with self.db.connection_context():
            self.db.database.execute_sql(
                "CREATE TABLE entries (id INTEGER NOT NULL PRIMARY KEY, "
                "telegram_id INTEGER NOT NULL, sent_time TEXT NOT NULL)"
            )
            self.db.database.execute_sql(
                "INSERT INTO entries (id, telegram_id, sent_time) "
                "VALUES (7, 70, '2024-05-01T12:00:00+00:00')"
            )

        self.db.migrate()

        with self.db.connection_context():
            row = self.db.database.execute_sql(
                "SELECT updated, delete_read FROM entries WHERE id = 7"
            ).fetchone()
        self.assertEqual(row[0], "2024-05-01T12:00:00+00:00")
        self.assertEqual(row[1], 1)

    def test_status_and_rollback(self) -> None:
        self.db.migrate()

        with self.db.connection_context():
            runner = MigrationRunner(self.db)
            status = runner.get_migration_status()
            self.assertEqual(status["total"], 3)
            self.assertEqual(status["pending"], 0)

            runner.rollback("003_add_delete_on_read")
            self.assertNotIn("delete_read", _columns(self.db))
            self.assertEqual(
                [p.stem for p in runner.get_pending_migrations()], ["003_add_delete_on_read"]
            )

            with self.assertRaises(MigrationError):
                runner.rollback("003_add_delete_on_read")

    def test_cli_run_and_status(self) -> None:
        self.db.close()

        self.assertEqual(main(["run", "--db", self.db_path]), 0)
        self.assertEqual(main(["status", "--db", self.db_path]), 0)
        self.assertEqual(main(["bogus", "--db", self.db_path]), 1)
        self.assertEqual(main([]), 1)


if __name__ == "__main__":
    unittest.main()
