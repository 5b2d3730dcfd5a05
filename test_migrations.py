"""
Integration tests for database migrations.
Run with: python test_migrations.py
"""

import sqlite3
import tempfile
import unittest
from unittest import mock
from pathlib import Path

from migrations import (
    LATEST_SCHEMA_VERSION,
    get_schema_version,
    set_schema_version,
    run_migrations,
    migrate_3_normalize_maintenance_types,
)


def _columns(conn, table):
    return [r[1] for r in conn.execute(f"PRAGMA table_info({table})").fetchall()]


class TestMigrationsFromVersion0(unittest.TestCase):
    """A database created before interval_months, scheduled_date and the closed type list."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.path = Path(self.tmpdir.name) / "old.db"
        self.conn = sqlite3.connect(str(self.path))
        self._create_old_schema(self.conn)

    def tearDown(self):
        self.conn.close()
        self.tmpdir.cleanup()

    def _create_old_schema(self, conn):
        conn.execute("""
            CREATE TABLE instruments (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                model TEXT NOT NULL DEFAULT '',
                serial_number TEXT NOT NULL DEFAULT '',
                location TEXT NOT NULL DEFAULT '',
                status TEXT NOT NULL DEFAULT 'Operational',
                installation_date TEXT,
                last_maintenance_date TEXT,
                next_maintenance_date TEXT,
                maintenance_type TEXT,
                notes TEXT,
                created_at TEXT,
                updated_at TEXT
            )
        """)
        conn.execute("""
            CREATE TABLE maintenance_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                instrument_id INTEGER NOT NULL,
                date TEXT,
                type TEXT NOT NULL DEFAULT 'Scheduled',
                description TEXT NOT NULL DEFAULT '',
                notes TEXT,
                completed INTEGER NOT NULL DEFAULT 0,
                created_at TEXT
            )
        """)
        rows = [
            ("Centrifuge", "Preventative Maintenance"),
            ("Balance", "Calibration"),
            ("Incubator", None),
            ("Fume hood", "Quarterly check"),
            ("pH meter", "1 Year"),
        ]
        conn.executemany("INSERT INTO instruments (name, maintenance_type) VALUES (?, ?)", rows)
        conn.execute(
            "INSERT INTO maintenance_events (instrument_id, date, description, completed) "
            "VALUES (1, '2024-01-10', 'Rotor check', 1)"
        )
        conn.commit()

    def test_schema_version_starts_at_zero(self):
        self.assertEqual(get_schema_version(self.conn), 0)

    def test_run_all(self):
        version = run_migrations(self.conn, self.path)
        self.assertEqual(version, LATEST_SCHEMA_VERSION)
        self.assertEqual(get_schema_version(self.conn), LATEST_SCHEMA_VERSION)
        self.assertIn("interval_months", _columns(self.conn, "instruments"))
        self.assertIn("scheduled_date", _columns(self.conn, "maintenance_events"))

    def test_lock_file_removed(self):
        run_migrations(self.conn, self.path)
        self.assertFalse((self.path.parent / ".migrating").exists())

    def test_maintenance_types_normalized(self):
        run_migrations(self.conn, self.path)
        types = dict(self.conn.execute("SELECT name, maintenance_type FROM instruments").fetchall())
        self.assertEqual(types["Centrifuge"], "PM")
        self.assertEqual(types["Balance"], "Calibration")
        self.assertEqual(types["Incubator"], "Other")
        self.assertEqual(types["Fume hood"], "Other")
        self.assertEqual(types["pH meter"], "1 Year")

    def test_existing_event_keeps_null_scheduled_date(self):
        run_migrations(self.conn, self.path)
        row = self.conn.execute("SELECT scheduled_date, completed FROM maintenance_events").fetchone()
        self.assertIsNone(row[0])
        self.assertEqual(row[1], 1)

    def test_interval_months_must_be_positive(self):
        run_migrations(self.conn, self.path)
        with self.assertRaises(sqlite3.IntegrityError):
            self.conn.execute("UPDATE instruments SET interval_months = 0 WHERE id = 1")

    def test_idempotent(self):
        run_migrations(self.conn, self.path)
        self.assertEqual(run_migrations(self.conn, self.path), LATEST_SCHEMA_VERSION)

    def test_stale_lock_blocks_migration(self):
        lock = self.path.parent / ".migrating"
        lock.write_text("0", encoding="utf-8")
        try:
            with mock.patch("migrations.time.sleep"):
                with self.assertRaises(RuntimeError):
                    run_migrations(self.conn, self.path)
        finally:
            lock.unlink()


class TestSchemaVersionHelpers(unittest.TestCase):
    def test_set_replaces_existing(self):
        conn = sqlite3.connect(":memory:")
        try:
            set_schema_version(conn, 1)
            set_schema_version(conn, 2)
            self.assertEqual(get_schema_version(conn), 2)
            self.assertEqual(conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0], 1)
        finally:
            conn.close()

    def test_normalize_is_noop_on_clean_data(self):
        conn = sqlite3.connect(":memory:")
        try:
            conn.execute("CREATE TABLE instruments (id INTEGER PRIMARY KEY, maintenance_type TEXT)")
            conn.execute("INSERT INTO instruments (maintenance_type) VALUES ('PM')")
            migrate_3_normalize_maintenance_types(conn)
            self.assertEqual(conn.execute("SELECT maintenance_type FROM instruments").fetchone()[0], "PM")
        finally:
            conn.close()


if __name__ == "__main__":
    unittest.main()
