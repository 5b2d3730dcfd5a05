# migrations.py
# Schema versioning and migrations for Maintenance Tracker.
# Run after core schema creation; migrations are applied in order.

import logging
import sqlite3
import time
from pathlib import Path

from domain.models import MaintenanceType, parse_maintenance_type

logger = logging.getLogger(__name__)

SCHEMA_VERSION_TABLE = "schema_version"
LATEST_SCHEMA_VERSION = 3


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Return current schema version (0 if table or row missing)."""
    cur = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
        (SCHEMA_VERSION_TABLE,),
    )
    if cur.fetchone() is None:
        return 0
    cur = conn.execute(f"SELECT MAX(version) AS v FROM {SCHEMA_VERSION_TABLE}")
    row = cur.fetchone()
    if row is None or row[0] is None:
        return 0
    return int(row[0])


def set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    """Set schema version (replaces any existing row)."""
    conn.execute(
        f"CREATE TABLE IF NOT EXISTS {SCHEMA_VERSION_TABLE} (version INTEGER PRIMARY KEY)"
    )
    conn.execute(f"DELETE FROM {SCHEMA_VERSION_TABLE}")
    conn.execute(f"INSERT INTO {SCHEMA_VERSION_TABLE} (version) VALUES (?)", (version,))
    conn.commit()


def _columns(conn: sqlite3.Connection, table: str) -> list[str]:
    return [r[1] for r in conn.execute(f"PRAGMA table_info({table})").fetchall()]


def migrate_1_add_interval_months(conn: sqlite3.Connection) -> None:
    """
    Migration 1: per-instrument recurrence interval.
    NULL means "use the interval implied by the maintenance type, else 6 months".
    """
    if "interval_months" not in _columns(conn, "instruments"):
        conn.execute(
            "ALTER TABLE instruments ADD COLUMN interval_months INTEGER "
            "CHECK (interval_months IS NULL OR interval_months > 0)"
        )
    conn.commit()


def migrate_2_add_event_scheduled_date(conn: sqlite3.Connection) -> None:
    """
    Migration 2: keep the planned date of events completed out of schedule.
    Existing completed events keep scheduled_date NULL (planned date unknown).
    """
    if "scheduled_date" not in _columns(conn, "maintenance_events"):
        conn.execute("ALTER TABLE maintenance_events ADD COLUMN scheduled_date TEXT")
    conn.commit()


def migrate_3_normalize_maintenance_types(conn: sqlite3.Connection) -> None:
    """
    Migration 3: rewrite free-text maintenance_type labels to the closed set.
    'Preventative Maintenance' becomes 'PM'; blank or unknown labels become 'Other'.
    """
    rows = conn.execute("SELECT id, maintenance_type FROM instruments").fetchall()
    changed = 0
    for row in rows:
        old = row[1]
        new = parse_maintenance_type(old).value
        if old != new:
            conn.execute(
                "UPDATE instruments SET maintenance_type = ? WHERE id = ?",
                (new, row[0]),
            )
            changed += 1
    if changed:
        logger.info("Normalized maintenance_type on %s instrument(s)", changed)
    conn.execute(
        "UPDATE instruments SET maintenance_type = ? WHERE maintenance_type IS NULL",
        (MaintenanceType.OTHER.value,),
    )
    conn.commit()


MIGRATIONS = [
    (1, migrate_1_add_interval_months),
    (2, migrate_2_add_event_scheduled_date),
    (3, migrate_3_normalize_maintenance_types),
]


def _migration_lock_path(db_path) -> "Path | None":
    """Path to advisory lock file next to the database."""
    if db_path is None:
        return None
    return Path(db_path).parent / ".migrating"


def run_migrations(conn: sqlite3.Connection, db_path=None) -> int:
    """
    Run all pending migrations in order. Uses advisory lock file to prevent
    concurrent migration. Returns the resulting schema version.
    """
    lock_path = _migration_lock_path(db_path)
    if lock_path:
        # Wait briefly if another process is migrating
        for _ in range(30):
            if not lock_path.exists():
                break
            time.sleep(0.2)
        if lock_path.exists():
            raise RuntimeError(
                "Another process appears to be running migrations. "
                "Wait for it to finish or remove the .migrating file if it crashed."
            )
        try:
            lock_path.write_text(str(time.time()), encoding="utf-8")
        except OSError:
            lock_path = None

    try:
        return _run_migrations_impl(conn)
    finally:
        if lock_path and lock_path.exists():
            try:
                lock_path.unlink()
            except OSError:
                logger.warning("Could not remove migration lock %s", lock_path)


def _run_migrations_impl(conn: sqlite3.Connection) -> int:
    """Internal: run migrations without lock."""
    version = get_schema_version(conn)
    for target, migrate in MIGRATIONS:
        if version < target:
            logger.info("Applying schema migration %s (%s)", target, migrate.__name__)
            migrate(conn)
            set_schema_version(conn, target)
            version = target
    return version
