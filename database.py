# database.py

import logging
import shutil
import sqlite3
import time
import uuid
from pathlib import Path
from typing import TYPE_CHECKING

from config import load_db_path

if TYPE_CHECKING:
    from domain.models import Instrument, MaintenanceEvent

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Paths
# -----------------------------------------------------------------------------

DB_PATH = load_db_path()

_effective_db_path: Path | None = None


def get_effective_db_path() -> Path:
    """Path of the DB in use (the last path passed to get_connection)."""
    return _effective_db_path if _effective_db_path is not None else DB_PATH


def get_attachments_dir() -> Path:
    """Attachments dir next to the DB in use."""
    return get_effective_db_path().parent / "attachments"

# -----------------------------------------------------------------------------
# Connection helpers
# -----------------------------------------------------------------------------

def get_connection(db_path: Path | None = None, timeout: float = 30.0, retries: int = 3):
    """
    Open the SQLite database, creating its folder if needed.
    timeout: seconds to wait for locks.
    retries: number of retries on SQLITE_BUSY / database is locked (with exponential backoff).
    """
    global _effective_db_path
    if db_path is None:
        db_path = DB_PATH
    db_path = Path(db_path)
    _effective_db_path = db_path
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning("Could not create database folder %s: %s", db_path.parent, e)

    last_err = None
    for attempt in range(max(1, retries)):
        try:
            conn = sqlite3.connect(str(db_path), timeout=timeout)
            break
        except sqlite3.OperationalError as e:
            last_err = e
            err_lower = str(e).lower()
            if "unable to open database file" in err_lower:
                raise sqlite3.OperationalError(
                    f"Could not open database at:\n{db_path}\n\n"
                    "Check that the folder exists (or that the app can create it) "
                    "and that you have read and write permission for that location."
                ) from e
            if ("database is locked" in err_lower or "sqlite_busy" in err_lower) and attempt < retries - 1:
                time.sleep(0.1 * (2 ** attempt))
                continue
            raise
    else:
        if last_err:
            raise last_err
        raise RuntimeError("Failed to connect to database")

    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn

# -----------------------------------------------------------------------------
# Schema initialization
# -----------------------------------------------------------------------------

DEFAULT_SETTINGS = {
    "upcoming_window_days": "30",
    "default_interval_months": "6",
}


def run_integrity_check(conn: sqlite3.Connection) -> str | None:
    """
    Run PRAGMA integrity_check. Returns None if OK, or an error message string if failed.
    """
    row = conn.execute("PRAGMA integrity_check").fetchone()
    if row is None:
        return None
    result = row[0]
    if result == "ok":
        return None
    return result


def initialize_db(conn: sqlite3.Connection, db_path: Path | None = None) -> sqlite3.Connection:
    """
    Initialize database schema, run migrations and seed default settings.
    On read-only error, raises with a clear message so the user can fix permissions.
    Runs integrity check after init; on failure logs a warning (does not block startup).
    """
    try:
        _initialize_db_core(conn, db_path)
        err = run_integrity_check(conn)
        if err:
            logger.warning("Database integrity check failed: %s", err)
        return conn
    except sqlite3.OperationalError as e:
        err = str(e).lower()
        if "readonly" in err or "attempt to write" in err:
            path = db_path if db_path is not None else get_effective_db_path()
            raise sqlite3.OperationalError(
                f"The database at {path} is read-only. "
                "Ensure the folder and file have write permission for your user, then try again."
            ) from e
        raise


def _initialize_db_core(conn: sqlite3.Connection, db_path: Path | None = None) -> None:
    """Internal: run schema creation, migrations and seeding. Raises on readonly."""
    cur = conn.cursor()
    cur.execute("PRAGMA foreign_keys = ON")
    if db_path is not None:
        cur.execute("PRAGMA journal_mode = WAL")  # Write-Ahead Logging for better concurrency
        cur.execute("PRAGMA synchronous = NORMAL")

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS instruments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            model TEXT NOT NULL DEFAULT '',
            serial_number TEXT NOT NULL DEFAULT '',
            location TEXT NOT NULL DEFAULT '',
            status TEXT NOT NULL DEFAULT 'Operational'
                CHECK (status IN ('Operational', 'Needs Maintenance', 'Out of Service', 'Archived')),
            installation_date TEXT,
            last_maintenance_date TEXT,
            next_maintenance_date TEXT,
            maintenance_type TEXT,
            notes TEXT,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    cur.execute("CREATE INDEX IF NOT EXISTS idx_instruments_status ON instruments(status)")
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_instruments_next_maintenance "
        "ON instruments(next_maintenance_date)"
    )

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS maintenance_events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            instrument_id INTEGER NOT NULL,
            date TEXT,
            type TEXT NOT NULL DEFAULT 'Scheduled'
                CHECK (type IN ('Scheduled', 'Unscheduled', 'Emergency')),
            description TEXT NOT NULL DEFAULT '',
            notes TEXT,
            completed INTEGER NOT NULL DEFAULT 0,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(instrument_id) REFERENCES instruments(id)
        )
        """
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_events_instrument ON maintenance_events(instrument_id, date)"
    )

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS event_files (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            event_id INTEGER NOT NULL,
            position INTEGER NOT NULL DEFAULT 0,
            filename TEXT NOT NULL,
            file_path TEXT NOT NULL,
            uploaded_at TEXT DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(event_id) REFERENCES maintenance_events(id)
        )
        """
    )
    cur.execute("CREATE INDEX IF NOT EXISTS idx_event_files_event ON event_files(event_id, position)")

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS audit_log (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            entity_type TEXT NOT NULL,
            entity_id   INTEGER NOT NULL,
            action      TEXT NOT NULL,
            field       TEXT,
            old_value   TEXT,
            new_value   TEXT,
            reason      TEXT,
            ts          TEXT NOT NULL DEFAULT (datetime('now'))
        )
        """
    )
    cur.execute("CREATE INDEX IF NOT EXISTS idx_audit_log_entity ON audit_log(entity_type, entity_id)")

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS settings (
            key   TEXT PRIMARY KEY,
            value TEXT
        )
        """
    )
    cur.execute("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER PRIMARY KEY)")
    conn.commit()

    from migrations import run_migrations
    try:
        run_migrations(conn, db_path)
    except Exception as e:
        logger.error("Schema migration failed: %s", e, exc_info=True)
        raise RuntimeError(
            f"Database schema migration failed. Your database may be incompatible with this version.\n\n"
            f"Error: {e}"
        ) from e

    for key, value in DEFAULT_SETTINGS.items():
        cur.execute("INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?)", (key, value))
    conn.commit()

# -----------------------------------------------------------------------------
# Exceptions
# -----------------------------------------------------------------------------

class StaleDataError(Exception):
    """Raised when optimistic lock fails (record was modified by another process/user)."""

# -----------------------------------------------------------------------------
# Repository
# -----------------------------------------------------------------------------

_INSTRUMENT_WATCHED_FIELDS = [
    "name",
    "model",
    "serial_number",
    "location",
    "status",
    "last_maintenance_date",
    "next_maintenance_date",
    "maintenance_type",
    "interval_months",
    "notes",
]


class MaintenanceRepository:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # ---------- Audit log ----------

    def log_audit(self, entity_type: str, entity_id: int, action: str,
                  field: str | None = None,
                  old_value: str | None = None,
                  new_value: str | None = None,
                  reason: str | None = None,
                  _commit: bool = True):
        self.conn.execute(
            """
            INSERT INTO audit_log
                (entity_type, entity_id, action, field, old_value, new_value, reason)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (entity_type, entity_id, action, field, old_value, new_value, reason),
        )
        if _commit:
            self.conn.commit()

    def get_audit_for_instrument(self, instrument_id: int):
        cur = self.conn.execute(
            """
            SELECT *
            FROM audit_log
            WHERE entity_type = 'instrument'
              AND entity_id = ?
            ORDER BY ts DESC, id DESC
            """,
            (instrument_id,),
        )
        return [dict(r) for r in cur.fetchall()]

    # ---------- Settings ----------

    def get_setting(self, key: str, default=None):
        row = self.conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        return row["value"] if row and row["value"] is not None else default

    def set_setting(self, key: str, value: str):
        self.conn.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, str(value)),
        )
        self.conn.commit()

    # ---------- Instruments ----------

    def list_instruments(self, include_archived: bool = True) -> "list[Instrument]":
        from domain.models import Instrument, InstrumentStatus

        sql = "SELECT * FROM instruments"
        params: tuple = ()
        if not include_archived:
            sql += " WHERE status != ?"
            params = (InstrumentStatus.ARCHIVED.value,)
        sql += " ORDER BY name COLLATE NOCASE, id"
        cur = self.conn.execute(sql, params)
        return [Instrument.from_row(r) for r in cur.fetchall()]

    def get_instrument(self, instrument_id: int) -> "Instrument | None":
        """Return Instrument model or None if not found."""
        from domain.models import Instrument

        row = self.conn.execute(
            "SELECT * FROM instruments WHERE id = ?", (instrument_id,)
        ).fetchone()
        return Instrument.from_row(row) if row else None

    def add_instrument(self, data: dict) -> int:
        params = {
            "interval_months": None,
            "notes": None,
            **data,
        }
        cur = self.conn.execute(
            """
            INSERT INTO instruments (
                name, model, serial_number, location, status,
                installation_date, last_maintenance_date, next_maintenance_date,
                maintenance_type, interval_months, notes,
                created_at, updated_at
            ) VALUES (
                :name, :model, :serial_number, :location, :status,
                :installation_date, :last_maintenance_date, :next_maintenance_date,
                :maintenance_type, :interval_months, :notes,
                CURRENT_TIMESTAMP, CURRENT_TIMESTAMP
            )
            """,
            params,
        )
        self.conn.commit()
        new_id = cur.lastrowid
        self.log_audit("instrument", new_id, "create", new_value=params.get("name"))
        return new_id

    def update_instrument(self, instrument_id: int, data: dict):
        """
        Update editable instrument fields. installation_date is immutable and ignored.
        When data carries updated_at, the update only applies if the row still has
        that value; otherwise StaleDataError is raised.
        """
        old = self.get_instrument(instrument_id)
        if old is None:
            raise LookupError(f"Instrument {instrument_id} not found")
        old_values = old.to_dict()

        params = {**old_values, **data, "id": instrument_id}
        sql = """
            UPDATE instruments
            SET name                  = :name,
                model                 = :model,
                serial_number         = :serial_number,
                location              = :location,
                status                = :status,
                last_maintenance_date = :last_maintenance_date,
                next_maintenance_date = :next_maintenance_date,
                maintenance_type      = :maintenance_type,
                interval_months       = :interval_months,
                notes                 = :notes,
                updated_at            = CURRENT_TIMESTAMP
            WHERE id = :id
        """
        expected_updated_at = data.get("updated_at")
        if expected_updated_at is not None:
            sql += " AND updated_at = :expected_updated_at"
            params["expected_updated_at"] = expected_updated_at
        cur = self.conn.execute(sql, params)
        if cur.rowcount == 0:
            self.conn.rollback()
            raise StaleDataError("Instrument was modified by another user. Refresh and try again.")

        # simple field-by-field audit
        for fld in _INSTRUMENT_WATCHED_FIELDS:
            old_val = old_values.get(fld)
            new_val = params.get(fld)
            if str(old_val) != str(new_val):
                self.log_audit(
                    "instrument",
                    instrument_id,
                    "update",
                    field=fld,
                    old_value=str(old_val) if old_val is not None else None,
                    new_value=str(new_val) if new_val is not None else None,
                    _commit=False,
                )
        self.conn.commit()

    def set_instrument_status(self, instrument_id: int, status: str, reason: str | None = None):
        old = self.get_instrument(instrument_id)
        if old is None:
            raise LookupError(f"Instrument {instrument_id} not found")
        self.conn.execute(
            "UPDATE instruments SET status = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (status, instrument_id),
        )
        self.log_audit(
            "instrument",
            instrument_id,
            "status",
            field="status",
            old_value=old.status.value,
            new_value=status,
            reason=reason,
            _commit=False,
        )
        self.conn.commit()

    # ---------- Maintenance events ----------

    def _event_from_row(self, row) -> "MaintenanceEvent":
        from domain.models import MaintenanceEvent

        return MaintenanceEvent.from_row(row, files=self.list_event_files(row["id"]))

    def add_event(self, data: dict) -> int:
        params = {
            "notes": None,
            "completed": 0,
            "scheduled_date": None,
            **data,
        }
        cur = self.conn.execute(
            """
            INSERT INTO maintenance_events (
                instrument_id, date, type, description, notes, completed, scheduled_date
            ) VALUES (
                :instrument_id, :date, :type, :description, :notes, :completed, :scheduled_date
            )
            """,
            params,
        )
        self.conn.commit()
        return cur.lastrowid

    def get_event(self, event_id: int) -> "MaintenanceEvent | None":
        row = self.conn.execute(
            "SELECT * FROM maintenance_events WHERE id = ?", (event_id,)
        ).fetchone()
        return self._event_from_row(row) if row else None

    def list_events_for_instrument(self, instrument_id: int) -> "list[MaintenanceEvent]":
        cur = self.conn.execute(
            """
            SELECT *
            FROM maintenance_events
            WHERE instrument_id = ?
            ORDER BY date(date) DESC, id DESC
            """,
            (instrument_id,),
        )
        return [self._event_from_row(r) for r in cur.fetchall()]

    def save_completion(self, instrument: "Instrument", event: "MaintenanceEvent"):
        """
        Persist the records returned by the scheduler's completion rule in one
        transaction: the event's completion fields and the instrument's schedule.
        """
        old = self.get_instrument(instrument.id)
        if old is None:
            raise LookupError(f"Instrument {instrument.id} not found")
        ev = event.to_dict()
        inst = instrument.to_dict()
        try:
            self.conn.execute(
                """
                UPDATE maintenance_events
                SET date = :date, completed = :completed, scheduled_date = :scheduled_date,
                    notes = :notes
                WHERE id = :id
                """,
                ev,
            )
            self.conn.execute(
                """
                UPDATE instruments
                SET last_maintenance_date = :last_maintenance_date,
                    next_maintenance_date = :next_maintenance_date,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = :id
                """,
                inst,
            )
            old_values = old.to_dict()
            for fld in ("last_maintenance_date", "next_maintenance_date"):
                self.log_audit(
                    "instrument",
                    instrument.id,
                    "complete_maintenance",
                    field=fld,
                    old_value=old_values.get(fld),
                    new_value=inst.get(fld),
                    reason=f"event {event.id}",
                    _commit=False,
                )
            self.conn.commit()
        except sqlite3.Error:
            self.conn.rollback()
            raise

    # ---------- Event files ----------

    def list_event_files(self, event_id: int) -> list[str]:
        cur = self.conn.execute(
            "SELECT file_path FROM event_files WHERE event_id = ? ORDER BY position, id",
            (event_id,),
        )
        return [r["file_path"] for r in cur.fetchall()]

    def add_event_file(self, event_id: int, src_path: str) -> str:
        """Copy a file into the attachments folder and append it to the event. Returns the stored path."""
        src = Path(src_path)
        if not src.exists():
            raise FileNotFoundError(src_path)

        dest_dir = get_attachments_dir() / f"event_{event_id}"
        dest_dir.mkdir(parents=True, exist_ok=True)
        unique_name = f"{src.stem}_{uuid.uuid4().hex[:8]}{src.suffix}"
        dest_path = dest_dir / unique_name
        shutil.copy2(str(src), str(dest_path))

        row = self.conn.execute(
            "SELECT COALESCE(MAX(position), -1) + 1 FROM event_files WHERE event_id = ?",
            (event_id,),
        ).fetchone()
        self.conn.execute(
            "INSERT INTO event_files (event_id, position, filename, file_path) VALUES (?, ?, ?, ?)",
            (event_id, row[0], src.name, str(dest_path)),
        )
        self.conn.commit()
        return str(dest_path)
