# database.py

import logging
import sqlite3
import time
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from config import load_db_path

if TYPE_CHECKING:
    from domain.models import InstrumentRecord

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Paths
# -----------------------------------------------------------------------------

DB_PATH = load_db_path()

_effective_db_path: Path | None = None


def get_effective_db_path() -> Path:
    """Path of the database opened by get_connection (DB_PATH until then)."""
    return _effective_db_path or DB_PATH

# -----------------------------------------------------------------------------
# Connection helpers
# -----------------------------------------------------------------------------

def get_connection(db_path: Path | str | None = None, timeout: float = 30.0, retries: int = 3):
    """
    Open the instrument database (":memory:" is accepted for tests).
    timeout: seconds to wait for locks.
    retries: number of retries on SQLITE_BUSY / database is locked (with exponential backoff).
    """
    global _effective_db_path
    if db_path is None:
        db_path = DB_PATH
    if str(db_path) != ":memory:":
        db_path = Path(db_path)
        _effective_db_path = db_path
        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            pass

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
    return conn

# -----------------------------------------------------------------------------
# Schema initialization
# -----------------------------------------------------------------------------

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


def initialize_db(conn: sqlite3.Connection) -> sqlite3.Connection:
    """
    Create tables if missing. On a read-only database raises with a clear message.
    """
    try:
        _initialize_db_core(conn)
        return conn
    except sqlite3.OperationalError as e:
        err = str(e).lower()
        if "readonly" in err or "attempt to write" in err:
            raise sqlite3.OperationalError(
                f"The database at {get_effective_db_path()} is read-only. "
                "Ensure the folder and file have write permission for your user, then try again."
            ) from e
        raise


def _initialize_db_core(conn: sqlite3.Connection) -> None:
    cur = conn.cursor()
    cur.execute("PRAGMA journal_mode = WAL")
    cur.execute("PRAGMA synchronous = NORMAL")

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS instruments (
            id                   TEXT PRIMARY KEY,
            management_number    TEXT NOT NULL,
            name                 TEXT,
            model                TEXT,
            manufacturer         TEXT,
            factory_number       TEXT,
            measurement_range    TEXT,
            notes                TEXT,
            in_out_status        TEXT NOT NULL DEFAULT 'in'
                                 CHECK (in_out_status IN ('in', 'out', 'using_out')),
            instrument_status    TEXT NOT NULL DEFAULT 'available',
            operator             TEXT,
            outbound_time        TEXT,
            inbound_time         TEXT,
            used_time            TEXT,
            borrowed_by          TEXT,
            borrowed_time        TEXT,
            delay_days           INTEGER,
            expected_return_date TEXT,
            display_until        TEXT,
            delay_operator       TEXT,
            delay_time           TEXT,
            operation_date       TEXT,
            deleted_today_record INTEGER NOT NULL DEFAULT 0,
            deleted_time         TEXT,
            created_at           TEXT DEFAULT CURRENT_TIMESTAMP,
            updated_at           TEXT DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_instruments_mn ON instruments(management_number)"
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS audit_log (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            ts          TEXT DEFAULT CURRENT_TIMESTAMP,
            entity_id   TEXT NOT NULL,
            action      TEXT NOT NULL,
            field       TEXT,
            old_value   TEXT,
            new_value   TEXT,
            actor       TEXT,
            reason      TEXT
        )
        """
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_audit_entity ON audit_log(entity_id)"
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS settings (
            key   TEXT PRIMARY KEY,
            value TEXT
        )
        """
    )
    conn.commit()

# -----------------------------------------------------------------------------
# Repository
# -----------------------------------------------------------------------------

# Columns written by status operations and the daily reset. Descriptive
# columns (name, model, ...) are only written by add_instrument.
STATUS_COLUMNS = (
    "in_out_status",
    "instrument_status",
    "operator",
    "outbound_time",
    "inbound_time",
    "used_time",
    "borrowed_by",
    "borrowed_time",
    "delay_days",
    "expected_return_date",
    "display_until",
    "delay_operator",
    "delay_time",
    "operation_date",
    "deleted_today_record",
    "deleted_time",
)

_STATUS_UPDATE_SQL = (
    "UPDATE instruments SET "
    + ", ".join(f"{c} = :{c}" for c in STATUS_COLUMNS)
    + ", updated_at = CURRENT_TIMESTAMP WHERE id = :id"
)


class InstrumentRepository:
    """
    Flat store of instrument records keyed by id.
    Last write wins; the only multi-row transaction is save_all.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # ---------- Audit log ----------

    def log_audit(self, entity_id: str, action: str,
                  field: str | None = None,
                  old_value: str | None = None,
                  new_value: str | None = None,
                  actor: str | None = None,
                  reason: str | None = None,
                  _commit: bool = True):
        self.conn.execute(
            """
            INSERT INTO audit_log
                (entity_id, action, field, old_value, new_value, actor, reason)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (entity_id, action, field, old_value, new_value, actor, reason),
        )
        if _commit:
            self.conn.commit()

    def get_audit_for_instrument(self, instrument_id: str):
        cur = self.conn.execute(
            """
            SELECT *
            FROM audit_log
            WHERE entity_id = ?
            ORDER BY ts DESC, id DESC
            """,
            (instrument_id,),
        )
        return [dict(r) for r in cur.fetchall()]

    # ---------- Settings ----------

    def get_setting(self, key: str, default=None):
        cur = self.conn.execute("SELECT value FROM settings WHERE key = ?", (key,))
        row = cur.fetchone()
        return row["value"] if row else default

    def set_setting(self, key: str, value: str):
        self.conn.execute(
            """
            INSERT INTO settings (key, value)
            VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (key, value),
        )
        self.conn.commit()

    # ---------- Instruments ----------

    def list_instrument_rows(self) -> list[dict]:
        """Raw rows, ordered by management number. Callers convert (and may skip) each row."""
        cur = self.conn.execute(
            "SELECT * FROM instruments ORDER BY management_number, id"
        )
        return [dict(r) for r in cur.fetchall()]

    def get_all(self) -> list["InstrumentRecord"]:
        from domain.models import InstrumentRecord

        return [InstrumentRecord.from_row(r) for r in self.list_instrument_rows()]

    def get(self, record_id: str) -> "InstrumentRecord | None":
        """Return InstrumentRecord or None if not found."""
        from domain.models import InstrumentRecord

        row = self.conn.execute(
            "SELECT * FROM instruments WHERE id = ?", (record_id,)
        ).fetchone()
        return InstrumentRecord.from_row(row) if row else None

    def find_by_management_number(self, management_number: str) -> "InstrumentRecord | None":
        """First record with this management number (unique in practice, not enforced)."""
        from domain.models import InstrumentRecord

        row = self.conn.execute(
            "SELECT * FROM instruments WHERE management_number = ? ORDER BY created_at, id LIMIT 1",
            ((management_number or "").strip(),),
        ).fetchone()
        return InstrumentRecord.from_row(row) if row else None

    def add_instrument(self, data: dict) -> str:
        """
        Insert a new instrument, in stock and available. Returns the new id.
        Status fields in data are accepted so existing records can be imported.
        """
        from domain.models import DESCRIPTIVE_FIELDS

        row = {f: data.get(f) for f in DESCRIPTIVE_FIELDS}
        row["management_number"] = (row["management_number"] or "").strip()
        if not row["management_number"]:
            raise ValueError("Management number is required")
        row["id"] = data.get("id") or uuid.uuid4().hex
        for c in STATUS_COLUMNS:
            row[c] = data.get(c)
        row["in_out_status"] = row["in_out_status"] or "in"
        row["instrument_status"] = row["instrument_status"] or "available"
        row["deleted_today_record"] = 1 if row["deleted_today_record"] else 0

        columns = ("id",) + DESCRIPTIVE_FIELDS + STATUS_COLUMNS
        self.conn.execute(
            f"INSERT INTO instruments ({', '.join(columns)}) "
            f"VALUES ({', '.join(':' + c for c in columns)})",
            row,
        )
        self.conn.commit()
        self.log_audit(row["id"], "create", new_value=row["management_number"])
        return row["id"]

    def _status_params(self, record_id: str, record: "InstrumentRecord") -> dict:
        values = record.to_dict()
        params = {c: values[c] for c in STATUS_COLUMNS}
        params["id"] = record_id
        return params

    def upsert(self, record_id: str, record: "InstrumentRecord") -> bool:
        """
        Write the status, time and visibility fields of record under record_id.
        Update-only: returns False if no instrument has that id.
        """
        cur = self.conn.execute(_STATUS_UPDATE_SQL, self._status_params(record_id, record))
        self.conn.commit()
        return cur.rowcount > 0

    def save_all(self, records: Iterable["InstrumentRecord"]) -> int:
        """Write several records in one transaction. Returns number of rows updated."""
        updated = 0
        with self.conn:
            for record in records:
                cur = self.conn.execute(_STATUS_UPDATE_SQL, self._status_params(record.id, record))
                updated += cur.rowcount
        return updated

    def remove(self, record_id: str) -> bool:
        """Hard-delete an instrument (CRUD layer only; status operations never delete)."""
        cur = self.conn.execute("DELETE FROM instruments WHERE id = ?", (record_id,))
        self.conn.commit()
        removed = cur.rowcount > 0
        if removed:
            self.log_audit(record_id, "delete")
        return removed
