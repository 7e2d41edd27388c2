import os
import sqlite3
from contextlib import closing
from pathlib import Path

ROOT = Path(__file__).resolve().parent
DB_PATH = Path(os.environ.get("APP_DB_PATH") or ROOT / "data" / "db" / "planner.db")
DEFAULT_BUSY_TIMEOUT_SEC = 30.0

SCHEMA = """
CREATE TABLE IF NOT EXISTS planning_settings (
    key TEXT PRIMARY KEY,
    value_json TEXT,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
)
"""

# Path the schema was last created for; tests repoint DB_PATH per run.
_initialized_path = None


def _busy_timeout_sec():
    raw = os.environ.get("SQLITE_BUSY_TIMEOUT_SEC")
    try:
        return max(float(raw), 1.0) if raw else DEFAULT_BUSY_TIMEOUT_SEC
    except ValueError:
        return DEFAULT_BUSY_TIMEOUT_SEC


def get_connection():
    timeout = _busy_timeout_sec()
    path = Path(DB_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    connection = sqlite3.connect(path, timeout=timeout)
    connection.row_factory = sqlite3.Row
    for pragma in (
        "journal_mode=WAL",
        "synchronous=NORMAL",
        f"busy_timeout={int(timeout * 1000)}",
    ):
        connection.execute(f"PRAGMA {pragma}")
    return connection


def init_db():
    global _initialized_path
    with closing(get_connection()) as connection, connection:
        connection.execute(SCHEMA)
    _initialized_path = str(DB_PATH)


def _ensure_schema():
    if _initialized_path != str(DB_PATH):
        init_db()


def _setting_key(key):
    return (key or "").strip()


def get_planning_setting(key):
    key = _setting_key(key)
    if not key:
        return None
    _ensure_schema()
    with closing(get_connection()) as connection:
        row = connection.execute(
            "SELECT key, value_json, updated_at FROM planning_settings WHERE key = ?",
            (key,),
        ).fetchone()
    return dict(row) if row else None


def upsert_planning_setting(key, value_json):
    key = _setting_key(key)
    if not key:
        raise ValueError("Setting key is required.")
    _ensure_schema()
    with closing(get_connection()) as connection, connection:
        connection.execute(
            """
            INSERT INTO planning_settings (key, value_json, updated_at)
            VALUES (?, ?, datetime('now'))
            ON CONFLICT(key) DO UPDATE SET
                value_json = excluded.value_json,
                updated_at = excluded.updated_at
            """,
            (key, None if value_json is None else str(value_json)),
        )
