"""
db.py
SQLite helpers + initialization (creates DB/tables, inserts default admin, etc.)
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from config import get_settings
from errors import DataAccessError

logger = logging.getLogger(__name__)

DB_FILE: Path = Path(get_settings().db_file)


@contextmanager
def get_conn():
    """
    Open a connection for one unit of work: commit on success, always close.
    Any sqlite3 failure is re-raised as DataAccessError.
    """
    try:
        conn = sqlite3.connect(DB_FILE, check_same_thread=False)
    except sqlite3.Error as exc:
        logger.error("Cannot open database %s", DB_FILE, exc_info=True)
        raise DataAccessError(str(exc)) from exc
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    except sqlite3.Error as exc:
        conn.rollback()
        logger.error("Database error", exc_info=True)
        raise DataAccessError(str(exc)) from exc
    finally:
        conn.close()


def execute(sql: str, params: tuple = ()) -> int:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.lastrowid


def execute_rowcount(sql: str, params: tuple = ()) -> int:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.rowcount


def fetch_one(sql: str, params: tuple = ()):
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchone()


def fetch_all(sql: str, params: tuple = ()) -> list[sqlite3.Row]:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchall()


def fetch_value(sql: str, params: tuple = ()):
    row = fetch_one(sql, params)
    return row[0] if row else None


def _create_tables() -> None:
    execute(
        """
        CREATE TABLE IF NOT EXISTS admin_users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS plans (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            duration_days INTEGER NOT NULL CHECK(duration_days > 0),
            price REAL NOT NULL CHECK(price > 0),
            description TEXT,
            is_active INTEGER NOT NULL DEFAULT 1
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS clients (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            full_name TEXT NOT NULL,
            phone TEXT NOT NULL,
            email TEXT,
            status TEXT NOT NULL DEFAULT 'inactive' CHECK(status IN ('active','frozen','inactive')),
            current_plan_id INTEGER,
            expiration_date TEXT,
            last_payment_date TEXT,
            registration_date TEXT NOT NULL,
            notes TEXT,
            is_deleted INTEGER NOT NULL DEFAULT 0,
            FOREIGN KEY(current_plan_id) REFERENCES plans(id)
        )
        """
    )

    # client_id is NULL for walk-in payers
    execute(
        """
        CREATE TABLE IF NOT EXISTS payments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            client_id INTEGER,
            plan_id INTEGER NOT NULL,
            amount REAL NOT NULL,
            payment_method TEXT NOT NULL CHECK(payment_method IN ('cash','transfer')),
            payment_date TEXT NOT NULL,
            period_start TEXT NOT NULL,
            period_end TEXT NOT NULL,
            notes TEXT,
            CHECK(period_end >= period_start),
            FOREIGN KEY(client_id) REFERENCES clients(id),
            FOREIGN KEY(plan_id) REFERENCES plans(id)
        )
        """
    )

    execute("CREATE INDEX IF NOT EXISTS idx_payments_date ON payments(payment_date)")
    execute("CREATE INDEX IF NOT EXISTS idx_payments_client ON payments(client_id)")

    # Small settings table (used to force password change on first login)
    execute(
        """
        CREATE TABLE IF NOT EXISTS app_settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """
    )


def _get_setting(key: str, default: str | None = None) -> str | None:
    row = fetch_one("SELECT value FROM app_settings WHERE key = ?", (key,))
    if row:
        return str(row["value"])
    return default


def _set_setting(key: str, value: str) -> None:
    execute(
        """
        INSERT INTO app_settings(key, value) VALUES(?, ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value
        """,
        (key, value),
    )


def init_db(default_admin_hash: str, username: str = "admin") -> None:
    """
    Initialize the database.
    - Create tables
    - Insert the default admin if no admin exists
    - Force password change on first login
    """
    _create_tables()

    admin = fetch_one("SELECT id FROM admin_users LIMIT 1")
    if not admin:
        now = datetime.now(timezone.utc).isoformat(timespec="seconds")
        execute(
            "INSERT INTO admin_users(username, password_hash, created_at) VALUES(?,?,?)",
            (username, default_admin_hash, now),
        )
        _set_setting("force_password_change", "1")
        logger.info("Created database %s with default admin %r", DB_FILE, username)
    elif _get_setting("force_password_change") is None:
        _set_setting("force_password_change", "0")


def is_force_password_change() -> bool:
    return _get_setting("force_password_change") == "1"


def clear_force_password_change() -> None:
    _set_setting("force_password_change", "0")
