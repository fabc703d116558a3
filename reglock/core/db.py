"""
SQLite storage for the registration lock.
Snapshot table schema creation and migration, plus the option table used by SqliteConfigStore.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator, List

from ..util.logging import logger

# Column name -> column definition, in table order
SNAPSHOT_COLUMNS = {
    "user_id": "INTEGER NOT NULL",
    "login": "TEXT NOT NULL DEFAULT ''",
    "password_hash": "TEXT NOT NULL DEFAULT ''",
    "email": "TEXT NOT NULL DEFAULT ''",
    "registered_at": "TEXT NOT NULL DEFAULT '0000-00-00 00:00:00'",
    "roles_json": "TEXT",
    "capabilities_json": "TEXT",
    "effective_capabilities_json": "TEXT",
    "capabilities_raw": "TEXT",
    "privilege_level_raw": "TEXT",
    "force_ssl_raw": "TEXT",
}


@contextmanager
def get_db(db_path: str) -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def table_columns(conn: sqlite3.Connection, table: str) -> List[str]:
    cursor = conn.cursor()
    cursor.execute(f"PRAGMA table_info({table})")
    return [col[1] for col in cursor.fetchall()]


def create_snapshot_table(db_path: str, table: str) -> List[str]:
    """
    Create the snapshot table, or bring an existing one up to the current shape.

    Safe to run repeatedly: on an up-to-date table nothing changes.

    Returns:
        Names of columns added to an older table.
    """
    added = []

    with get_db(db_path) as conn:
        cursor = conn.cursor()

        column_sql = ",\n                ".join(f"{name} {ddl}" for name, ddl in SNAPSHOT_COLUMNS.items())
        cursor.execute(f'''
            CREATE TABLE IF NOT EXISTS {table} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                {column_sql}
            )
        ''')

        existing = table_columns(conn, table)
        for name, ddl in SNAPSHOT_COLUMNS.items():
            if name not in existing:
                # ALTER TABLE cannot add NOT NULL without a default
                cursor.execute(f"ALTER TABLE {table} ADD COLUMN {name} {ddl.replace('NOT NULL ', '')}")
                added.append(name)

        # One row per user; older tables may hold duplicates from repeated activation
        cursor.execute(f'''
            DELETE FROM {table}
            WHERE id NOT IN (SELECT MIN(id) FROM {table} GROUP BY user_id)
        ''')
        cursor.execute(f"CREATE UNIQUE INDEX IF NOT EXISTS idx_{table}_user_id ON {table}(user_id)")

        conn.commit()

    if added:
        logger.log_snapshot_operation("migrate", details={"table": table, "added_columns": added})

    return added


def truncate_snapshot_table(db_path: str, table: str) -> int:
    """Delete every snapshot row, returning how many were removed."""
    with get_db(db_path) as conn:
        if not _table_exists(conn, table):
            return 0
        cursor = conn.cursor()
        cursor.execute(f"DELETE FROM {table}")
        conn.commit()
        return cursor.rowcount


def drop_snapshot_table(db_path: str, table: str):
    with get_db(db_path) as conn:
        conn.execute(f"DROP INDEX IF EXISTS idx_{table}_user_id")
        conn.execute(f"DROP TABLE IF EXISTS {table}")
        conn.commit()


def init_option_table(db_path: str, table: str = "reglock_options"):
    """Initialize the key/value option table."""
    with get_db(db_path) as conn:
        conn.execute(f'''
            CREATE TABLE IF NOT EXISTS {table} (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')
        conn.commit()


def _table_exists(conn: sqlite3.Connection, table: str) -> bool:
    cursor = conn.cursor()
    cursor.execute("SELECT name FROM sqlite_master WHERE type='table' AND name = ?", (table,))
    return cursor.fetchone() is not None


def health_check(db_path: str, table: str) -> bool:
    """Check that the snapshot table exists and has every expected column."""
    try:
        with get_db(db_path) as conn:
            if not _table_exists(conn, table):
                return False
            columns = table_columns(conn, table)
            return all(name in columns for name in SNAPSHOT_COLUMNS)
    except sqlite3.Error:
        return False
