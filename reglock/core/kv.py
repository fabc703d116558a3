"""
Option store backed by a SQLite key/value table.
"""

import json
import sqlite3
from typing import Any, Optional

from .db import get_db, init_option_table
from .host import IConfigStore
from ..util.logging import logger


class SqliteConfigStore(IConfigStore):
    """IConfigStore over a single key/value table. Values are JSON-encoded."""

    def __init__(self, db_path: str, table: str = "reglock_options"):
        self.db_path = db_path
        self.table = table
        init_option_table(db_path, table)

    def get(self, key: str) -> Optional[Any]:
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT value FROM {self.table} WHERE key = ?", (key,))
            row = cursor.fetchone()

        if row is None or row[0] is None:
            return None
        return json.loads(row[0])

    def set(self, key: str, value: Any) -> bool:
        try:
            with get_db(self.db_path) as conn:
                conn.execute(
                    f"INSERT INTO {self.table} (key, value) VALUES (?, ?) "
                    f"ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP",
                    (key, json.dumps(value))
                )
                conn.commit()
            return True
        except sqlite3.Error as e:
            logger.error(f"Failed to set option '{key}': {e}")
            return False

    def add(self, key: str, value: Any) -> bool:
        # Single statement, so two concurrent callers cannot both create the key
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"INSERT OR IGNORE INTO {self.table} (key, value) VALUES (?, ?)",
                (key, json.dumps(value))
            )
            conn.commit()
            return cursor.rowcount == 1

    def delete(self, key: str) -> bool:
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(f"DELETE FROM {self.table} WHERE key = ?", (key,))
            conn.commit()
            return cursor.rowcount > 0
