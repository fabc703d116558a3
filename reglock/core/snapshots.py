"""
Snapshot store access layer.

One row per user that existed when the lock was enabled. Rows are inserted once
and never updated; MutationGuard only reads them.
"""

import json
import sqlite3
from typing import Any, Dict, List, Optional, Union

from .config import LockSettings, ensure_db_directory
from .db import (
    SNAPSHOT_COLUMNS, create_snapshot_table, drop_snapshot_table,
    get_db, health_check, truncate_snapshot_table
)
from .errors import SnapshotStoreError
from .host import IUserDirectory
from .schema import HostUser, UserSnapshot
from ..util.logging import logger


def raw_meta(value: Any) -> str:
    """Verbatim text form of a metadata value."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    return str(value)


class SnapshotStore:
    def __init__(self, settings: LockSettings):
        self.settings = settings
        self.db_path = settings.db_path
        self.table = settings.snapshot_table

    def create_schema(self) -> List[str]:
        """Create or migrate the snapshot table; no-op when already current."""
        try:
            ensure_db_directory(self.settings)
            return create_snapshot_table(self.db_path, self.table)
        except sqlite3.Error as e:
            logger.log_snapshot_operation("create_schema", "failed", {"error": str(e)})
            raise SnapshotStoreError(f"Could not create snapshot table {self.table}: {e}") from e

    def drop_schema(self):
        try:
            drop_snapshot_table(self.db_path, self.table)
        except sqlite3.Error as e:
            logger.log_snapshot_operation("drop_schema", "failed", {"error": str(e)})
            raise SnapshotStoreError(f"Could not drop snapshot table {self.table}: {e}") from e
        logger.log_snapshot_operation("drop_schema", details={"table": self.table})

    def clear(self) -> int:
        try:
            removed = truncate_snapshot_table(self.db_path, self.table)
        except sqlite3.Error as e:
            logger.log_snapshot_operation("clear", "failed", {"error": str(e)})
            raise SnapshotStoreError(f"Could not clear snapshot table {self.table}: {e}") from e
        logger.log_snapshot_operation("clear", details={"removed": removed})
        return removed

    def build_row(self, user: HostUser, meta: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "user_id": user.user_id,
            "login": user.login,
            "password_hash": user.password_hash,
            "email": user.email,
            "registered_at": str(user.registered_at),
            "roles_json": json.dumps(list(user.roles)),
            "capabilities_json": json.dumps(user.capabilities, sort_keys=True),
            "effective_capabilities_json": json.dumps(user.effective_capabilities, sort_keys=True),
            "capabilities_raw": raw_meta(meta.get(self.settings.capabilities_key)),
            "privilege_level_raw": raw_meta(meta.get(self.settings.user_level_key)),
            "force_ssl_raw": raw_meta(meta.get(self.settings.use_ssl_key)),
        }

    def save_users(self, directory: IUserDirectory) -> int:
        """
        Snapshot every current user.

        Users that already have a row are skipped, so repeated calls leave
        existing snapshots untouched.

        Returns:
            Number of rows inserted.
        """
        rows = [self.build_row(user, directory.get_user_meta(user.user_id) or {})
                for user in directory.list_users()]

        columns = list(SNAPSHOT_COLUMNS)
        placeholders = ", ".join("?" for _ in columns)
        sql = f"INSERT OR IGNORE INTO {self.table} ({', '.join(columns)}) VALUES ({placeholders})"

        inserted = 0
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.cursor()
                for row in rows:
                    cursor.execute(sql, tuple(row[c] for c in columns))
                    inserted += cursor.rowcount
                conn.commit()
        except sqlite3.Error as e:
            logger.log_snapshot_operation("save_users", "failed", {"error": str(e)})
            raise SnapshotStoreError(f"Could not save user snapshots: {e}") from e

        logger.log_snapshot_operation("save_users", details={"users": len(rows), "inserted": inserted})
        return inserted

    def get(self, user: Union[int, HostUser, None]) -> Optional[UserSnapshot]:
        """Return the snapshot for a user id (or HostUser), or None if there is none."""
        if isinstance(user, HostUser):
            user = user.user_id
        if user is None:
            return None

        try:
            user_id = int(user)
        except (TypeError, ValueError):
            return None

        try:
            with get_db(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute(f"SELECT * FROM {self.table} WHERE user_id = ?", (user_id,))
                row = cursor.fetchone()
        except sqlite3.Error as e:
            raise SnapshotStoreError(f"Could not read snapshot for user {user_id}: {e}") from e

        return UserSnapshot.from_row(dict(row)) if row else None

    def list_snapshots(self) -> List[UserSnapshot]:
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute(f"SELECT * FROM {self.table} ORDER BY user_id")
                rows = cursor.fetchall()
        except sqlite3.Error as e:
            raise SnapshotStoreError(f"Could not list snapshots: {e}") from e

        return [UserSnapshot.from_row(dict(row)) for row in rows]

    def count(self) -> int:
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute(f"SELECT COUNT(*) FROM {self.table}")
                return cursor.fetchone()[0]
        except sqlite3.Error:
            return 0

    def health_check(self) -> bool:
        return health_check(self.db_path, self.table)
