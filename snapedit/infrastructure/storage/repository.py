import os
import sqlite3
from typing import Optional
from snapedit.domain.interfaces import IRepository


class StorageRepository(IRepository):
    """
    SQLite backend for suspended session snapshots.
    """

    def __init__(self, snapshots_db_path: str) -> None:
        self.snapshots_db_path = snapshots_db_path

    def initialize(self) -> None:
        """
        Ensures DB tables exist.
        """
        db_dir = os.path.dirname(self.snapshots_db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        with sqlite3.connect(self.snapshots_db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS session_snapshots (
                    key TEXT PRIMARY KEY,
                    blob BLOB
                )
            """)

    def save_snapshot(self, key: str, blob: bytes) -> None:
        with sqlite3.connect(self.snapshots_db_path) as conn:
            conn.execute(
                "INSERT OR REPLACE INTO session_snapshots (key, blob) VALUES (?, ?)",
                (key, sqlite3.Binary(blob)),
            )

    def load_snapshot(self, key: str) -> Optional[bytes]:
        with sqlite3.connect(self.snapshots_db_path) as conn:
            cursor = conn.execute("SELECT blob FROM session_snapshots WHERE key = ?", (key,))
            row = cursor.fetchone()
            if row:
                return bytes(row[0])
        return None

    def delete_snapshot(self, key: str) -> None:
        with sqlite3.connect(self.snapshots_db_path) as conn:
            conn.execute("DELETE FROM session_snapshots WHERE key = ?", (key,))

    def list_snapshots(self) -> list[str]:
        with sqlite3.connect(self.snapshots_db_path) as conn:
            cursor = conn.execute("SELECT key FROM session_snapshots ORDER BY key")
            return [row[0] for row in cursor.fetchall()]
