"""
Flat key-value persistence backed by SQLite.
Values are stored as JSON so lists and dicts round-trip unchanged.
"""
import json
import sqlite3
import threading
from pathlib import Path
from typing import Any, Optional
from config import Config
from utils.logger import app_logger


class KeyValueStore:
    """
    SQLite-backed key-value store with get/set/delete semantics.
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize the store and create the schema if needed.

        Args:
            db_path: Path to SQLite database file (default: Config.DATABASE_PATH)
        """
        if db_path is None:
            db_path = Config.DATABASE_PATH

        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self._db_path = db_path
        self._local = threading.local()
        self._init_db()

        app_logger.info(f"Key-value store initialized with SQLite: {self._db_path}")

    def _get_conn(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if not hasattr(self._local, 'conn'):
            self._local.conn = sqlite3.connect(self._db_path, check_same_thread=False)
            self._local.conn.row_factory = sqlite3.Row
        return self._local.conn

    def _init_db(self) -> None:
        """Initialize database schema."""
        conn = self._get_conn()
        cursor = conn.cursor()

        # WAL mode for better concurrent read/write performance
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA busy_timeout=5000")

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS kv_entries (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)

        conn.commit()

    def get(self, key: str) -> Any:
        """
        Get a value by key.

        Returns:
            The decoded JSON value, or None when the key is absent or the
            stored text is not valid JSON.
        """
        cursor = self._get_conn().cursor()
        cursor.execute("SELECT value FROM kv_entries WHERE key = ?", (key,))
        row = cursor.fetchone()
        if row is None:
            return None

        try:
            return json.loads(row['value'])
        except json.JSONDecodeError:
            app_logger.warning(f"KV: undecodable value under '{key}', treating as missing")
            return None

    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serialisable value under key, replacing any previous value."""
        conn = self._get_conn()
        conn.execute(
            "INSERT OR REPLACE INTO kv_entries (key, value) VALUES (?, ?)",
            (key, json.dumps(value))
        )
        conn.commit()
        app_logger.debug(f"KV SET: {key}")

    def delete(self, key: str) -> bool:
        """Delete a key. Returns True when something was removed."""
        conn = self._get_conn()
        cursor = conn.execute("DELETE FROM kv_entries WHERE key = ?", (key,))
        conn.commit()
        return cursor.rowcount > 0

    def close(self) -> None:
        """Close this thread's connection."""
        conn = getattr(self._local, 'conn', None)
        if conn is not None:
            conn.close()
            del self._local.conn
