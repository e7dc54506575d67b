"""Key-value storage backends for Tredgate.

Both services persist their whole collection as JSON text under a fixed key.
The storage object is injected, so tests use ``MemoryStorage`` while a desktop
journal uses ``SqliteStorage``.
"""
import logging
import sqlite3
from abc import ABC, abstractmethod
from typing import Dict, Optional

from tredgate.config import DEFAULT_DB_PATH
from tredgate.exceptions import StorageError

logger = logging.getLogger(__name__)


class KeyValueStorage(ABC):
    """Minimal key-value contract shared by all backends."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete ``key``. Removing an absent key is a no-op."""
        pass

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class MemoryStorage(KeyValueStorage):
    """Dict-backed storage, for tests and throwaway sessions."""

    def __init__(self, initial: Dict[str, str] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key):
        return self._data.get(key)

    def set(self, key, value):
        self._data[key] = value

    def remove(self, key):
        self._data.pop(key, None)

    def keys(self):
        return list(self._data)


class SqliteStorage(KeyValueStorage):
    """Handles key-value persistence in a single SQLite table."""

    def __init__(self, db_name: str = DEFAULT_DB_PATH):
        self.db_name = db_name
        try:
            self.conn = sqlite3.connect(db_name)
        except sqlite3.Error as e:
            raise StorageError(f"Could not open storage: {e}") from e
        self._closed = False
        self.create_tables()

    def close(self):
        """Close the database connection."""
        if self.conn and not self._closed:
            self.conn.close()
            self._closed = True

    def __del__(self):
        """Ensure connection is closed on garbage collection."""
        try:
            self.close()
        except AttributeError:
            pass

    def create_tables(self):
        cursor = self.conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT
            )
        """)
        self.conn.commit()

    def get(self, key):
        try:
            cursor = self.conn.cursor()
            cursor.execute("SELECT value FROM kv_store WHERE key=?", (key,))
            res = cursor.fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Read failed: {e}", key) from e
        return res[0] if res else None

    def set(self, key, value):
        try:
            cursor = self.conn.cursor()
            cursor.execute("INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)", (key, value))
            self.conn.commit()
        except sqlite3.Error as e:
            self._rollback()
            raise StorageError(f"Write failed: {e}", key) from e
        logger.debug("Stored %d chars under %s", len(value), key)

    def remove(self, key):
        try:
            cursor = self.conn.cursor()
            cursor.execute("DELETE FROM kv_store WHERE key=?", (key,))
            self.conn.commit()
        except sqlite3.Error as e:
            self._rollback()
            raise StorageError(f"Delete failed: {e}", key) from e

    def keys(self):
        try:
            cursor = self.conn.cursor()
            cursor.execute("SELECT key FROM kv_store ORDER BY key")
            return [row[0] for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise StorageError(f"Read failed: {e}") from e

    def _rollback(self):
        if not self._closed:
            self.conn.rollback()
