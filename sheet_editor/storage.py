"""
SQLite storage backend for Sheet Editor client state.

Remembers small string values across runs (the selected document and sheet).
A key/value table keeps the schema stable as keys are added.
"""

import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from utils import utc_now, logger

# Database connection retry settings
DB_CONNECT_MAX_RETRIES = 3
DB_CONNECT_RETRY_DELAY = 1.0  # seconds


class StateStoreError(Exception):
    """Raised when the state database cannot be opened."""
    pass


class StateStore:
    """Durable key/value store backed by a single SQLite file."""

    def __init__(self, db_path: str):
        self.db_path = str(db_path)
        self._local = threading.local()
        self._initialized = False

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a thread-local database connection with retry logic.

        Raises:
            StateStoreError: If the database cannot be opened
        """
        connection = getattr(self._local, 'connection', None)
        if connection is not None:
            return connection

        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        for attempt in range(DB_CONNECT_MAX_RETRIES):
            try:
                conn = sqlite3.connect(self.db_path, timeout=30.0)
                conn.row_factory = sqlite3.Row
                conn.execute('PRAGMA journal_mode=WAL')
                conn.execute('PRAGMA synchronous=NORMAL')
                self._local.connection = conn
                logger.debug(f"Opened state database at {self.db_path}")
                return conn
            except sqlite3.Error as e:
                if attempt < DB_CONNECT_MAX_RETRIES - 1:
                    logger.warning(
                        f"State database connection attempt {attempt + 1}/{DB_CONNECT_MAX_RETRIES} "
                        f"failed: {e}. Retrying in {DB_CONNECT_RETRY_DELAY}s..."
                    )
                    time.sleep(DB_CONNECT_RETRY_DELAY)
                else:
                    logger.error(f"Failed to open state database after {DB_CONNECT_MAX_RETRIES} attempts: {e}")
                    raise StateStoreError(f"Cannot open state database {self.db_path}: {e}") from e

    def close(self):
        """Close the thread-local database connection."""
        connection = getattr(self._local, 'connection', None)
        if connection is not None:
            try:
                connection.close()
            except sqlite3.Error as e:
                logger.warning(f"Error closing state database: {e}")
            finally:
                self._local.connection = None

    @contextmanager
    def get_db(self):
        """Context manager for database operations with automatic commit/rollback."""
        if not self._initialized:
            self.init_database()
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def init_database(self):
        """Create the schema. Safe to call multiple times."""
        conn = self._get_connection()
        conn.execute('''
            CREATE TABLE IF NOT EXISTS client_state (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        ''')
        conn.commit()
        self._initialized = True

    def get_item(self, key: str) -> Optional[str]:
        with self.get_db() as conn:
            row = conn.execute('SELECT value FROM client_state WHERE key = ?', (key,)).fetchone()
            return row['value'] if row else None

    def set_item(self, key: str, value: str):
        with self.get_db() as conn:
            conn.execute(
                '''
                INSERT INTO client_state (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                ''',
                (key, value, utc_now().isoformat())
            )

    def remove_item(self, key: str):
        with self.get_db() as conn:
            conn.execute('DELETE FROM client_state WHERE key = ?', (key,))

    def clear(self) -> int:
        """Remove every stored value. Returns the number of keys removed."""
        with self.get_db() as conn:
            cursor = conn.execute('DELETE FROM client_state')
            return cursor.rowcount
