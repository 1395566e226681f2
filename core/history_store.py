"""Persistence for the diagnosis history.

The ledger decides ordering and eviction. A store only loads and saves the
whole list, encoded as JSON under one fixed key.
"""

import json
import logging
import sqlite3
from pathlib import Path
from typing import List, Optional, Union

from core.utils import HistoryItem, get_history_db_path

logger = logging.getLogger(__name__)

HISTORY_KEY = "phytoscan_history_v2"


class HistoryStore:
    """Load/save interface for the history ledger."""

    def load(self) -> List[HistoryItem]:
        raise NotImplementedError

    def save(self, items: List[HistoryItem]):
        raise NotImplementedError

    @staticmethod
    def encode(items: List[HistoryItem]) -> str:
        return json.dumps([item.to_dict() for item in items])

    @staticmethod
    def decode(raw: Optional[str]) -> List[HistoryItem]:
        """Parse stored JSON. Corrupt data yields an empty history."""
        if not raw:
            return []
        try:
            data = json.loads(raw)
            if not isinstance(data, list) or not all(isinstance(entry, dict) for entry in data):
                raise ValueError("expected a list of history entries")
            return [HistoryItem.from_dict(entry) for entry in data]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Discarding unreadable history data: %s", e)
            return []


class MemoryHistoryStore(HistoryStore):
    """Keeps the encoded history in memory. Useful for tests and one-off runs."""

    def __init__(self, raw: Optional[str] = None):
        self._raw = raw

    @property
    def raw(self) -> Optional[str]:
        return self._raw

    def load(self) -> List[HistoryItem]:
        return self.decode(self._raw)

    def save(self, items: List[HistoryItem]):
        self._raw = self.encode(items)


class SQLiteHistoryStore(HistoryStore):
    """Key-value table in the application's SQLite database."""

    def __init__(self, db_path: Optional[Union[str, Path]] = None, key: str = HISTORY_KEY):
        self._db_path = str(db_path or get_history_db_path())
        self._key = key
        self._init_db()

    def _init_db(self):
        """Create the key-value table if it doesn't exist."""
        with sqlite3.connect(self._db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)

    def load(self) -> List[HistoryItem]:
        with sqlite3.connect(self._db_path) as conn:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (self._key,)
            ).fetchone()
        return self.decode(row[0] if row else None)

    def save(self, items: List[HistoryItem]):
        with sqlite3.connect(self._db_path) as conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
                (self._key, self.encode(items)),
            )

