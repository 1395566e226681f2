"""Bounded, newest-first record of committed diagnoses."""

import logging
import threading
from typing import List, Optional

from core.history_store import HistoryStore, MemoryHistoryStore
from core.utils import AnalysisResult, DiseaseStage, HistoryItem

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 20


class HistoryLedger:
    """Keeps at most ``capacity`` HistoryItems, newest at index 0.

    Appending past capacity evicts the oldest entry. N0 results are only
    recorded when ``record_invalid_diagnoses`` is set. Every change is written
    through to the store while holding the ledger lock, so concurrent appends
    never interleave.
    """

    def __init__(
        self,
        store: Optional[HistoryStore] = None,
        capacity: int = DEFAULT_CAPACITY,
        record_invalid_diagnoses: bool = False,
    ):
        if capacity < 1:
            raise ValueError(f"History capacity must be positive, got {capacity}")
        self._store = store if store is not None else MemoryHistoryStore()
        self._capacity = capacity
        self._record_invalid = record_invalid_diagnoses
        self._lock = threading.Lock()
        self._items: List[HistoryItem] = self._store.load()[:capacity]

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def record_invalid_diagnoses(self) -> bool:
        return self._record_invalid

    def append(self, result: AnalysisResult) -> bool:
        """Commit a result. Returns False if the N0 policy skipped it."""
        if result.stage == DiseaseStage.INVALID and not self._record_invalid:
            logger.debug("Not recording N0 diagnosis %s", result.id)
            return False

        item = HistoryItem.from_result(result)
        with self._lock:
            updated = [item] + self._items
            evicted = updated[self._capacity:]
            updated = updated[:self._capacity]
            self._store.save(updated)
            self._items = updated

        for old in evicted:
            logger.debug("Evicted history entry %s", old.id)
        return True

    def list(self) -> List[HistoryItem]:
        """Get all history entries, newest first."""
        with self._lock:
            return list(self._items)

    def get(self, entry_id: str) -> Optional[HistoryItem]:
        with self._lock:
            for item in self._items:
                if item.id == entry_id:
                    return item
        return None

    def count(self) -> int:
        with self._lock:
            return len(self._items)

    def clear(self) -> int:
        """Delete all history entries. Returns count deleted."""
        with self._lock:
            removed = len(self._items)
            self._store.save([])
            self._items = []
        return removed
