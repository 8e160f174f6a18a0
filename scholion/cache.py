"""Bounded, recency-ordered in-memory cache of fetched texts."""

from __future__ import annotations

import time
from typing import Callable, Dict, List, Optional

from .structures import CacheEntry, CacheKey, TextEntry

DEFAULT_CAPACITY = 100


class TextCache:
    """Stores texts keyed by ``(text id, language)`` and evicts the least recently used.

    Reads count as use: a ``get`` hit refreshes the entry's access time. When a
    ``put`` pushes the size over capacity, all entries are sorted by access time
    and the oldest are dropped in one batch until the cache is back at capacity.
    Entries are also kept in access order, so reads at the same clock value
    still rank by which came last.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._clock = clock
        self._entries: Dict[CacheKey, CacheEntry] = {}

    def get(self, key: CacheKey) -> Optional[TextEntry]:
        entry = self._entries.pop(key, None)
        if entry is None:
            return None
        entry.last_accessed = self._clock()
        self._entries[key] = entry
        return entry.data

    def put(self, key: CacheKey, data: TextEntry) -> None:
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(key=key, data=data, last_accessed=self._clock())
        self._prune()

    def should_fetch(self, key: CacheKey) -> bool:
        """Return True when no entry exists for ``key``. Does not touch recency."""

        return key not in self._entries

    def keys(self) -> List[CacheKey]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def _prune(self) -> None:
        if len(self._entries) <= self.capacity:
            return

        # Dict order follows recency, so the stable sort breaks clock ties by it.
        ordered = sorted(self._entries.values(), key=lambda entry: entry.last_accessed)
        excess = len(ordered) - self.capacity
        for entry in ordered[:excess]:
            del self._entries[entry.key]
