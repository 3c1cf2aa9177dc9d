"""
Query cache keyed by tuples, e.g. ("/api/auth/me",) or
("/api/stripe-connect/status", organization_id).

Entries go stale after their stale time or when invalidated; stale entries
are refetched on the next read. A failed fetch leaves the previous data in
place and re-raises.
"""

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Hashable, Optional

logger = logging.getLogger(__name__)

QueryKey = tuple[Hashable, ...]


@dataclass
class CacheEntry:
    data: Any = None
    updated_at: float = 0.0
    invalidated: bool = False
    error: Optional[Exception] = None
    has_data: bool = False

    def is_fresh(self, stale_time: float, now: float) -> bool:
        return self.has_data and not self.invalidated and now - self.updated_at < stale_time


class QueryCache:
    def __init__(self, default_stale_time: float = 0.0, clock: Callable[[], float] = time.monotonic):
        self.default_stale_time = default_stale_time
        self.clock = clock
        self._entries: dict[QueryKey, CacheEntry] = {}
        self._lock = Lock()

    def get(self, key: QueryKey) -> Any:
        entry = self._entries.get(key)
        return entry.data if entry else None

    def entry(self, key: QueryKey) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def set(self, key: QueryKey, data: Any) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(data=data, updated_at=self.clock(), has_data=True)

    def fetch(self, key: QueryKey, fetcher: Callable[[], Any], stale_time: Optional[float] = None) -> Any:
        """Return cached data while fresh, otherwise call `fetcher` and store the result"""
        stale_time = self.default_stale_time if stale_time is None else stale_time
        entry = self._entries.get(key)
        if entry and entry.is_fresh(stale_time, self.clock()):
            return entry.data

        try:
            data = fetcher()
        except Exception as e:
            with self._lock:
                current = self._entries.setdefault(key, CacheEntry())
                current.error = e
            logger.debug(f"Query {key} failed, keeping previous data: {e}")
            raise

        self.set(key, data)
        return data

    def invalidate(self, prefix: QueryKey) -> int:
        """Mark every key starting with `prefix` stale; returns how many matched"""
        count = 0
        with self._lock:
            for key, entry in self._entries.items():
                if key[: len(prefix)] == tuple(prefix):
                    entry.invalidated = True
                    count += 1
        return count

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
