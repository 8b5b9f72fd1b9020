"""
Explicit read-through cache for ticket aggregates.

Aggregate queries go through `get_or_load`; every mutating lifecycle
operation calls `invalidate` after its transaction commits. Time-dependent
sets (overdue, due soon) are never stored here.

Entries live in process memory, so invalidation reaches only the worker that
made the change; run a single worker or disable the cache with
STATS_CACHE_ENABLED=false when scaling out.
"""
import threading
from typing import Any, Callable, Dict, Hashable

from maintenance_api.core.config import settings
from maintenance_api.core.logging_config import logger


class StatsCache:
    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._entries: Dict[Hashable, Any] = {}
        self._lock = threading.Lock()
        self._generation = 0
        self.hits = 0
        self.misses = 0

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        if not self.enabled:
            return loader()

        with self._lock:
            if key in self._entries:
                self.hits += 1
                return self._entries[key]
            generation = self._generation

        value = loader()
        with self._lock:
            self.misses += 1
            # An invalidate() during the load means the value may predate a commit.
            if generation != self._generation:
                logger.debug(f"Stats cache discarded stale load for key {key!r}")
                return value
            self._entries[key] = value
        logger.debug(f"Stats cache filled for key {key!r}")
        return value

    def invalidate(self) -> None:
        with self._lock:
            self._generation += 1
            if self._entries:
                logger.debug(f"Stats cache invalidated ({len(self._entries)} entries)")
            self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


stats_cache = StatsCache(enabled=settings.STATS_CACHE_ENABLED)
