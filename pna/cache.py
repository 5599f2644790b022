"""In-memory TTL cache for pRPC results."""

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from pna.models import CacheEntry

logger = logging.getLogger(__name__)

_MISSING = object()


class TTLCache:
    """Key-value store whose entries expire *ttl* seconds after being set.

    Entries are immutable and only ever replaced wholesale, so a single
    lock around each read and write is enough to share one cache between
    threads.

    Args:
        clock: Returns the current time in epoch seconds.  Injectable so
            tests can move time forward.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value for *key*, or *default* if absent or stale.

        Stale entries are evicted on access.  Pass a sentinel *default* to
        tell a cached ``None`` apart from a miss.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            if not entry.is_valid(self._now_ms()):
                logger.debug("Cache entry %s expired", key)
                del self._entries[key]
                return default
            return entry.data

    def set(self, key: str, data: Any, ttl: float) -> None:
        entry = CacheEntry(data=data, timestamp=self._now_ms(), ttl=ttl)
        with self._lock:
            self._entries[key] = entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key, _MISSING) is not _MISSING
