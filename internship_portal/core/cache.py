"""
Time-boxed in-memory cache for leaderboard reads.

Entries expire after a fixed TTL and the cache holds at most ``max_entries``;
when full, the least recently used entry is evicted. Expired entries are
swept on every write. Writers drop every entry belonging to a track through
``invalidate``; keys are tuples whose first element is the track.
"""
import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)

_MISSING = object()


class TTLCache:
    """Thread-safe LRU memo with per-entry expiry."""

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[Hashable, Tuple[float, Any]]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            item = self._entries.get(key, _MISSING)
            if item is _MISSING:
                self._misses += 1
                return default
            stored_at, value = item
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[key]
                self._misses += 1
                return default
            self._entries.move_to_end(key)
            self._hits += 1
            return value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            now = self._clock()
            self._sweep_expired(now)
            if key in self._entries:
                self._entries.move_to_end(key)
            else:
                while len(self._entries) >= self.max_entries:
                    oldest, _ = self._entries.popitem(last=False)
                    logger.debug("Cache evicted oldest entry %s", oldest)
            self._entries[key] = (now, value)

    def _sweep_expired(self, now: float) -> int:
        # caller holds the lock
        expired = [k for k, (stored_at, _) in self._entries.items() if now - stored_at >= self.ttl_seconds]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def cleanup_expired(self) -> int:
        """Drop every expired entry. Returns how many were removed."""
        with self._lock:
            return self._sweep_expired(self._clock())

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        value = self.get(key, _MISSING)
        if value is _MISSING:
            value = loader()
            self.set(key, value)
        return value

    def invalidate(self, track: Optional[str] = None) -> int:
        """Drop entries for one track, or everything when track is None."""
        with self._lock:
            if track is None:
                dropped = len(self._entries)
                self._entries.clear()
            else:
                keys = [k for k in self._entries if isinstance(k, tuple) and k and k[0] == track]
                for k in keys:
                    del self._entries[k]
                dropped = len(keys)
        logger.debug("Cache invalidated for %s (%d entries)", track or "all tracks", dropped)
        return dropped

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> dict:
        with self._lock:
            total = self._hits + self._misses
            return {
                "entries": len(self._entries),
                "max_entries": self.max_entries,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / total, 3) if total else 0.0,
            }
