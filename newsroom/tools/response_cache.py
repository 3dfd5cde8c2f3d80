"""
Response cache: in-memory TTL cache in front of the read API queries.

The cache is a performance layer only. Every entry may be dropped at any
time, and a broken cache must never fail a request: routes go through
SafeCache, which turns any backend error into a miss.

Values are stored as JSON text, so a cached payload cannot be mutated by
the caller after set() and concurrent writers simply overwrite each other.

Typical TTLs: feed/list queries 5 minutes, filter metadata 1 hour.
"""

import json
import logging
import threading
import time
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


class CacheError(Exception):
    """Cache backend failure. Never crosses SafeCache."""


def build_key(namespace: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """
    Canonical cache key: identical queries map to the same key regardless
    of parameter order. None values are dropped, list values are sorted.
    """
    canonical = {}
    for k, v in (params or {}).items():
        if v is None:
            continue
        if isinstance(v, (list, tuple, set)):
            v = sorted(str(item) for item in v)
        canonical[str(k)] = v
    return f"{namespace}:{json.dumps(canonical, sort_keys=True, separators=(',', ':'), default=str)}"


class CacheKeys:
    """Key builders for the read API."""

    @staticmethod
    def clusters(lang: str, feed: Optional[str] = None, category: Optional[str] = None,
                 limit: Optional[int] = None) -> str:
        return build_key("clusters", {"lang": lang, "feed": feed, "category": category, "limit": limit})

    @staticmethod
    def cluster_detail(cluster_id: str, lang: str) -> str:
        return build_key("cluster", {"id": cluster_id, "lang": lang})

    @staticmethod
    def search_filters() -> str:
        return build_key("search_filters")

    @staticmethod
    def read_api_prefixes() -> Tuple[str, ...]:
        """Key prefixes of every read API entry, for invalidation after writes."""
        return ("clusters:", "cluster:", "search_filters:")


class TTLCache:
    """Thread-safe in-memory cache with per-entry TTL and a capacity bound."""

    def __init__(
        self,
        default_ttl: int = 300,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.time,
    ):
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}  # key -> (json, expires_at)
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str, default: Any = None) -> Any:
        """Value if present and unexpired. Expired entries are evicted."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return default
            payload, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                self.misses += 1
                return default
            self.hits += 1
        try:
            return json.loads(payload)
        except ValueError as e:
            raise CacheError(f"corrupt entry for {key}: {e}") from e

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise CacheError(f"value for {key} is not serializable: {e}") from e
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_entries:
                self._evict_locked()
            self._entries[key] = (payload, self._clock() + ttl)

    def _evict_locked(self):
        now = self._clock()
        expired = [k for k, (_, exp) in self._entries.items() if now >= exp]
        for k in expired:
            del self._entries[k]
        if len(self._entries) >= self.max_entries:
            oldest = min(self._entries, key=lambda k: self._entries[k][1])
            del self._entries[oldest]

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def delete_pattern(self, pattern: str) -> int:
        """Delete every key containing pattern. Returns the number removed."""
        with self._lock:
            doomed = [k for k in self._entries if pattern in k]
            for k in doomed:
                del self._entries[k]
            return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def cleanup_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, exp) in self._entries.items() if now >= exp]
            for k in expired:
                del self._entries[k]
            return len(expired)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "size": len(self._entries),
                "max_size": self.max_entries,
                "hits": self.hits,
                "misses": self.misses,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class SafeCache:
    """
    Best-effort wrapper: reads fall back to a miss, writes and invalidation
    become no-ops when the backend fails. Only logs, never raises.
    """

    def __init__(self, backend: TTLCache):
        self.backend = backend

    def get(self, key: str, default: Any = None) -> Any:
        try:
            return self.backend.get(key, default)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}, treating as miss: {e}")
            return default

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        try:
            self.backend.set(key, value, ttl_seconds)
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    def delete_pattern(self, pattern: str) -> int:
        try:
            return self.backend.delete_pattern(pattern)
        except Exception as e:
            logger.warning(f"Cache invalidation '{pattern}' failed: {e}")
            return 0

    def clear(self) -> None:
        try:
            self.backend.clear()
        except Exception as e:
            logger.warning(f"Cache clear failed: {e}")

    def cleanup_expired(self) -> int:
        try:
            return self.backend.cleanup_expired()
        except Exception as e:
            logger.warning(f"Cache expiry sweep failed: {e}")
            return 0

    def invalidate_read_api(self) -> int:
        """Drop cluster lists, details and filter metadata. Returns entries removed."""
        return sum(self.delete_pattern(prefix) for prefix in CacheKeys.read_api_prefixes())

    def stats(self) -> Dict[str, int]:
        try:
            return self.backend.stats()
        except Exception as e:
            logger.warning(f"Cache stats failed: {e}")
            return {}


def create_response_cache(default_ttl: int = 300, max_entries: int = 1000) -> SafeCache:
    return SafeCache(TTLCache(default_ttl=default_ttl, max_entries=max_entries))


# Process-wide instance used by the API and the orchestrator
response_cache = create_response_cache()
