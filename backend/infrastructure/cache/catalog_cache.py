from __future__ import annotations

import threading
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping, Optional

from application.ports.cache_port import CachePort

DETAILS = "details"
SEARCH = "search"
SIMILAR = "similar"
GENRES = "genres"
EXTERNAL_RATINGS = "external_ratings"

DEFAULT_TTLS: dict[str, timedelta] = {
    DETAILS: timedelta(hours=1),
    SEARCH: timedelta(minutes=15),
    SIMILAR: timedelta(minutes=30),
    GENRES: timedelta(hours=24),
    EXTERNAL_RATINGS: timedelta(hours=24),
}


class CatalogCache(CachePort):
    """In-memory LRU+TTL cache for catalog responses.

    Each entry kind has its own TTL; unknown kinds use `default_ttl`.
    Limitation: per-process only. One instance is built by the dependency
    wiring and handed to the metadata client.
    """

    def __init__(
        self,
        *,
        ttls: Optional[Mapping[str, timedelta]] = None,
        default_ttl: timedelta = timedelta(minutes=15),
        max_size: int = 1000,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._ttls = dict(DEFAULT_TTLS)
        self._ttls.update(ttls or {})
        self._default_ttl = default_ttl
        self._max_size = max(max_size, 1)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()
        # (kind, key) -> (expires_at, value)
        self._cache: OrderedDict[tuple[str, str], tuple[datetime, Any]] = OrderedDict()

    def ttl_for(self, kind: str) -> timedelta:
        return self._ttls.get(kind, self._default_ttl)

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def set(self, kind: str, key: str, value: Any) -> None:
        k = (kind, key)
        with self._lock:
            # Only evict when adding a new key that would exceed capacity.
            if k not in self._cache and len(self._cache) >= self._max_size:
                self._cache.popitem(last=False)
            self._cache[k] = (self._clock() + self.ttl_for(kind), value)
            self._cache.move_to_end(k)

    def get(self, kind: str, key: str) -> Optional[Any]:
        k = (kind, key)
        with self._lock:
            hit = self._cache.get(k)
            if hit is None:
                return None
            expires_at, value = hit
            if self._clock() >= expires_at:
                del self._cache[k]
                return None
            self._cache.move_to_end(k)
            return value

    def delete(self, kind: str, key: str) -> bool:
        with self._lock:
            return self._cache.pop((kind, key), None) is not None

    def cleanup_expired(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [k for k, (expires_at, _) in self._cache.items() if now >= expires_at]
            for k in expired:
                del self._cache[k]
            return len(expired)
