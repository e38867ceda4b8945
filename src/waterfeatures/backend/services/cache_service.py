"""In-memory cache with TTL support."""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_TTL = 300


class MemoryCache:
    """Simple in-memory cache with per-key TTL (seconds).

    Expired entries are dropped lazily on :meth:`get` and in bulk by
    :meth:`cleanup_expired_entries`.  A lock guards the store, which is
    shared by request threads and the :class:`CacheJanitor`.
    """

    def __init__(self, default_ttl: float = DEFAULT_TTL) -> None:
        self.default_ttl = default_ttl
        self._store: dict[str, tuple[float, Any]] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            expires, value = entry
            if time.time() > expires:
                del self._store[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> Any:
        if ttl is None:
            ttl = self.default_ttl
        with self._lock:
            self._store[key] = (time.time() + ttl, value)
        return value

    def cleanup_expired_entries(self) -> int:
        """Drop every entry whose expiry has passed; return how many."""
        now = time.time()
        with self._lock:
            expired = [k for k, (expires, _) in self._store.items() if now > expires]
            for k in expired:
                del self._store[k]
        if expired:
            logger.debug("Evicted %d expired cache entries", len(expired))
        return len(expired)

    def invalidate(self, pattern: str = "") -> int:
        """Delete keys whose key starts with *pattern*."""
        with self._lock:
            keys = [k for k in self._store if k.startswith(pattern)]
            for k in keys:
                del self._store[k]
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._store


class CacheJanitor:
    """Background thread that periodically evicts expired cache entries."""

    def __init__(self, cache: MemoryCache, interval: float) -> None:
        self.cache = cache
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running or self.interval <= 0:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name="cache-janitor",
        )
        self._thread.start()
        logger.info("Cache cleanup scheduled every %ss", self.interval)

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.cache.cleanup_expired_entries()
            except Exception:
                logger.exception("Cache cleanup failed")


def fingerprint(text: str) -> str:
    """Derive a stable cache key from arbitrary query text."""
    return hashlib.sha256(text.encode("utf-8", "surrogatepass")).hexdigest()[:16]

