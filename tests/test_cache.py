"""Tests for MemoryCache, CacheJanitor and query fingerprints."""

from __future__ import annotations

import threading
import time

import pytest

from waterfeatures.backend.services import cache_service
from waterfeatures.backend.services.cache_service import (
    CacheJanitor,
    MemoryCache,
    fingerprint,
)


class FakeClock:
    """Stand-in for the ``time`` module with a settable clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def time(self) -> float:
        return self.now


@pytest.fixture
def clock(monkeypatch):
    fake = FakeClock()
    monkeypatch.setattr(cache_service, "time", fake)
    return fake


class TestMemoryCache:
    """TTL semantics of MemoryCache."""

    def test_set_returns_value(self):
        cache = MemoryCache()
        assert cache.set("k", [1, 2]) == [1, 2]

    def test_get_missing(self):
        assert MemoryCache().get("nope") is None

    def test_expiry_with_real_clock(self):
        cache = MemoryCache()
        cache.set("k", "v", ttl=0.1)
        assert cache.get("k") == "v"

        time.sleep(0.15)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_value_visible_until_expiry(self, clock):
        cache = MemoryCache()
        cache.set("k", "v", ttl=10)

        clock.now += 10
        assert cache.get("k") == "v"

        clock.now += 0.001
        assert cache.get("k") is None

    def test_lazy_eviction_on_get(self, clock):
        cache = MemoryCache()
        cache.set("k", "v", ttl=1)
        clock.now += 5
        assert "k" in cache
        cache.get("k")
        assert "k" not in cache

    def test_default_ttl_used(self, clock):
        cache = MemoryCache(default_ttl=60)
        cache.set("k", "v")
        clock.now += 59
        assert cache.get("k") == "v"
        clock.now += 2
        assert cache.get("k") is None

    def test_overwrite_replaces_value_and_expiry(self, clock):
        cache = MemoryCache()
        cache.set("k", "old", ttl=1)
        cache.set("k", "new", ttl=100)
        assert len(cache) == 1

        clock.now += 50
        assert cache.get("k") == "new"

    def test_overwrite_can_shorten_expiry(self, clock):
        cache = MemoryCache()
        cache.set("k", "old", ttl=100)
        cache.set("k", "new", ttl=1)
        clock.now += 2
        assert cache.get("k") is None

    def test_falsy_values_are_cached(self):
        cache = MemoryCache()
        cache.set("empty", [])
        cache.set("zero", 0)
        assert cache.get("empty") == []
        assert cache.get("zero") == 0

    def test_cleanup_removes_only_expired(self, clock):
        cache = MemoryCache()
        cache.set("short", 1, ttl=1)
        cache.set("short2", 2, ttl=2)
        cache.set("long", 3, ttl=100)

        clock.now += 5
        removed = cache.cleanup_expired_entries()

        assert removed == 2
        assert len(cache) == 1
        assert cache.get("long") == 3

    def test_cleanup_on_fresh_cache(self, clock):
        cache = MemoryCache()
        cache.set("a", 1, ttl=10)
        assert cache.cleanup_expired_entries() == 0
        assert cache.get("a") == 1

    def test_clear(self):
        cache = MemoryCache()
        cache.set("a", 1)
        cache.set("b", 2)
        cache.clear()
        assert len(cache) == 0
        assert cache.get("a") is None

    def test_invalidate_prefix(self):
        cache = MemoryCache()
        cache.set("features:LAKE", [])
        cache.set("features:DAM", [])
        cache.set("sparql:abc", {})
        assert cache.invalidate("features:") == 2
        assert "sparql:abc" in cache
        assert "features:LAKE" not in cache

    def test_cleanup_while_other_threads_read_and_write(self):
        cache = MemoryCache()
        for i in range(50):
            cache.set(f"long:{i}", i, ttl=60)

        errors: list[BaseException] = []
        stop = threading.Event()

        def writer(worker: int) -> None:
            try:
                for i in range(500):
                    cache.set(f"short:{worker}:{i}", i, ttl=0.001)
                    assert cache.get(f"long:{i % 50}") == i % 50
            except BaseException as e:
                errors.append(e)

        def sweeper() -> None:
            try:
                while not stop.is_set():
                    cache.cleanup_expired_entries()
            except BaseException as e:
                errors.append(e)

        cleaner = threading.Thread(target=sweeper)
        workers = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        cleaner.start()
        for t in workers:
            t.start()
        for t in workers:
            t.join()
        stop.set()
        cleaner.join()

        assert errors == []
        time.sleep(0.01)
        cache.cleanup_expired_entries()
        assert len(cache) == 50
        assert all(cache.get(f"long:{i}") == i for i in range(50))


class TestCacheJanitor:
    """Background cleanup thread."""

    def test_periodic_cleanup(self):
        cache = MemoryCache()
        cache.set("gone", 1, ttl=0.01)
        cache.set("kept", 2, ttl=60)

        janitor = CacheJanitor(cache, interval=0.05)
        janitor.start()
        try:
            deadline = time.time() + 2
            while "gone" in cache and time.time() < deadline:
                time.sleep(0.02)
        finally:
            janitor.stop()

        assert "gone" not in cache
        assert cache.get("kept") == 2
        assert not janitor.running

    def test_disabled_interval_never_starts(self):
        janitor = CacheJanitor(MemoryCache(), interval=0)
        janitor.start()
        assert not janitor.running
        janitor.stop()


class TestFingerprint:
    """Cache keys derived from query text."""

    def test_deterministic(self):
        query = "SELECT ?s WHERE { ?s ?p ?o } LIMIT 10"
        assert fingerprint(query) == fingerprint(query)

    def test_distinct_queries_distinct_keys(self):
        corpus = [
            "",
            " ",
            "a",
            "b",
            "ab",
            "ba",
            "SELECT ?s WHERE { ?s ?p ?o } LIMIT 10",
            "SELECT ?s WHERE { ?s ?p ?o } LIMIT 11",
            "SELECT ?s WHERE { ?s ?p ?o } OFFSET 10",
            "Язовир Искър",
            "Язовир Искър ",
            "Рила 🏔",
        ] + [f"LIMIT {i}" for i in range(500)]
        keys = {fingerprint(text) for text in corpus}
        assert len(keys) == len(corpus)

    def test_key_is_short_hex(self):
        key = fingerprint("x" * 5000)
        assert len(key) == 16
        int(key, 16)
