"""Tests for cache administration routes."""

from __future__ import annotations


def test_cache_stats(client, cache):
    resp = client.get("/api/cache/")
    assert resp.get_json() == {"entries": 0}

    client.get("/api/features/types/DAM")
    resp = client.get("/api/cache/")
    # raw SPARQL result + normalized DAM list
    assert resp.get_json() == {"entries": 2}


def test_clear_by_prefix(client, cache):
    client.get("/api/features/types/DAM")
    resp = client.delete("/api/cache/?prefix=features:")
    assert resp.get_json() == {"removed": 1}
    assert len(cache) == 1


def test_clear_all(client, cache):
    client.get("/api/features/types/DAM")
    resp = client.delete("/api/cache/")
    assert resp.get_json() == {"removed": 2}
    assert len(cache) == 0
