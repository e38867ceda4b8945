"""Water-feature retrieval service: cache-first access to Wikidata.

Coordinates three layers:

* raw SPARQL results cached under ``sparql:<fingerprint>``,
* normalized per-category lists cached under ``features:<TYPE>``,
* single records fetched by ID, cached under ``feature:<id>``.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional, Protocol

from waterfeatures.backend.services.cache_service import MemoryCache, fingerprint
from waterfeatures.models import FeatureFilter, FeatureType, WaterFeature
from waterfeatures.normalize import normalize_results
from waterfeatures.query import (
    build_category_query,
    build_feature_by_id_query,
    build_features_query,
)

logger = logging.getLogger(__name__)

PRELOAD_TTL = 12 * 60 * 60
PRELOAD_LIMIT = 1000

# API sort names → record attributes
SORT_ATTRIBUTES: dict[str, str] = {
    "name": "name",
    "surfaceArea": "surface_area",
    "capacity": "capacity",
    "width": "width",
    "length": "length",
}


class SparqlTransport(Protocol):
    def select(self, query: str) -> dict[str, Any]: ...


class InvalidFeatureTypeError(ValueError):
    """Raised for a category outside :class:`FeatureType`."""


def category_key(category: FeatureType) -> str:
    return f"features:{category.value}"


def feature_key(entity_id: str) -> str:
    return f"feature:{entity_id}"


def sort_features(
    features: list[WaterFeature], sort_field: str, direction: str,
) -> list[WaterFeature]:
    """Sort records by an API sort field; records missing it go last."""
    attr = SORT_ATTRIBUTES.get(sort_field, "name")
    present = [f for f in features if getattr(f, attr) is not None]
    missing = [f for f in features if getattr(f, attr) is None]
    present.sort(key=lambda f: getattr(f, attr), reverse=direction == "DESC")
    return present + missing


class FeatureService:
    """Serve water features from cache, falling back to the SPARQL endpoint."""

    def __init__(
        self,
        cache: MemoryCache,
        transport: SparqlTransport,
        *,
        default_ttl: float | None = None,
        preload_ttl: float = PRELOAD_TTL,
        preload_limit: int = PRELOAD_LIMIT,
    ) -> None:
        self.cache = cache
        self.transport = transport
        self.default_ttl = cache.default_ttl if default_ttl is None else default_ttl
        self.preload_ttl = preload_ttl
        self.preload_limit = preload_limit
        self._fetch_locks: dict[str, threading.Lock] = {}
        self._fetch_locks_guard = threading.Lock()

    def _fetch_lock(self, key: str) -> threading.Lock:
        with self._fetch_locks_guard:
            return self._fetch_locks.setdefault(key, threading.Lock())

    def _release_fetch_lock(self, key: str) -> None:
        with self._fetch_locks_guard:
            lock = self._fetch_locks.get(key)
            if lock is not None and not lock.locked():
                del self._fetch_locks[key]

    def query_with_cache(self, query: str) -> dict[str, Any]:
        """Run *query*, returning the raw result document.

        Concurrent misses on the same query wait for the first fetch
        instead of issuing their own.

        Raises
        ------
        EndpointError
            If the endpoint fails; nothing is cached in that case.
        """
        key = f"sparql:{fingerprint(query)}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        lock = self._fetch_lock(key)
        try:
            with lock:
                cached = self.cache.get(key)
                if cached is not None:
                    return cached
                logger.debug("Cache miss for %s, querying endpoint", key)
                result = self.transport.select(query)
                self.cache.set(key, result, ttl=self.default_ttl)
                return result
        finally:
            self._release_fetch_lock(key)

    def _load_category(self, category: FeatureType) -> list[WaterFeature]:
        query = build_category_query(category, limit=self.preload_limit)
        features = normalize_results(self.query_with_cache(query))
        self.cache.set(category_key(category), features, ttl=self.preload_ttl)
        return features

    def preload_all(self) -> dict[FeatureType, int]:
        """Warm the per-category caches.

        A failing category is logged and skipped.

        Returns
        -------
        dict
            Number of features loaded per category that succeeded.
        """
        loaded: dict[FeatureType, int] = {}
        for category in FeatureType:
            try:
                features = self._load_category(category)
            except Exception:
                logger.exception("Failed to preload %s features", category.value)
                continue
            loaded[category] = len(features)
            logger.info("Preloaded %d %s features", len(features), category.value)
        return loaded

    def get_by_category(self, category: FeatureType | str) -> list[WaterFeature]:
        """Return every feature of *category*, loading it on first use."""
        parsed = FeatureType.parse(category)
        if parsed is None:
            raise InvalidFeatureTypeError(f"Invalid type: {category}")

        cached = self.cache.get(category_key(parsed))
        if cached is not None:
            return cached
        return self._load_category(parsed)

    def get_by_id(self, entity_id: str) -> Optional[WaterFeature]:
        """Find one feature, preferring the preloaded category lists."""
        for category in FeatureType:
            features = self.cache.get(category_key(category))
            if not features:
                continue
            for feature in features:
                if feature.id == entity_id:
                    return feature

        key = feature_key(entity_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        query = build_feature_by_id_query(entity_id)
        features = normalize_results(self.query_with_cache(query))
        if not features:
            return None

        feature = features[0]
        self.cache.set(key, feature, ttl=self.default_ttl)
        return feature

    def list_features(self, filters: FeatureFilter) -> list[WaterFeature]:
        """List features matching *filters*.

        A bare category listing is served from the per-category cache,
        sorted and paged in memory; everything else goes through SPARQL.
        """
        if filters.category is not None and not filters.has_attribute_filters:
            features = self.get_by_category(filters.category)
            ordered = sort_features(features, filters.sort_field, filters.sort_direction)
            return ordered[filters.offset:filters.offset + filters.limit]

        query = build_features_query(filters)
        return normalize_results(self.query_with_cache(query))
