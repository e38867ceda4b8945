"""Cache administration routes — /api/cache/*."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from waterfeatures.backend.services.cache_service import MemoryCache

cache_bp = Blueprint("cache", __name__)


def _get_cache() -> MemoryCache:
    return current_app.config["CACHE"]


@cache_bp.route("/", methods=["GET"])
def cache_stats():
    """Report how many entries the cache currently holds."""
    return jsonify({"entries": len(_get_cache())})


@cache_bp.route("/", methods=["DELETE"])
def clear_cache():
    """Drop cached entries, optionally only those under a key prefix."""
    prefix = request.args.get("prefix", "")
    cache = _get_cache()
    if prefix:
        removed = cache.invalidate(prefix)
    else:
        removed = len(cache)
        cache.clear()
    return jsonify({"removed": removed})
