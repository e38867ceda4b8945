"""Flask application factory for the water-features API."""

from __future__ import annotations

import logging

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from waterfeatures.backend.config import Config
from waterfeatures.backend.services.cache_service import CacheJanitor, MemoryCache
from waterfeatures.backend.services.feature_service import FeatureService, SparqlTransport
from waterfeatures.sparql_helper import SparqlHelper

logger = logging.getLogger(__name__)

FETCH_FAILED = "Failed to fetch water features from Wikidata"


def register_error_handlers(app: Flask) -> None:
    """Register consistent JSON error handlers."""

    @app.errorhandler(400)
    def bad_request(exc):
        return jsonify({"error": str(exc.description)}), 400

    @app.errorhandler(404)
    def not_found(exc):
        return jsonify({"error": "Resource not found"}), 404

    @app.errorhandler(502)
    def bad_gateway(exc):
        # Upstream detail is logged at the call site, never returned
        return jsonify({"error": FETCH_FAILED}), 502

    @app.errorhandler(HTTPException)
    def http_error(exc):
        return jsonify({"error": exc.description}), exc.code

    @app.errorhandler(Exception)
    def unhandled(exc):
        app.logger.exception("Unhandled exception")
        return jsonify({"error": "Internal server error"}), 500


def create_app(
    config_class: type[Config] = Config,
    transport: SparqlTransport | None = None,
) -> Flask:
    """Create and configure the Flask application.

    Parameters
    ----------
    config_class:
        Configuration class (default :class:`Config`).
    transport:
        Object with a ``select(query)`` method; defaults to a
        :class:`SparqlHelper` for ``SPARQL_ENDPOINT``.

    Returns
    -------
    Flask
        Configured Flask application.
    """
    app = Flask(__name__)
    app.config.from_object(config_class)

    # ── CORS ──────────────────────────────────────────────────────────
    CORS(app, resources={
        r"/api/*": {
            "origins": config_class.CORS_ORIGINS,
            "methods": ["GET", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"],
        },
    })

    # ── Cache + retrieval service ─────────────────────────────────────
    cache = MemoryCache(default_ttl=config_class.CACHE_TTL)
    if transport is None:
        transport = SparqlHelper(
            config_class.SPARQL_ENDPOINT,
            timeout=config_class.SPARQL_TIMEOUT,
            max_retries=config_class.SPARQL_MAX_RETRIES,
        )
    service = FeatureService(
        cache,
        transport,
        preload_ttl=config_class.PRELOAD_TTL,
        preload_limit=config_class.PRELOAD_LIMIT,
    )
    app.config["CACHE"] = cache
    app.config["FEATURES"] = service

    janitor = CacheJanitor(cache, config_class.CACHE_CLEANUP_INTERVAL)
    janitor.start()
    app.config["JANITOR"] = janitor

    # ── Blueprints ────────────────────────────────────────────────────
    from waterfeatures.backend.routes.cache import cache_bp
    from waterfeatures.backend.routes.features import features_bp

    app.register_blueprint(features_bp, url_prefix="/api/features")
    app.register_blueprint(cache_bp, url_prefix="/api/cache")

    # ── Error handlers ────────────────────────────────────────────────
    register_error_handlers(app)

    # ── Health check ──────────────────────────────────────────────────
    @app.route("/api/health")
    def health():
        return jsonify({"status": "ok"})

    # ── Warm the per-type caches ──────────────────────────────────────
    if config_class.PRELOAD_ON_STARTUP:
        loaded = service.preload_all()
        logger.info(
            "Preloaded %d feature types from %s",
            len(loaded), config_class.SPARQL_ENDPOINT,
        )

    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=Config.PORT)
