"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    """Default configuration for the Flask backend."""

    DEBUG = os.getenv("FLASK_DEBUG", "0") == "1"

    # CORS: origins allowed to call this API
    CORS_ORIGINS = os.getenv(
        "CORS_ORIGINS", "*",
    ).split(",")

    PORT = int(os.getenv("PORT", "4000"))

    # SPARQL endpoint
    SPARQL_ENDPOINT = os.getenv(
        "SPARQL_ENDPOINT", "https://query.wikidata.org/sparql",
    )
    SPARQL_TIMEOUT = float(os.getenv("SPARQL_TIMEOUT", "60"))
    SPARQL_MAX_RETRIES = int(os.getenv("SPARQL_MAX_RETRIES", "3"))

    # Cache TTLs in seconds
    CACHE_TTL = float(os.getenv("CACHE_TTL", "300"))
    PRELOAD_TTL = float(os.getenv("PRELOAD_TTL", str(12 * 60 * 60)))

    # Expired-entry sweep interval in seconds (0 = disabled)
    CACHE_CLEANUP_INTERVAL = float(os.getenv("CACHE_CLEANUP_INTERVAL", "600"))

    # Warm the per-type caches when the app starts
    PRELOAD_ON_STARTUP = os.getenv("PRELOAD_ON_STARTUP", "1") == "1"
    PRELOAD_LIMIT = int(os.getenv("PRELOAD_LIMIT", "1000"))


class TestConfig(Config):
    """Configuration overrides for testing."""

    TESTING = True
    PRELOAD_ON_STARTUP = False
    CACHE_CLEANUP_INTERVAL = 0
    SPARQL_MAX_RETRIES = 1
