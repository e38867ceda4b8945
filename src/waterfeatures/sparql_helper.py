"""
SPARQL Helper - SELECT query execution against the Wikidata query service.

This module is a small SPARQL client that handles:
- JSON results negotiation (``format=json`` + ``Accept`` header)
- Exponential backoff retry logic for transient failures
- GET → POST fallback for endpoints that reject GET
- Error reporting that carries the remote error body

Usage:
    from waterfeatures.sparql_helper import SparqlHelper

    helper = SparqlHelper("https://query.wikidata.org/sparql")
    results = helper.select("SELECT ?s WHERE { ?s ?p ?o } LIMIT 10")
"""

from __future__ import annotations

import json
import logging
import secrets
import time
from typing import Any

import requests

from waterfeatures.version import VERSION

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://query.wikidata.org/sparql"

USER_AGENT = f"waterfeatures/{VERSION} (Bulgaria water features API)"

JSON_RESULTS = "application/sparql-results+json"


class SparqlHelperError(Exception):
    """Base exception for SPARQL helper errors."""

    pass


class EndpointError(SparqlHelperError):
    """Raised when the endpoint does not answer with a result document.

    Attributes:
        status_code: HTTP status of the last response, if there was one
        body: Response body returned by the endpoint, if any
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class SparqlHelper:
    """
    SPARQL SELECT executor with retry logic.

    Attributes:
        endpoint_url: The SPARQL endpoint URL
        use_post: If True, always use POST method (skip GET attempt)
        max_retries: Maximum number of attempts
        initial_backoff: Initial backoff delay in seconds
        max_backoff: Maximum backoff delay in seconds
        timeout: Request timeout in seconds

    Example:
        >>> helper = SparqlHelper("https://query.wikidata.org/sparql")
        >>> results = helper.select("SELECT ?s { ?s wdt:P17 wd:Q219 } LIMIT 1")
        >>> for binding in results["results"]["bindings"]:
        ...     print(binding["s"]["value"])
    """

    # HTTP status codes that warrant a retry
    RETRY_STATUS_CODES = (500, 502, 503, 504, 429)

    def __init__(
        self,
        endpoint_url: str = DEFAULT_ENDPOINT,
        *,
        use_post: bool = False,
        max_retries: int = 3,
        initial_backoff: float = 1.0,
        max_backoff: float = 30.0,
        timeout: float = 60.0,
    ) -> None:
        self.endpoint_url = endpoint_url.rstrip("/")
        self.use_post = use_post
        self.max_retries = max(1, max_retries)
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self.timeout = timeout

        # Track if we've detected this endpoint requires POST
        self._requires_post = use_post

        # Session for connection pooling
        self._session = requests.Session()

        logger.debug("SparqlHelper initialized for %s", self.endpoint_url)

    def select(self, query: str) -> dict[str, Any]:
        """
        Execute a SELECT query and return JSON results.

        Args:
            query: SPARQL SELECT query string

        Returns:
            Dictionary with SPARQL JSON results format:
            {
                "head": {"vars": ["s", "p", "o"]},
                "results": {"bindings": [...]}
            }

        Raises:
            EndpointError: If the endpoint returns an error after all retries
        """
        attempt = 0

        while attempt < self.max_retries:
            attempt += 1
            try:
                response = self._send(query)
            except requests.exceptions.RequestException as e:
                self._handle_retry(attempt, e)
                continue

            if not response.ok:
                error = EndpointError(
                    f"SPARQL query failed: {response.text}",
                    status_code=response.status_code,
                    body=response.text,
                )
                if response.status_code in self.RETRY_STATUS_CODES:
                    self._handle_retry(attempt, error)
                    continue
                raise error

            try:
                return json.loads(response.text)
            except json.JSONDecodeError as e:
                raise EndpointError(
                    f"SPARQL endpoint returned invalid JSON: {e}",
                    status_code=response.status_code,
                    body=response.text,
                ) from e

        # _handle_retry raises on the last attempt
        raise EndpointError("Query failed unexpectedly")

    def _send(self, query: str) -> requests.Response:
        """Send *query*, switching to POST for good if GET gets a 405.

        The method switch happens within one attempt.
        """
        if self._requires_post:
            return self._post_query(query)

        response = self._get_query(query)
        if response.status_code == 405:
            logger.debug("GET returned 405, switching to POST")
            self._requires_post = True
            return self._post_query(query)
        return response

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": JSON_RESULTS,
            "User-Agent": USER_AGENT,
        }

    def _get_query(self, query: str) -> requests.Response:
        """Execute SPARQL query using HTTP GET."""
        return self._session.get(
            self.endpoint_url,
            params={"query": query, "format": "json"},
            headers=self._headers(),
            timeout=self.timeout,
        )

    def _post_query(self, query: str) -> requests.Response:
        """Execute SPARQL query using HTTP POST (form-encoded)."""
        headers = self._headers()
        headers["Content-Type"] = "application/x-www-form-urlencoded"
        return self._session.post(
            self.endpoint_url,
            data={"query": query, "format": "json"},
            headers=headers,
            timeout=self.timeout,
        )

    def _handle_retry(self, attempt: int, error: Exception) -> None:
        """
        Sleep with exponential backoff, or give up.

        Raises:
            EndpointError: If max retries exceeded
        """
        logger.warning("Query attempt %d/%d failed: %s", attempt, self.max_retries, error)

        if attempt >= self.max_retries:
            logger.error("SELECT failed after %d tries", self.max_retries)
            if isinstance(error, EndpointError):
                raise error
            raise EndpointError(
                f"Query failed after {self.max_retries} attempts: {error}"
            ) from error

        backoff = min(self.initial_backoff * (2 ** (attempt - 1)), self.max_backoff)
        jitter = secrets.randbelow(int(backoff * 0.1 * 1000) + 1) / 1000
        sleep_time = backoff + jitter

        logger.info("Retrying in %.1fs (attempt %d/%d)", sleep_time, attempt + 1, self.max_retries)
        time.sleep(sleep_time)

    def close(self) -> None:
        """Close the underlying requests session."""
        self._session.close()

    def __enter__(self) -> SparqlHelper:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        url = self.endpoint_url
        return f"SparqlHelper({url!r}, use_post={self._requires_post})"

