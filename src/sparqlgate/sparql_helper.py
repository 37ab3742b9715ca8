"""
SPARQL protocol client used by the endpoint engine.

Handles:
- GET first, switching to POST when the endpoint answers 405 or an HTML page
- Exponential back-off retry for transient failures (5xx, 429, network)
- SELECT / ASK (JSON results) and CONSTRUCT (Turtle parsed into rdflib)

Usage:
    from sparqlgate.sparql_helper import SparqlHelper

    with SparqlHelper("https://sparql.example.org/") as helper:
        results = helper.select("SELECT ?s WHERE { ?s ?p ?o } LIMIT 10")
        exists = helper.ask("ASK { ?s ?p ?o }")
"""

from __future__ import annotations

import json
import logging
import secrets
import time
from typing import Any, Literal

import requests
from rdflib import Graph

logger = logging.getLogger(__name__)

__all__ = [
    "EndpointError",
    "MimeTypes",
    "SparqlHelper",
    "SparqlHelperError",
]

QueryType = Literal["SELECT", "CONSTRUCT", "ASK"]


class SparqlHelperError(Exception):
    """Base exception for SPARQL client errors."""


class EndpointError(SparqlHelperError):
    """Raised when the endpoint keeps failing."""


class MimeTypes:
    """Content types negotiated with the endpoint."""

    JSON = "application/sparql-results+json"
    XML = "application/sparql-results+xml"
    TURTLE = "text/turtle"
    NTRIPLES = "application/n-triples"

    SELECT_ACCEPT = f"{JSON}, {XML};q=0.9"
    CONSTRUCT_ACCEPT = f"{TURTLE}, {NTRIPLES};q=0.8"


class SparqlHelper:
    """
    SPARQL endpoint client with method fallback and retry.

    Attributes:
        endpoint_url: The SPARQL endpoint URL
        use_post: Skip the GET attempt and always POST
        max_retries: Maximum number of attempts per query
        initial_backoff: First back-off delay in seconds
        max_backoff: Upper bound for the back-off delay
        timeout: Request timeout in seconds
    """

    HTML_MARKERS = ("<!DOCTYPE", "<!doctype", "<html", "<HTML")
    RETRY_STATUS_CODES = (429, 500, 502, 503, 504)
    USER_AGENT = "sparqlgate/0.3 (SPARQL client)"

    def __init__(
        self,
        endpoint_url: str,
        *,
        use_post: bool = False,
        max_retries: int = 3,
        initial_backoff: float = 1.0,
        max_backoff: float = 30.0,
        timeout: float = 60.0,
    ) -> None:
        self.endpoint_url = endpoint_url.rstrip("/")
        self.use_post = use_post
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self.timeout = timeout

        # Sticky once an endpoint has shown it only accepts POST
        self._requires_post = use_post
        self._session = requests.Session()

        logger.debug("SparqlHelper initialized for %s", self.endpoint_url)

    def select(self, query: str) -> dict[str, Any]:
        """
        Execute a SELECT query.

        Returns:
            SPARQL JSON results: ``{"head": {"vars": [...]}, "results": {"bindings": [...]}}``

        Raises:
            EndpointError: If the endpoint fails after all retries
        """
        result: dict[str, Any] = self._execute(query, MimeTypes.SELECT_ACCEPT, "SELECT")
        return result

    def ask(self, query: str) -> bool:
        """Execute an ASK query."""
        result: dict[str, Any] = self._execute(query, MimeTypes.SELECT_ACCEPT, "ASK")
        return bool(result.get("boolean", False))

    def construct_graph(self, query: str) -> Graph:
        """Execute a CONSTRUCT query and parse the Turtle answer into a graph."""
        text: str = self._execute(
            query, MimeTypes.CONSTRUCT_ACCEPT, "CONSTRUCT", parse_json=False,
        )
        graph = Graph()
        if text.strip():
            graph.parse(data=text, format="turtle")
        return graph

    def _execute(
        self,
        query: str,
        accept: str,
        query_type: QueryType,
        parse_json: bool = True,
    ) -> Any:
        attempt = 0
        while True:
            attempt += 1
            try:
                body = self._send_negotiated(query, accept)
                return json.loads(body) if parse_json else body
            except requests.exceptions.HTTPError as e:
                status_code = _status_of(e)
                if status_code not in self.RETRY_STATUS_CODES:
                    raise EndpointError(f"HTTP {status_code}: {e}") from e
                self._handle_retry(attempt, query_type, e)
            except (requests.exceptions.RequestException, json.JSONDecodeError) as e:
                self._handle_retry(attempt, query_type, e)

    def _send_negotiated(self, query: str, accept: str) -> str:
        """Send with the remembered method.

        A GET refused with 405 or answered with an HTML page is resent as
        POST within the same attempt, and POST sticks for later queries.
        """
        if not self._requires_post:
            try:
                body = self._send(query, accept, use_post=False)
            except requests.exceptions.HTTPError as e:
                if _status_of(e) != 405:
                    raise
                logger.debug("GET returned 405, switching to POST")
            else:
                if not self._is_html_response(body):
                    return body
                logger.debug("GET returned HTML, switching to POST")
            self._requires_post = True

        body = self._send(query, accept, use_post=True)
        if self._is_html_response(body):
            raise EndpointError("Endpoint returned HTML error even with POST")
        return body

    def _send(self, query: str, accept: str, use_post: bool) -> str:
        headers = {"Accept": accept, "User-Agent": self.USER_AGENT}
        if use_post:
            headers["Content-Type"] = "application/x-www-form-urlencoded"
            response = self._session.post(
                self.endpoint_url,
                data={"query": query},
                headers=headers,
                timeout=self.timeout,
            )
        else:
            response = self._session.get(
                self.endpoint_url,
                params={"query": query},
                headers=headers,
                timeout=self.timeout,
            )
        response.raise_for_status()
        return response.text

    def _handle_retry(self, attempt: int, query_type: str, error: Exception) -> None:
        """Sleep before the next attempt, or raise once attempts run out."""
        if attempt >= self.max_retries:
            logger.error("%s gave up after %d attempt(s): %s", query_type, attempt, error)
            raise EndpointError(
                f"Query failed after {self.max_retries} attempts: {error}"
            ) from error

        delay = min(self.initial_backoff * 2 ** (attempt - 1), self.max_backoff)
        delay += secrets.randbelow(int(delay * 100) + 1) / 1000
        logger.warning(
            "%s attempt %d/%d failed (%s); retrying in %.1fs",
            query_type, attempt, self.max_retries, error, delay,
        )
        time.sleep(delay)

    def _is_html_response(self, content: str) -> bool:
        if not content:
            return False
        return content.lstrip().startswith(self.HTML_MARKERS)

    def close(self) -> None:
        """Close the underlying requests session."""
        self._session.close()

    def __enter__(self) -> SparqlHelper:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"SparqlHelper({self.endpoint_url!r}, use_post={self._requires_post})"


def _status_of(error: requests.exceptions.HTTPError) -> int:
    return error.response.status_code if error.response is not None else 0
