"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os


def _csv(name: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, "").split(",") if item.strip()]


class Config:
    """Default configuration for the Flask adapter."""

    SECRET_KEY = os.getenv("SECRET_KEY", "dev-key-change-in-prod")
    DEBUG = os.getenv("FLASK_DEBUG", "0") == "1"

    # Execution engine: "endpoint", "graph", or "auto" (probe the endpoint once)
    ENGINE = os.getenv("SPARQLGATE_ENGINE", "auto")

    # Remote SPARQL endpoint used by the endpoint engine
    SPARQL_ENDPOINT = os.getenv("SPARQL_ENDPOINT", "")
    SPARQL_TIMEOUT = int(os.getenv("SPARQL_TIMEOUT", "30"))
    SPARQL_USE_POST = os.getenv("SPARQL_USE_POST", "0") == "1"

    # RDF files loaded into the in-memory graph engine
    DATA_FILES = _csv("DATA_FILES")

    # Turtle file with the SHACL shapes OutputSpecs refer to by IRI
    SHAPES_FILE = os.getenv("SHAPES_FILE", "")

    # Namespace allow-list; empty disables the built-in policy
    ALLOWED_NAMESPACES = _csv("ALLOWED_NAMESPACES")

    # Import path of the operation registry, e.g. "myapp.queries:registry"
    REGISTRY = os.getenv("SPARQLGATE_REGISTRY", "")

    # Headers copied into the QueryContext
    TENANT_HEADER = os.getenv("SPARQLGATE_TENANT_HEADER", "X-Tenant-Id")
    USER_HEADER = os.getenv("SPARQLGATE_USER_HEADER", "X-User-Id")


class TestConfig(Config):
    """Configuration overrides for testing."""

    TESTING = True
    ENGINE = "graph"
    SPARQL_ENDPOINT = ""
    DATA_FILES: list[str] = []
    SHAPES_FILE = ""
    ALLOWED_NAMESPACES: list[str] = []
    REGISTRY = ""
