"""Flask adapter for the sparqlgate request handler."""

from sparqlgate.backend.app import create_app, load_registry

__all__ = ["create_app", "load_registry"]
