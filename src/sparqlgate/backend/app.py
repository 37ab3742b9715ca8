"""Flask application factory for the sparqlgate HTTP adapter."""

from __future__ import annotations

import importlib
import logging
from typing import Any

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from sparqlgate.auth import NamespacePolicy
from sparqlgate.backend.config import Config
from sparqlgate.engines import EngineProvider
from sparqlgate.models import QueryRegistry
from sparqlgate.server import SparqlServer
from sparqlgate.validation import ShaclValidator

logger = logging.getLogger(__name__)


def load_registry(path: str) -> QueryRegistry:
    """Import a registry from ``"package.module:attribute"``."""
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ValueError(f"Registry path must look like 'module:attribute', got {path!r}")
    registry = getattr(importlib.import_module(module_name), attr)
    if not isinstance(registry, dict):
        raise TypeError(f"{path} is not a registry dict")
    return registry


def register_error_handlers(app: Flask) -> None:
    """JSON bodies for errors raised outside the request handler."""

    @app.errorhandler(404)
    def not_found(exc):
        return jsonify({"error": {"name": "NotFound", "message": "Resource not found"}}), 404

    @app.errorhandler(Exception)
    def unhandled(exc):
        if isinstance(exc, HTTPException):
            return jsonify({"error": {"name": exc.name.replace(" ", ""), "message": exc.description}}), exc.code
        app.logger.exception("Unhandled exception")
        return jsonify({"error": {"name": "ServerError", "message": "Internal server error"}}), 500


def create_app(
    config_class: type[Config] = Config,
    registry: QueryRegistry | None = None,
    **server_options: Any,
) -> Flask:
    """Create and configure the Flask application.

    Parameters
    ----------
    config_class:
        Configuration class (default :class:`Config`).
    registry:
        Operations to serve; loaded from ``config_class.REGISTRY`` when omitted.
    server_options:
        Passed to :class:`~sparqlgate.server.SparqlServer`; explicit
        ``provider``, ``validator``, or authorization hooks override the
        ones built from configuration.

    Returns
    -------
    Flask
        Configured Flask application.
    """
    app = Flask(__name__)
    app.config.from_object(config_class)

    if registry is None:
        registry = load_registry(config_class.REGISTRY) if config_class.REGISTRY else {}

    # ── Engines ───────────────────────────────────────────────────────
    if "engine" not in server_options and "provider" not in server_options:
        server_options["provider"] = EngineProvider(
            mode=config_class.ENGINE,
            endpoint_url=config_class.SPARQL_ENDPOINT or None,
            data_files=config_class.DATA_FILES,
            use_post=config_class.SPARQL_USE_POST,
            timeout=config_class.SPARQL_TIMEOUT,
        )

    # ── Shapes ────────────────────────────────────────────────────────
    if "validator" not in server_options:
        server_options["validator"] = ShaclValidator(config_class.SHAPES_FILE or None)
        if registry and not config_class.SHAPES_FILE:
            logger.warning(
                "No SHAPES_FILE configured: rows of operations whose output "
                "shape is an IRI will fail validation and be dropped (%d operation(s))",
                len(registry),
            )

    # ── Namespace policy ──────────────────────────────────────────────
    if config_class.ALLOWED_NAMESPACES:
        policy = NamespacePolicy(config_class.ALLOWED_NAMESPACES)
        server_options.setdefault("authorize_operation", policy.authorize_operation)
        server_options.setdefault("authorize_row", policy.authorize_row)

    server = SparqlServer(registry, **server_options)
    app.extensions["sparqlgate"] = server
    logger.info("Serving %d operation(s)", len(registry))

    # ── Blueprints ────────────────────────────────────────────────────
    from sparqlgate.backend.routes.query import query_bp

    app.register_blueprint(query_bp, url_prefix="/api")

    register_error_handlers(app)

    @app.route("/api/health")
    def health():
        return jsonify({"status": "ok", "operations": len(registry)})

    return app
