"""Typed query routes: /api/query and /api/operations."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from sparqlgate.auth import QueryContext
from sparqlgate.server import HandlerRequest, SparqlServer

query_bp = Blueprint("query", __name__)

# Every method reaches the handler so non-POST calls get its 405 envelope.
ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def _get_server() -> SparqlServer:
    return current_app.extensions["sparqlgate"]


def _context() -> QueryContext:
    return QueryContext(
        request=request,
        tenant_id=request.headers.get(current_app.config["TENANT_HEADER"]) or None,
        user_id=request.headers.get(current_app.config["USER_HEADER"]) or None,
    )


@query_bp.route("/query", methods=ALL_METHODS)
def run_operation():
    """Run a registered operation.

    Request body (JSON):
        operation – registered operation name
        params    – operation parameters (optional)
    """
    result = _get_server().handle(HandlerRequest(
        method=request.method,
        body=request.get_data(),
        headers=dict(request.headers),
        context=_context(),
    ))
    return jsonify(result.body), result.status


@query_bp.route("/operations", methods=["GET"])
def list_operations():
    """Return registered operation names and descriptions."""
    server = _get_server()
    return jsonify([
        {"name": name, "description": server.registry[name].description}
        for name in server.operations()
    ])
