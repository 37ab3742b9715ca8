"""Error taxonomy shared by every stage of the read pipeline.

Each error carries a client-facing ``status`` hint and a ``name`` that
the request handler copies into the error envelope.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "Forbidden",
    "MethodNotAllowed",
    "MissingFocusNode",
    "OperationNotFound",
    "OutputSpecMissing",
    "QueryExecutionFailed",
    "ServerError",
    "ShapeValidationError",
    "SparqlGateError",
    "UnsupportedTermKind",
]


class SparqlGateError(Exception):
    """Base exception for sparqlgate errors."""

    name = "ServerError"
    status = 500

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status


class ServerError(SparqlGateError):
    """Catch-all for unexpected failures."""


class MethodNotAllowed(SparqlGateError):
    """Raised for any transport method other than POST."""

    name = "MethodNotAllowed"
    status = 405


class OperationNotFound(SparqlGateError):
    """Raised when the request names no registered operation."""

    name = "OperationNotFound"
    status = 404


class Forbidden(SparqlGateError):
    """Raised by authorization policies."""

    name = "Forbidden"
    status = 403


class OutputSpecMissing(SparqlGateError):
    """Raised when rows are shaped through a builder with no OutputSpec."""

    name = "OutputSpecMissing"


class MissingFocusNode(SparqlGateError):
    """Raised when a row does not bind the OutputSpec's focus variable."""

    name = "MissingFocusNode"

    def __init__(self, variable: str) -> None:
        super().__init__(f"focus node variable '{variable}' not found in binding row")
        self.variable = variable


class QueryExecutionFailed(SparqlGateError):
    """Raised when the execution backend fails."""

    name = "QueryExecutionFailed"


class UnsupportedTermKind(SparqlGateError):
    """Raised when a term outside the four RDF term kinds reaches the AST."""

    name = "UnsupportedTermKind"

    def __init__(self, kind: str) -> None:
        super().__init__(f"Unsupported term type: {kind}")
        self.kind = kind


class ShapeValidationError(SparqlGateError):
    """Raised by a shape validator when a row's local graph does not conform."""

    name = "ShapeValidationError"
    status = 400

    def __init__(self, message: str, violations: list[Any] | None = None) -> None:
        super().__init__(message)
        self.violations = violations or []
