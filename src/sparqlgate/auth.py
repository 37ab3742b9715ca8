"""Authorization hooks and namespace allow-list policies.

The request handler calls two hooks:

* ``authorize_operation`` once per request, after the query is built
  and before it runs, with the identifiers the query references;
* ``authorize_row`` once per result row, with the row's reconstructed
  quads.

Hooks signal rejection by raising (usually :class:`~sparqlgate.errors.Forbidden`).
The handler decides what a rejection means: a rejected operation fails
the request, a rejected row is dropped.

:class:`NamespacePolicy` implements both hooks with a string-prefix
allow-list derived from the request context.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Union
from urllib.parse import quote

from rdflib import URIRef

from sparqlgate.errors import Forbidden
from sparqlgate.query_ast import SelectQuery
from sparqlgate.terms import BindingRow, Quad

__all__ = [
    "AuthorizeOperationInput",
    "AuthorizeRowInput",
    "NamespacePolicy",
    "QueryContext",
    "authorize_operation_by_namespace",
    "authorize_row_by_quads",
    "default_allowed_namespaces",
]

STANDARD_NAMESPACES = (
    "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
    "http://www.w3.org/2000/01/rdf-schema#",
    "http://www.w3.org/2001/XMLSchema#",
)


@dataclass
class QueryContext:
    """Per-request context handed to builders and hooks.

    ``auth_context`` is free for whatever the host's identity provider
    supplies.
    """

    request: Any = None
    tenant_id: Optional[str] = None
    user_id: Optional[str] = None
    auth_context: Any = None


@dataclass
class AuthorizeOperationInput:
    ctx: QueryContext
    operation: str
    params: Any
    ast: SelectQuery
    used_iris: set[str]
    prefixes: dict[str, str]


@dataclass
class AuthorizeRowInput:
    ctx: QueryContext
    operation: str
    params: Any
    row: BindingRow
    ast: SelectQuery
    used_iris: set[str]
    prefixes: dict[str, str]
    quads: list[Quad] = field(default_factory=list)


def default_allowed_namespaces(ctx: QueryContext) -> list[str]:
    """Tenant data namespace (``http://example.org/`` without a tenant) plus RDF/RDFS/XSD."""
    base = (
        f"https://data.example.com/{quote(ctx.tenant_id, safe='')}/"
        if ctx.tenant_id
        else "http://example.org/"
    )
    return [base, *STANDARD_NAMESPACES]


NamespaceSource = Union[Iterable[str], Callable[[QueryContext], Iterable[str]]]


class NamespacePolicy:
    """String-prefix allow-list over identifiers and quads.

    Parameters
    ----------
    namespaces:
        Either a fixed list of allowed namespace prefixes or a callable
        computing them from the :class:`QueryContext`.  Defaults to
        :func:`default_allowed_namespaces`.
    status:
        Status hint carried by the raised :class:`Forbidden`.
    """

    def __init__(
        self,
        namespaces: NamespaceSource | None = None,
        *,
        status: int = 403,
    ) -> None:
        if namespaces is None:
            namespaces = default_allowed_namespaces
        if callable(namespaces):
            self._resolve = namespaces
        else:
            fixed = list(namespaces)
            self._resolve = lambda ctx: fixed
        self.status = status

    def allowed(self, ctx: QueryContext) -> list[str]:
        return list(self._resolve(ctx))

    @staticmethod
    def is_allowed(value: str, allowed: Iterable[str]) -> bool:
        return any(value.startswith(ns) for ns in allowed)

    def authorize_operation(self, check: AuthorizeOperationInput) -> None:
        """Reject the query if any referenced identifier is outside the allow-list."""
        allowed = self.allowed(check.ctx)
        for value in sorted(check.used_iris):
            if not self.is_allowed(value, allowed):
                raise Forbidden(f"Forbidden namespace in query: {value}", status=self.status)

    def authorize_row(self, check: AuthorizeRowInput) -> None:
        """Reject the row if a quad's predicate or named graph is outside the allow-list."""
        allowed = self.allowed(check.ctx)
        for quad in check.quads:
            if isinstance(quad.predicate, URIRef) and not self.is_allowed(quad.predicate, allowed):
                raise Forbidden(f"Forbidden predicate: {quad.predicate}", status=self.status)
            if isinstance(quad.graph, URIRef) and not self.is_allowed(quad.graph, allowed):
                raise Forbidden(f"Forbidden graph: {quad.graph}", status=self.status)


_default_policy = NamespacePolicy()


def authorize_operation_by_namespace(check: AuthorizeOperationInput) -> None:
    """Operation hook using :func:`default_allowed_namespaces`."""
    _default_policy.authorize_operation(check)


def authorize_row_by_quads(check: AuthorizeRowInput) -> None:
    """Row hook using :func:`default_allowed_namespaces`."""
    _default_policy.authorize_row(check)
