"""Extract the named nodes a query references, for authorization.

Only the WHERE clause is inspected.  Basic graph patterns contribute
every subject, predicate, and object that is a named node; optional,
group, and union patterns are walked recursively; filter and service
nodes are opaque and contribute nothing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from sparqlgate.query_ast import (
    BgpPattern,
    GroupPattern,
    IriNode,
    OptionalPattern,
    SelectQuery,
    UnionPattern,
)

__all__ = ["AstAnalysis", "analyze", "analyze_builder"]


@dataclass
class AstAnalysis:
    """Query tree plus the identifiers and prefixes it uses."""

    ast: SelectQuery
    used_iris: set[str] = field(default_factory=set)
    prefixes: dict[str, str] = field(default_factory=dict)


def _collect(patterns: Iterable[Any], iris: set[str]) -> None:
    for pattern in patterns:
        if isinstance(pattern, BgpPattern):
            for triple in pattern.triples:
                for term in (triple.subject, triple.predicate, triple.object):
                    if isinstance(term, IriNode):
                        iris.add(term.value)
        elif isinstance(pattern, (OptionalPattern, GroupPattern, UnionPattern)):
            _collect(pattern.patterns, iris)
        # FilterPattern, ServicePattern and None fall through.


def analyze(ast: SelectQuery) -> AstAnalysis:
    """Return the identifiers referenced by *ast*'s WHERE clause.

    Missing or non-list ``where``/``prefixes`` fields are treated as empty.
    """
    where = ast.where if isinstance(ast.where, (list, tuple)) else []
    prefixes = ast.prefixes if isinstance(ast.prefixes, dict) else {}

    used: set[str] = set()
    _collect(where, used)
    return AstAnalysis(ast=ast, used_iris=used, prefixes=dict(prefixes))


def analyze_builder(builder: Any) -> AstAnalysis:
    """Shortcut for ``analyze(builder.to_ast())``."""
    return analyze(builder.to_ast())
