"""Fluent SPARQL SELECT builder with an attached output contract.

Usage:
    from sparqlgate import QueryBuilder, OutputSpec, iri, v

    qb = (
        QueryBuilder()
        .prefix("ex", "http://example.org/schema#")
        .select_vars([v("id"), v("name")])
        .where_triple(v("id"), iri(RDF_TYPE), iri("http://example.org/schema#Person"))
        .where_triple(v("id"), iri("http://example.org/schema#name"), v("name"))
        .limit(10)
    )
    print(qb.to_query_text())

The builder is created per logical query and never shared between
requests.  Downstream stages only read it through :meth:`to_ast` and
:meth:`get_output_spec`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, Optional, TypeVar, Union

from rdflib import BNode, Graph, Literal, URIRef, Variable

from sparqlgate.errors import UnsupportedTermKind
from sparqlgate.generator import SparqlGenerator
from sparqlgate.query_ast import (
    AstTerm,
    BgpPattern,
    BlankNodeNode,
    FilterPattern,
    IriNode,
    LiteralNode,
    OptionalPattern,
    Pattern,
    SelectQuery,
    TriplePattern,
)
from sparqlgate.terms import BindingRow, ObjectTerm, PredicateTerm, Quad, SubjectTerm, term_kind

__all__ = ["OutputSpec", "QueryBuilder"]

T = TypeVar("T")

# Shape IRI, Turtle text, or an rdflib graph holding the shapes.
ShapeRef = Union[str, URIRef, Graph]

_default_generator = SparqlGenerator()


@dataclass(frozen=True)
class OutputSpec(Generic[T]):
    """How result rows are validated and projected.

    Attributes:
        shape: Shape the row's local graph must satisfy
        focus_node_var: Variable whose value is the node under validation
        build_quads: Rebuilds the local graph of one binding row
        map_to_object: Projects an accepted row to the application DTO
    """

    shape: ShapeRef
    focus_node_var: str
    build_quads: Callable[[BindingRow], list[Quad]]
    map_to_object: Callable[[BindingRow], T]


@dataclass(frozen=True)
class _TripleEntry:
    subject: SubjectTerm
    predicate: PredicateTerm
    object: ObjectTerm
    optional: bool = False


class QueryBuilder:
    """Accumulates prefixes, projection, triple patterns, filters, and a limit."""

    def __init__(self, generator: SparqlGenerator | None = None) -> None:
        self._prefixes: dict[str, str] = {}
        self._variables: list[Variable] = []
        self._patterns: list[_TripleEntry] = []
        self._filters: list[str] = []
        self._limit: Optional[int] = None
        self._output_spec: Optional[OutputSpec[Any]] = None
        self._generator = generator or _default_generator

    # ── mutators ─────────────────────────────────────────────────────

    def prefix(self, short: str, namespace: str) -> QueryBuilder:
        """Declare ``PREFIX short: <namespace>``; redeclaring replaces it."""
        self._prefixes[short] = str(namespace)
        return self

    def select_vars(self, variables: Iterable[Variable | str]) -> QueryBuilder:
        """Set the projected variables, replacing any previous projection."""
        self._variables = [
            var if isinstance(var, Variable) else Variable(str(var).lstrip("?$"))
            for var in variables
        ]
        return self

    def where_triple(
        self, subject: SubjectTerm, predicate: PredicateTerm, obj: ObjectTerm,
    ) -> QueryBuilder:
        """Add a required triple pattern."""
        self._patterns.append(_TripleEntry(subject, predicate, obj))
        return self

    def optional_triple(
        self, subject: SubjectTerm, predicate: PredicateTerm, obj: ObjectTerm,
    ) -> QueryBuilder:
        """Add a triple pattern wrapped in ``OPTIONAL``."""
        self._patterns.append(_TripleEntry(subject, predicate, obj, optional=True))
        return self

    def filter(self, expression: str) -> QueryBuilder:
        """Add a raw ``FILTER`` expression, rendered verbatim."""
        self._filters.append(expression)
        return self

    def limit(self, n: int) -> QueryBuilder:
        self._limit = int(n)
        return self

    def set_output_spec(self, spec: OutputSpec[T]) -> QueryBuilder:
        """Attach the output contract used for row validation and mapping."""
        self._output_spec = spec
        return self

    # ── read-only views ──────────────────────────────────────────────

    def get_output_spec(self) -> Optional[OutputSpec[Any]]:
        """Return the attached OutputSpec, or ``None`` if unset."""
        return self._output_spec

    @property
    def prefixes(self) -> dict[str, str]:
        return dict(self._prefixes)

    @property
    def variables(self) -> list[Variable]:
        return list(self._variables)

    def to_ast(self) -> SelectQuery:
        """Return the query tree for the accumulated state.

        Required triples become basic graph patterns, optional triples
        are wrapped in an optional pattern, both in insertion order.
        Filters follow the patterns; the limit is copied as is.
        """
        where: list[Pattern] = []
        for entry in self._patterns:
            bgp = BgpPattern(triples=(
                TriplePattern(
                    subject=self.term_to_ast(entry.subject),
                    predicate=self.term_to_ast(entry.predicate),
                    object=self.term_to_ast(entry.object),
                ),
            ))
            where.append(OptionalPattern(patterns=(bgp,)) if entry.optional else bgp)

        where.extend(FilterPattern(expression=expr) for expr in self._filters)

        return SelectQuery(
            variables=list(self._variables),
            where=where,
            prefixes=dict(self._prefixes),
            limit=self._limit,
        )

    def to_query_text(self) -> str:
        """Return the SPARQL text for the accumulated state."""
        return self._generator.stringify(self.to_ast())

    def __str__(self) -> str:
        return self.to_query_text()

    def __repr__(self) -> str:
        return (
            f"QueryBuilder(variables={[str(x) for x in self._variables]!r}, "
            f"patterns={len(self._patterns)}, filters={len(self._filters)}, "
            f"limit={self._limit!r})"
        )

    @staticmethod
    def term_to_ast(term: object) -> AstTerm:
        """Translate an rdflib term into its AST node.

        Raises:
            UnsupportedTermKind: If *term* is not one of the four RDF term kinds
        """
        if isinstance(term, Variable):
            return term
        if isinstance(term, URIRef):
            return IriNode(value=str(term))
        if isinstance(term, Literal):
            return LiteralNode(
                value=str(term),
                language=term.language or "",
                datatype=IriNode(value=str(term.datatype)) if term.datatype else None,
            )
        if isinstance(term, BNode):
            return BlankNodeNode(label=str(term))
        raise UnsupportedTermKind(term_kind(term))
