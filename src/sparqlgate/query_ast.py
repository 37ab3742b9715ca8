"""SPARQL SELECT syntax tree produced by :class:`~sparqlgate.builder.QueryBuilder`.

The tree is a closed set of node kinds so consumers (the text generator,
the authorization analyzer) can match on them exhaustively instead of
probing dictionaries for ``type`` keys.

Term nodes:

* :class:`IriNode` – a named node
* :class:`LiteralNode` – value, language (``""`` when absent), datatype
* :class:`BlankNodeNode` – a labelled blank node
* :class:`rdflib.Variable` – passed through untouched

Pattern nodes: :class:`BgpPattern`, :class:`OptionalPattern`,
:class:`GroupPattern`, :class:`UnionPattern`, :class:`FilterPattern`,
:class:`ServicePattern`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from rdflib import Variable

__all__ = [
    "AstTerm",
    "BgpPattern",
    "BlankNodeNode",
    "FilterPattern",
    "GroupPattern",
    "IriNode",
    "LiteralNode",
    "OptionalPattern",
    "Pattern",
    "SelectQuery",
    "ServicePattern",
    "TriplePattern",
    "UnionPattern",
]


@dataclass(frozen=True)
class IriNode:
    """Named node."""

    value: str


@dataclass(frozen=True)
class LiteralNode:
    """Literal with its language tag and datatype."""

    value: str
    language: str = ""
    datatype: Optional[IriNode] = None


@dataclass(frozen=True)
class BlankNodeNode:
    """Labelled blank node."""

    label: str


AstTerm = Union[IriNode, LiteralNode, BlankNodeNode, Variable]


@dataclass(frozen=True)
class TriplePattern:
    subject: AstTerm
    predicate: AstTerm
    object: AstTerm


@dataclass(frozen=True)
class BgpPattern:
    """Basic graph pattern: a run of required triples."""

    triples: tuple[TriplePattern, ...]


@dataclass(frozen=True)
class OptionalPattern:
    patterns: tuple[Pattern, ...]


@dataclass(frozen=True)
class GroupPattern:
    patterns: tuple[Pattern, ...]


@dataclass(frozen=True)
class UnionPattern:
    """Alternatives; each entry is one branch."""

    patterns: tuple[Pattern, ...]


@dataclass(frozen=True)
class FilterPattern:
    """Raw filter expression, kept verbatim."""

    expression: str


@dataclass(frozen=True)
class ServicePattern:
    """Federated ``SERVICE`` call; opaque to analysis."""

    endpoint: str
    silent: bool = False


Pattern = Union[
    BgpPattern,
    OptionalPattern,
    GroupPattern,
    UnionPattern,
    FilterPattern,
    ServicePattern,
]


@dataclass
class SelectQuery:
    """Root node of a SELECT query.

    ``where`` and ``prefixes`` are optional so hand-built trees can omit
    them; every consumer treats ``None`` as empty.
    """

    variables: list[Variable] = field(default_factory=list)
    where: Optional[list[Pattern]] = field(default_factory=list)
    prefixes: Optional[dict[str, str]] = field(default_factory=dict)
    limit: Optional[int] = None
