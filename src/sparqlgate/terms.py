"""RDF term helpers.

Terms are plain rdflib terms, so rows coming back from any engine can be
handed straight to rdflib graphs and to the shape validator:

* :func:`iri` → :class:`rdflib.URIRef`
* :func:`v` → :class:`rdflib.Variable`
* :func:`lit_str` / :func:`lit_typed` → :class:`rdflib.Literal`
* :func:`b` → :class:`rdflib.BNode`

Example::

    >>> from sparqlgate.terms import iri, v, lit_typed, XSD
    >>> lit_typed(42, XSD.int).n3()
    '"42"^^<http://www.w3.org/2001/XMLSchema#int>'
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import NamedTuple, Optional, Union

from rdflib import BNode, Literal, URIRef, Variable
from rdflib.term import Node

__all__ = [
    "XSD",
    "BindingRow",
    "Quad",
    "b",
    "iri",
    "lit_str",
    "lit_typed",
    "term_kind",
    "v",
]

# One solution of a SELECT query: variable name → term.
BindingRow = dict[str, Node]

SubjectTerm = Union[Variable, URIRef, BNode]
PredicateTerm = Union[Variable, URIRef]
ObjectTerm = Union[Variable, URIRef, BNode, Literal]


class Quad(NamedTuple):
    """A triple plus an optional named graph."""

    subject: Node
    predicate: Node
    object: Node
    graph: Optional[Node] = None


def iri(value: str) -> URIRef:
    """Create a named node."""
    return URIRef(value)


def v(name: str) -> Variable:
    """Create a query variable (without the leading ``?``)."""
    return Variable(name.lstrip("?$"))


def b(label: str | None = None) -> BNode:
    """Create a blank node; a fresh label is generated when omitted."""
    return BNode(label) if label else BNode()


def lit_str(value: str, language_or_datatype: str | URIRef | None = None) -> Literal:
    """Create a string literal with an optional language tag or datatype.

    A plain ``str`` second argument is a language tag; a
    :class:`~rdflib.URIRef` is a datatype.
    """
    if language_or_datatype is None:
        return Literal(value)
    if isinstance(language_or_datatype, URIRef):
        return Literal(value, datatype=language_or_datatype)
    return Literal(value, lang=language_or_datatype)


def lit_typed(value: str | int | float | bool, datatype: URIRef) -> Literal:
    """Create a typed literal, keeping the lexical form of *value*."""
    if isinstance(value, bool):
        lexical = "true" if value else "false"
    else:
        lexical = str(value)
    return Literal(lexical, datatype=datatype)


def term_kind(term: object) -> str:
    """Return the RDF/JS-style kind name of *term*."""
    # Variable and URIRef are both str subclasses; test the specific kinds first.
    if isinstance(term, Variable):
        return "Variable"
    if isinstance(term, URIRef):
        return "NamedNode"
    if isinstance(term, Literal):
        return "Literal"
    if isinstance(term, BNode):
        return "BlankNode"
    return getattr(term, "termType", None) or type(term).__name__


_XSD_NS = "http://www.w3.org/2001/XMLSchema#"

XSD = SimpleNamespace(
    string=iri(f"{_XSD_NS}string"),
    int=iri(f"{_XSD_NS}int"),
    integer=iri(f"{_XSD_NS}integer"),
    decimal=iri(f"{_XSD_NS}decimal"),
    float=iri(f"{_XSD_NS}float"),
    double=iri(f"{_XSD_NS}double"),
    boolean=iri(f"{_XSD_NS}boolean"),
    dateTime=iri(f"{_XSD_NS}dateTime"),
    date=iri(f"{_XSD_NS}date"),
)
