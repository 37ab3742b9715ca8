"""Render a :class:`~sparqlgate.query_ast.SelectQuery` as SPARQL text.

Layout mirrors what most SPARQL tooling emits::

    PREFIX ex: <http://example.org/schema#>
    SELECT ?id ?name WHERE {
      ?id ex:name ?name .
      OPTIONAL {
        ?id ex:age ?age .
      }
      FILTER(?age >= 18)
    }
    LIMIT 10
"""

from __future__ import annotations

import re

from rdflib import Variable

from sparqlgate.errors import UnsupportedTermKind
from sparqlgate.query_ast import (
    AstTerm,
    BgpPattern,
    BlankNodeNode,
    FilterPattern,
    GroupPattern,
    IriNode,
    LiteralNode,
    OptionalPattern,
    Pattern,
    SelectQuery,
    ServicePattern,
    UnionPattern,
)
from sparqlgate.terms import XSD

__all__ = ["SparqlGenerator"]

# Conservative PN_LOCAL: anything else is written as a full <IRI>.
_LOCAL_NAME = re.compile(r"^([A-Za-z0-9_]([A-Za-z0-9_.\-]*[A-Za-z0-9_\-])?)?$")

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


class SparqlGenerator:
    """Serialize query trees to text.

    Attributes:
        indent: String used for one level of indentation
    """

    def __init__(self, indent: str = "  ") -> None:
        self.indent = indent

    def stringify(self, query: SelectQuery) -> str:
        """Return the SPARQL text for *query*."""
        prefixes = query.prefixes or {}
        lines = [f"PREFIX {short}: <{ns}>" for short, ns in prefixes.items()]

        projection = " ".join(var.n3() for var in query.variables) or "*"
        lines.append(f"SELECT {projection} WHERE {{")
        for pattern in query.where or []:
            lines.extend(self._pattern(pattern, prefixes, 1))
        lines.append("}")

        if query.limit is not None:
            lines.append(f"LIMIT {int(query.limit)}")
        return "\n".join(lines)

    # ── patterns ─────────────────────────────────────────────────────

    def _pattern(
        self,
        pattern: Pattern,
        prefixes: dict[str, str],
        depth: int,
    ) -> list[str]:
        pad = self.indent * depth
        if isinstance(pattern, BgpPattern):
            return [
                f"{pad}{self.term(t.subject, prefixes)} "
                f"{self.term(t.predicate, prefixes)} "
                f"{self.term(t.object, prefixes)} ."
                for t in pattern.triples
            ]
        if isinstance(pattern, OptionalPattern):
            return self._block(f"{pad}OPTIONAL {{", pattern.patterns, prefixes, depth)
        if isinstance(pattern, GroupPattern):
            return self._block(f"{pad}{{", pattern.patterns, prefixes, depth)
        if isinstance(pattern, UnionPattern):
            lines: list[str] = []
            for i, branch in enumerate(pattern.patterns):
                if i:
                    lines.append(f"{pad}UNION")
                lines.extend(self._block(f"{pad}{{", (branch,), prefixes, depth))
            return lines
        if isinstance(pattern, FilterPattern):
            return [f"{pad}FILTER({pattern.expression})"]
        if isinstance(pattern, ServicePattern):
            silent = "SILENT " if pattern.silent else ""
            return [f"{pad}SERVICE {silent}<{pattern.endpoint}> {{ }}"]
        raise TypeError(f"Unknown pattern node: {type(pattern).__name__}")

    def _block(
        self,
        opener: str,
        patterns: tuple[Pattern, ...],
        prefixes: dict[str, str],
        depth: int,
    ) -> list[str]:
        lines = [opener]
        for inner in patterns:
            lines.extend(self._pattern(inner, prefixes, depth + 1))
        lines.append(f"{self.indent * depth}}}")
        return lines

    # ── terms ────────────────────────────────────────────────────────

    def term(self, node: AstTerm, prefixes: dict[str, str]) -> str:
        """Render one term node."""
        if isinstance(node, Variable):
            return node.n3()
        if isinstance(node, IriNode):
            return self.iri(node.value, prefixes)
        if isinstance(node, LiteralNode):
            quoted = '"' + "".join(_ESCAPES.get(c, c) for c in node.value) + '"'
            if node.language:
                return f"{quoted}@{node.language}"
            if node.datatype is not None and node.datatype.value != str(XSD.string):
                return f"{quoted}^^{self.iri(node.datatype.value, prefixes)}"
            return quoted
        if isinstance(node, BlankNodeNode):
            return f"_:{node.label}"
        raise UnsupportedTermKind(type(node).__name__)

    @staticmethod
    def iri(value: str, prefixes: dict[str, str]) -> str:
        """Compact *value* with the longest matching prefix, else ``<value>``."""
        best: tuple[str, str] | None = None
        for short, ns in prefixes.items():
            if ns and value.startswith(ns) and (best is None or len(ns) > len(best[1])):
                best = (short, ns)
        if best is not None:
            local = value[len(best[1]):]
            if _LOCAL_NAME.match(local):
                return f"{best[0]}:{local}"
        return f"<{value}>"
