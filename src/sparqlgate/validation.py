"""Shape validation of a row's reconstructed local graph.

The pipeline only needs "validate these quads against this shape for
this focus node, fail or succeed".  :class:`ShaclValidator` answers that
with pySHACL; :class:`AcceptAllValidator` accepts everything.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Protocol, Union

from pyshacl import validate as shacl_validate
from rdflib import Graph, URIRef
from rdflib.namespace import OWL, RDF, RDFS, SH
from rdflib.term import Node
from rdflib.util import guess_format

from sparqlgate.errors import ShapeValidationError
from sparqlgate.terms import Quad

logger = logging.getLogger(__name__)

__all__ = [
    "AcceptAllValidator",
    "ShaclValidator",
    "ShapeValidator",
]


class ShapeValidator(Protocol):
    def validate(self, quads: list[Quad], shape: Any, focus_node: Node) -> None:
        """Return normally if the quads conform, raise ShapeValidationError otherwise."""
        ...


class AcceptAllValidator:
    """Validator that accepts every row."""

    def validate(self, quads: list[Quad], shape: Any, focus_node: Node) -> None:
        logger.debug(
            "Skipping shape validation: shape=%s, focus=%s, quads=%d",
            shape, focus_node, len(quads),
        )


def _looks_like_iri(value: str) -> bool:
    return ":" in value and not any(c.isspace() for c in value)


def _is_file(value: str) -> bool:
    if "\n" in value or len(value) > 255:
        return False
    try:
        return Path(value).is_file()
    except (OSError, ValueError):
        return False


class ShaclValidator:
    """SHACL validation backed by pySHACL.

    The shape given to :meth:`validate` may be

    * an rdflib :class:`~rdflib.Graph` of shapes – every node shape in it applies,
    * Turtle text – parsed, then as above,
    * a shape IRI – looked up in the shapes graph given at construction.

    The focus node is pinned onto the selected shapes with
    ``sh:targetNode``; the declared targets of every shape are dropped,
    so only the selected shapes apply and only to that node.

    Attributes:
        shapes_graph: Shapes available for IRI lookups (may be ``None``)
        inference: pySHACL inference option (``None``, ``"rdfs"``, ...)
    """

    def __init__(
        self,
        shapes: Union[Graph, str, Path, None] = None,
        *,
        inference: str | None = None,
    ) -> None:
        self.shapes_graph = self._load(shapes) if shapes is not None else None
        self.inference = inference

    @staticmethod
    def _load(shapes: Union[Graph, str, Path]) -> Graph:
        if isinstance(shapes, Graph):
            return shapes
        graph = Graph()
        text = str(shapes)
        if isinstance(shapes, Path) or _is_file(text):
            graph.parse(text, format=guess_format(text) or "turtle")
        else:
            graph.parse(data=text, format="turtle")
        return graph

    def _resolve(self, shape: Any) -> tuple[Graph, list[Node]]:
        if isinstance(shape, Graph):
            graph = shape
        elif isinstance(shape, str) and _looks_like_iri(shape):
            if self.shapes_graph is None:
                raise LookupError(f"No shapes graph loaded to resolve {shape}")
            node = URIRef(shape)
            if (node, None, None) not in self.shapes_graph:
                raise LookupError(f"Shape not found: {shape}")
            return self.shapes_graph, [node]
        elif isinstance(shape, str):
            graph = self._load(shape)
        else:
            raise TypeError(f"Unsupported shape reference: {type(shape).__name__}")
        return graph, list(graph.subjects(RDF.type, SH.NodeShape))

    def validate(self, quads: list[Quad], shape: Any, focus_node: Node) -> None:
        """Validate *quads* against *shape* for *focus_node*.

        Raises:
            ShapeValidationError: If the local graph does not conform
        """
        shapes, shape_nodes = self._resolve(shape)
        pinned = _pin(shapes, shape_nodes, focus_node)

        data = Graph()
        for quad in quads:
            data.add((quad.subject, quad.predicate, quad.object))

        conforms, results_graph, _ = shacl_validate(
            data,
            shacl_graph=pinned,
            inference=self.inference,
            allow_warnings=True,
        )
        if conforms:
            return

        violations = list(_violations(results_graph))
        raise ShapeValidationError(
            f"SHACL validation failed for {focus_node.n3()}: "
            f"{len(violations)} violation(s)",
            violations,
        )


_TARGET_PREDICATES = frozenset({
    SH.target,
    SH.targetClass,
    SH.targetNode,
    SH.targetObjectsOf,
    SH.targetSubjectsOf,
})
_IMPLICIT_CLASS_TYPES = frozenset({RDFS.Class, OWL.Class})


def _pin(shapes: Graph, selected: list[Node], focus_node: Node) -> Graph:
    """Copy *shapes* so that only *selected* apply, and only to *focus_node*.

    Declared targets and implicit class targets of every shape are
    dropped; shapes that are not selected stay in the graph for
    ``sh:node`` and ``sh:property`` references but select nothing.
    """
    shape_subjects = set(shapes.subjects(RDF.type, SH.NodeShape))
    shape_subjects.update(shapes.subjects(RDF.type, SH.PropertyShape))

    pinned = Graph()
    for prefix, namespace in shapes.namespaces():
        pinned.bind(prefix, namespace, override=False)
    for s, p, o in shapes:
        if p in _TARGET_PREDICATES:
            continue
        if p == RDF.type and o in _IMPLICIT_CLASS_TYPES and s in shape_subjects:
            continue
        pinned.add((s, p, o))

    for node in selected:
        pinned.add((node, SH.targetNode, focus_node))
    return pinned


def _violations(results: Graph) -> Iterable[dict[str, str]]:
    for result in results.subjects(RDF.type, SH.ValidationResult):
        entry = {}
        for key, predicate in (
            ("message", SH.resultMessage),
            ("path", SH.resultPath),
            ("focus_node", SH.focusNode),
            ("severity", SH.resultSeverity),
            ("constraint", SH.sourceConstraintComponent),
        ):
            value = results.value(result, predicate)
            if value is not None:
                entry[key] = str(value)
        yield entry
