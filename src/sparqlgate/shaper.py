"""Validate binding rows against the builder's OutputSpec and map them to DTOs.

Two entry points with different failure contracts:

* :func:`shape_one` – a failing row raises.
* :func:`shape_all` – a row that fails validation (or mapping) is logged
  and left out; only contract errors such as
  :class:`~sparqlgate.errors.MissingFocusNode` abort the batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Generic, Iterable, Optional, TypeVar

from sparqlgate.builder import OutputSpec, QueryBuilder
from sparqlgate.engines import EngineProvider, QueryEngine, execute
from sparqlgate.errors import MissingFocusNode, OutputSpecMissing
from sparqlgate.terms import BindingRow, Quad
from sparqlgate.validation import ShaclValidator, ShapeValidator

logger = logging.getLogger(__name__)

__all__ = [
    "RowOutcome",
    "require_output_spec",
    "run_typed_query",
    "shape_all",
    "shape_one",
    "shape_row",
]

T = TypeVar("T")


@dataclass
class RowOutcome(Generic[T]):
    """Result of pushing one row through the per-row steps.

    ``skipped`` names the step that rejected the row (``None`` when accepted).
    """

    row: BindingRow
    dto: Optional[T] = None
    skipped: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def accepted(self) -> bool:
        return self.skipped is None


def require_output_spec(builder: QueryBuilder, caller: str = "shaping") -> OutputSpec[Any]:
    """Return the builder's OutputSpec or raise :class:`OutputSpecMissing`."""
    spec = builder.get_output_spec()
    if spec is None:
        raise OutputSpecMissing(
            f"OutputSpec must be set on QueryBuilder before calling {caller}"
        )
    return spec


def shape_row(
    spec: OutputSpec[T],
    row: BindingRow,
    validator: ShapeValidator,
    quads: Optional[list[Quad]] = None,
) -> T:
    """Validate *row* around its focus node and map it.

    *quads* are rebuilt from the row unless the caller already has them.
    """
    if quads is None:
        quads = spec.build_quads(row)
    focus_node = row.get(spec.focus_node_var)
    if focus_node is None:
        raise MissingFocusNode(spec.focus_node_var)
    validator.validate(quads, spec.shape, focus_node)
    return spec.map_to_object(row)


def shape_one(
    builder: QueryBuilder,
    row: BindingRow,
    validator: ShapeValidator | None = None,
) -> Any:
    """Validate and map a single row.

    Raises:
        OutputSpecMissing: If the builder carries no OutputSpec
        MissingFocusNode: If the row does not bind the focus variable
        ShapeValidationError: If the row's local graph does not conform
    """
    spec = require_output_spec(builder, "shape_one")
    return shape_row(spec, row, validator or ShaclValidator())


def shape_all(
    builder: QueryBuilder,
    rows: Iterable[BindingRow],
    validator: ShapeValidator | None = None,
) -> list[Any]:
    """Validate and map every row, in order, leaving out rows that fail.

    Raises:
        OutputSpecMissing: If the builder carries no OutputSpec
        MissingFocusNode: If any row does not bind the focus variable
    """
    spec = require_output_spec(builder, "shape_all")
    validator = validator or ShaclValidator()

    results = []
    for row in rows:
        try:
            results.append(shape_row(spec, row, validator))
        except MissingFocusNode:
            raise
        except Exception as exc:
            logger.warning("Shape validation failed for row: %s", exc)
    return results


def run_typed_query(
    builder: QueryBuilder,
    engine: QueryEngine | None = None,
    provider: EngineProvider | None = None,
    validator: ShapeValidator | None = None,
) -> list[Any]:
    """Execute *builder*'s query and return the validated DTOs."""
    require_output_spec(builder, "run_typed_query")
    rows = execute(builder, engine=engine, provider=provider)
    return shape_all(builder, rows, validator=validator)
