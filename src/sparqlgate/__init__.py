"""sparqlgate: typed SPARQL operations served behind a JSON envelope.

Main modules:
- builder: QueryBuilder and OutputSpec for composing SELECT queries
- engines: execution backends, the EngineProvider, and row normalization
- analyzer: identifier extraction from the query tree
- shaper: row validation against shapes and mapping to DTOs
- auth: authorization hooks and namespace allow-lists
- server: the framework-agnostic request handler
- backend: the Flask adapter
"""

from .analyzer import AstAnalysis, analyze, analyze_builder
from .auth import (
    AuthorizeOperationInput,
    AuthorizeRowInput,
    NamespacePolicy,
    QueryContext,
    authorize_operation_by_namespace,
    authorize_row_by_quads,
)
from .builder import OutputSpec, QueryBuilder
from .engines import (
    EndpointEngine,
    EngineProvider,
    GraphEngine,
    QueryEngine,
    collect_rows,
    execute,
)
from .errors import (
    Forbidden,
    MissingFocusNode,
    OutputSpecMissing,
    QueryExecutionFailed,
    ShapeValidationError,
    SparqlGateError,
    UnsupportedTermKind,
)
from .models import QueryDef, QueryRegistry
from .server import HandlerRequest, HandlerResponse, SparqlServer, create_sparql_server
from .shaper import RowOutcome, run_typed_query, shape_all, shape_one
from .terms import XSD, Quad, b, iri, lit_str, lit_typed, v
from .validation import AcceptAllValidator, ShaclValidator
from .version import VERSION

__all__ = [
    "VERSION",
    "XSD",
    "AcceptAllValidator",
    "AstAnalysis",
    "AuthorizeOperationInput",
    "AuthorizeRowInput",
    "EndpointEngine",
    "EngineProvider",
    "Forbidden",
    "GraphEngine",
    "HandlerRequest",
    "HandlerResponse",
    "MissingFocusNode",
    "NamespacePolicy",
    "OutputSpec",
    "OutputSpecMissing",
    "Quad",
    "QueryBuilder",
    "QueryContext",
    "QueryDef",
    "QueryEngine",
    "QueryExecutionFailed",
    "QueryRegistry",
    "RowOutcome",
    "ShaclValidator",
    "ShapeValidationError",
    "SparqlGateError",
    "SparqlServer",
    "UnsupportedTermKind",
    "analyze",
    "analyze_builder",
    "authorize_operation_by_namespace",
    "authorize_row_by_quads",
    "b",
    "collect_rows",
    "create_sparql_server",
    "execute",
    "iri",
    "lit_str",
    "lit_typed",
    "run_typed_query",
    "shape_all",
    "shape_one",
    "v",
]
