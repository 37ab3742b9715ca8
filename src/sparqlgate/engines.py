"""Query execution backends and row normalization.

Two interchangeable engines implement :class:`QueryEngine`:

* :class:`EndpointEngine` – a remote SPARQL endpoint reached through
  :class:`~sparqlgate.sparql_helper.SparqlHelper` (SELECT, ASK,
  CONSTRUCT).  The whole JSON answer arrives at once and is normalized
  record by record.
* :class:`GraphEngine` – an in-memory rdflib dataset (SELECT only).
  rdflib evaluates lazily, so rows are transcoded as they stream.

An :class:`EngineProvider` is built once by the host application and
handed to the pipeline.  It decides which engine serves a query (by
configuration, or by probing the endpoint once) and creates at most one
instance per engine kind.

Every failure raised while running a query surfaces as
:class:`~sparqlgate.errors.QueryExecutionFailed`.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Protocol, Union, runtime_checkable

from rdflib import BNode, Dataset, Graph, Literal, URIRef, Variable
from rdflib.term import Node
from rdflib.util import guess_format

from sparqlgate.errors import QueryExecutionFailed
from sparqlgate.sparql_helper import SparqlHelper, SparqlHelperError
from sparqlgate.terms import BindingRow

logger = logging.getLogger(__name__)

__all__ = [
    "ENGINE_KINDS",
    "EndpointEngine",
    "EngineProvider",
    "GraphEngine",
    "ProbeResult",
    "QueryEngine",
    "collect_rows",
    "execute",
    "get_default_provider",
    "rows_from_bindings",
    "rows_from_records",
    "to_term",
]

ENGINE_KINDS = ("endpoint", "graph")


@runtime_checkable
class QueryEngine(Protocol):
    """Capability every execution backend provides."""

    kind: str

    def select(self, query_text: str) -> Iterator[BindingRow]:
        """Run a SELECT query and return its rows."""
        ...

    def close(self) -> None:
        ...


# ── Row normalization ─────────────────────────────────────────────


def to_term(value: Any) -> Node:
    """Convert one result value into an rdflib term.

    rdflib terms pass through.  SPARQL JSON cells
    (``{"type": "uri", "value": ...}``) keep their kind, language, and
    datatype.  Any other value is best-effort: strings become literals,
    everything else a named node built from ``str(value)``.
    """
    if isinstance(value, Node):
        return value
    if isinstance(value, Mapping) and "type" in value and "value" in value:
        kind = value["type"]
        if kind == "uri":
            return URIRef(value["value"])
        if kind == "bnode":
            return BNode(value["value"])
        if value.get("xml:lang"):
            return Literal(value["value"], lang=value["xml:lang"])
        datatype = value.get("datatype")
        return Literal(value["value"], datatype=URIRef(datatype) if datatype else None)
    if isinstance(value, str):
        return Literal(value)
    return URIRef(str(value))


def rows_from_records(result: Any) -> Iterator[BindingRow]:
    """Transcode a non-streaming result (a list of records or one record)."""
    if isinstance(result, Mapping):
        records: Iterable[Any] = [result]
    elif isinstance(result, (list, tuple)):
        records = result
    else:
        records = []

    for record in records:
        if isinstance(record, Mapping):
            yield {str(key): to_term(value) for key, value in record.items()}


def _binding_pairs(binding: Any) -> Iterable[tuple[Any, Any]]:
    if callable(getattr(binding, "items", None)):
        return binding.items()
    if isinstance(binding, Mapping):
        return ((key, binding[key]) for key in binding)
    if callable(getattr(binding, "asdict", None)):
        # rdflib ResultRow
        return binding.asdict().items()
    return vars(binding).items()


def rows_from_bindings(stream: Iterable[Any]) -> Iterator[BindingRow]:
    """Transcode a stream of binding-like objects.

    ``Variable`` keys become plain names; unbound (``None``) values are
    dropped.
    """
    for binding in stream:
        row: BindingRow = {}
        for key, term in _binding_pairs(binding):
            if term is None:
                continue
            name = str(key) if isinstance(key, (str, Variable)) else str(getattr(key, "value", key))
            row[name] = to_term(term)
        yield row


# ── Engines ───────────────────────────────────────────────────────


class EndpointEngine:
    """Remote SPARQL endpoint.

    Attributes:
        helper: The HTTP client used for every call
    """

    kind = "endpoint"

    def __init__(
        self,
        endpoint_url: str,
        *,
        use_post: bool = False,
        timeout: float = 30.0,
        max_retries: int = 3,
        helper: SparqlHelper | None = None,
    ) -> None:
        self.endpoint_url = endpoint_url
        self.helper = helper or SparqlHelper(
            endpoint_url,
            use_post=use_post,
            timeout=timeout,
            max_retries=max_retries,
        )

    def select(self, query_text: str) -> Iterator[BindingRow]:
        results = self.helper.select(query_text)
        bindings = results.get("results", {}).get("bindings", [])
        return rows_from_records(bindings)

    def ask(self, query_text: str) -> bool:
        return self.helper.ask(query_text)

    def construct(self, query_text: str) -> Graph:
        return self.helper.construct_graph(query_text)

    def close(self) -> None:
        self.helper.close()

    def __repr__(self) -> str:
        return f"EndpointEngine({self.endpoint_url!r})"


class GraphEngine:
    """In-memory rdflib dataset, optionally loaded from RDF files."""

    kind = "graph"

    def __init__(
        self,
        graph: Graph | None = None,
        sources: Iterable[Union[str, Path]] = (),
    ) -> None:
        self.graph = graph if graph is not None else Dataset(default_union=True)
        for source in sources:
            fmt = guess_format(str(source)) or "turtle"
            logger.info("Loading %s (%s) into graph engine", source, fmt)
            self.graph.parse(str(source), format=fmt)

    def select(self, query_text: str) -> Iterator[BindingRow]:
        result = self.graph.query(query_text)
        if result.type != "SELECT":
            raise ValueError(f"Expected a SELECT query, got {result.type}")
        return rows_from_bindings(result)

    def close(self) -> None:
        self.graph.close()

    def __repr__(self) -> str:
        return f"GraphEngine(triples={len(self.graph)})"


# ── Provider ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of checking whether the endpoint engine can be used."""

    available: bool
    endpoint_url: Optional[str] = None
    detail: str = ""


EngineFactory = Callable[[], QueryEngine]


class EngineProvider:
    """Selects and lazily instantiates execution engines.

    Parameters
    ----------
    mode:
        ``"endpoint"``, ``"graph"``, or ``"auto"`` (probe the endpoint
        once and fall back to the graph engine when it is unreachable).
    endpoint_url:
        SPARQL endpoint for the endpoint engine.
    data_files:
        RDF files loaded into the graph engine.
    graph:
        Pre-built rdflib graph for the graph engine.
    factories:
        Optional ``{kind: zero-arg callable}`` overriding how engines
        are created.
    """

    def __init__(
        self,
        mode: str = "auto",
        *,
        endpoint_url: str | None = None,
        data_files: Iterable[Union[str, Path]] = (),
        graph: Graph | None = None,
        use_post: bool = False,
        timeout: float = 30.0,
        probe_timeout: float = 5.0,
        factories: dict[str, EngineFactory] | None = None,
    ) -> None:
        if mode not in ("auto", *ENGINE_KINDS):
            raise ValueError(f"Unknown engine mode: {mode!r}")
        if mode == "endpoint" and not endpoint_url and "endpoint" not in (factories or {}):
            raise ValueError("Engine mode 'endpoint' requires an endpoint URL")

        self.mode = mode
        self.endpoint_url = endpoint_url
        self.data_files = [str(p) for p in data_files]
        self.use_post = use_post
        self.timeout = timeout
        self.probe_timeout = probe_timeout
        self._graph = graph
        self._factories: dict[str, EngineFactory] = {
            "endpoint": self._create_endpoint,
            "graph": self._create_graph,
            **(factories or {}),
        }
        self._instances: dict[str, QueryEngine] = {}
        self._probe: ProbeResult | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_env(cls) -> EngineProvider:
        """Build a provider from ``SPARQLGATE_ENGINE``, ``SPARQL_ENDPOINT``, etc."""
        files = os.getenv("DATA_FILES", "")
        return cls(
            mode=os.getenv("SPARQLGATE_ENGINE", "auto"),
            endpoint_url=os.getenv("SPARQL_ENDPOINT") or None,
            data_files=[f.strip() for f in files.split(",") if f.strip()],
            use_post=os.getenv("SPARQL_USE_POST", "0") == "1",
            timeout=float(os.getenv("SPARQL_TIMEOUT", "30")),
        )

    def probe(self) -> ProbeResult:
        """Check the endpoint once; later calls return the cached result."""
        with self._lock:
            if self._probe is None:
                self._probe = self._run_probe()
                logger.info(
                    "Endpoint probe: available=%s (%s)",
                    self._probe.available, self._probe.detail or self.endpoint_url,
                )
            return self._probe

    def _run_probe(self) -> ProbeResult:
        if not self.endpoint_url:
            return ProbeResult(False, None, "no endpoint configured")
        try:
            with SparqlHelper(
                self.endpoint_url,
                use_post=self.use_post,
                timeout=self.probe_timeout,
                max_retries=1,
            ) as helper:
                helper.ask("ASK {}")
        except SparqlHelperError as exc:
            return ProbeResult(False, self.endpoint_url, str(exc))
        return ProbeResult(True, self.endpoint_url)

    def preferred_kind(self) -> str:
        """Kind of engine that serves queries when the caller names none."""
        if self.mode != "auto":
            return self.mode
        return "endpoint" if self.probe().available else "graph"

    def get(self, kind: str | None = None) -> QueryEngine:
        """Return the shared engine of *kind*, creating it on first use."""
        kind = kind or self.preferred_kind()
        if kind not in self._factories:
            raise ValueError(f"Unknown engine kind: {kind!r}")
        with self._lock:
            engine = self._instances.get(kind)
            if engine is None:
                logger.info("Creating %s engine", kind)
                engine = self._factories[kind]()
                self._instances[kind] = engine
            return engine

    def close(self) -> None:
        """Dispose every engine created so far."""
        with self._lock:
            instances, self._instances = self._instances, {}
        for engine in instances.values():
            engine.close()

    def _create_endpoint(self) -> QueryEngine:
        if not self.endpoint_url:
            raise ValueError("No SPARQL endpoint configured")
        return EndpointEngine(
            self.endpoint_url, use_post=self.use_post, timeout=self.timeout,
        )

    def _create_graph(self) -> QueryEngine:
        return GraphEngine(graph=self._graph, sources=self.data_files)

    def __enter__(self) -> EngineProvider:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


_default_provider: EngineProvider | None = None
_default_lock = threading.Lock()


def get_default_provider() -> EngineProvider:
    """Process-wide provider configured from the environment."""
    global _default_provider
    with _default_lock:
        if _default_provider is None:
            _default_provider = EngineProvider.from_env()
        return _default_provider


# ── Execution ─────────────────────────────────────────────────────


def _query_text(query: Any) -> str:
    if isinstance(query, str):
        return query
    return query.to_query_text()


def execute(
    query: Any,
    engine: QueryEngine | None = None,
    provider: EngineProvider | None = None,
) -> Iterator[BindingRow]:
    """Run *query* (text or builder) and return a lazy row iterator.

    Parameters
    ----------
    query:
        SPARQL text or anything with ``to_query_text()``.
    engine:
        Explicit engine; when omitted the provider's preferred engine
        is used.
    provider:
        Engine provider; defaults to :func:`get_default_provider`.

    Raises
    ------
    QueryExecutionFailed
        If the engine cannot be obtained or the query fails, before or
        while rows stream.
    """
    text = _query_text(query)
    kind = getattr(engine, "kind", None)
    try:
        if engine is None:
            engine = (provider or get_default_provider()).get()
            kind = engine.kind
        stream = engine.select(text)
    except Exception as exc:
        logger.error("SPARQL query execution failed (engine=%s): %s\n%s", kind, exc, text)
        raise QueryExecutionFailed(f"SPARQL query execution failed: {exc}") from exc
    return _guarded(stream, text, kind)


def _guarded(stream: Iterator[BindingRow], text: str, kind: str | None) -> Iterator[BindingRow]:
    try:
        yield from stream
    except Exception as exc:
        logger.error("SPARQL result streaming failed (engine=%s): %s\n%s", kind, exc, text)
        raise QueryExecutionFailed(f"SPARQL query execution failed: {exc}") from exc


def collect_rows(
    query: Any,
    engine: QueryEngine | None = None,
    provider: EngineProvider | None = None,
) -> list[BindingRow]:
    """Run *query* and gather every row into a list."""
    return list(execute(query, engine=engine, provider=provider))
