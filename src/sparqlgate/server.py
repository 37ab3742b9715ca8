"""Framework-agnostic request handler for typed SPARQL operations.

:meth:`SparqlServer.handle` takes a :class:`HandlerRequest` and always
returns a :class:`HandlerResponse` carrying a success or error envelope.
Per request it:

1. rejects anything but POST (405);
2. parses the envelope and resolves the operation (400 / 404);
3. validates params against the operation's type (400);
4. builds the query and extracts the identifiers it references;
5. runs the operation-level authorization hook;
6. executes the query;
7. for each row, in order: rebuilds quads, runs the row-level
   authorization hook, validates and maps the row (failing rows are
   logged and dropped);
8. validates the collected DTOs against the result type (400).

Host adapters (see :mod:`sparqlgate.backend`) only translate their own
request and response objects.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Union

from pydantic import ValidationError

from sparqlgate.analyzer import AstAnalysis, analyze
from sparqlgate.auth import AuthorizeOperationInput, AuthorizeRowInput, QueryContext
from sparqlgate.builder import OutputSpec
from sparqlgate.engines import EngineProvider, QueryEngine, execute
from sparqlgate.errors import MethodNotAllowed, OperationNotFound, SparqlGateError
from sparqlgate.models import (
    ErrorBody,
    ErrorEnvelope,
    ErrorMeta,
    QueryRegistry,
    RequestEnvelope,
    SuccessEnvelope,
    SuccessMeta,
)
from sparqlgate.shaper import RowOutcome, require_output_spec, shape_row
from sparqlgate.terms import BindingRow
from sparqlgate.validation import ShaclValidator, ShapeValidator

logger = logging.getLogger(__name__)

__all__ = [
    "HandlerRequest",
    "HandlerResponse",
    "SparqlServer",
    "create_sparql_server",
]

JSON_HEADERS = {"content-type": "application/json"}

AuthorizeOperation = Callable[[AuthorizeOperationInput], None]
AuthorizeRow = Callable[[AuthorizeRowInput], None]


@dataclass
class HandlerRequest:
    """Transport-neutral inbound request.

    ``body`` is raw JSON text/bytes, or an already decoded object.
    """

    method: str
    body: Union[bytes, str, Mapping[str, Any], None] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    context: Optional[QueryContext] = None


@dataclass
class HandlerResponse:
    status: int
    body: dict[str, Any]
    headers: dict[str, str] = field(default_factory=lambda: dict(JSON_HEADERS))

    def json(self) -> dict[str, Any]:
        return self.body

    @property
    def text(self) -> str:
        return json.dumps(self.body)


class SparqlServer:
    """Serves the operations of a :data:`~sparqlgate.models.QueryRegistry`.

    Parameters
    ----------
    registry:
        Operation name → :class:`~sparqlgate.models.QueryDef`.
    authorize_operation, authorize_row:
        Optional authorization hooks; they reject by raising.
    engine:
        Explicit engine for every query.
    provider:
        Engine provider used when *engine* is not given.
    validator:
        Shape validator (default :class:`~sparqlgate.validation.ShaclValidator`).
    logger:
        Optional callable receiving every caught exception, both
        dropped rows and failed requests.
    """

    def __init__(
        self,
        registry: QueryRegistry,
        *,
        authorize_operation: AuthorizeOperation | None = None,
        authorize_row: AuthorizeRow | None = None,
        engine: QueryEngine | None = None,
        provider: EngineProvider | None = None,
        validator: ShapeValidator | None = None,
        logger: Callable[[BaseException], None] | None = None,
    ) -> None:
        self.registry = registry
        self.authorize_operation = authorize_operation
        self.authorize_row = authorize_row
        self.engine = engine
        self.provider = provider
        self.validator = validator or ShaclValidator()
        self.log_hook = logger

    def operations(self) -> list[str]:
        return sorted(self.registry)

    def handle(self, request: HandlerRequest) -> HandlerResponse:
        """Serve one request; never raises."""
        if request.method.upper() != "POST":
            return self._render_error(MethodNotAllowed("Use POST"), operation=None)

        operation = ""
        try:
            envelope = self._parse_envelope(request.body)
            operation = envelope.operation or ""
            definition = self.registry.get(operation)
            if definition is None:
                raise OperationNotFound(
                    f"Unknown operation: {operation}" if operation else "Missing operation"
                )

            params = definition.validate_params(envelope.params)
            ctx = request.context or QueryContext()
            if ctx.request is None:
                ctx.request = request

            builder = definition.build(params, ctx)
            analysis = analyze(builder.to_ast())

            if self.authorize_operation is not None:
                self.authorize_operation(AuthorizeOperationInput(
                    ctx=ctx,
                    operation=operation,
                    params=params,
                    ast=analysis.ast,
                    used_iris=analysis.used_iris,
                    prefixes=analysis.prefixes,
                ))

            rows = execute(builder, engine=self.engine, provider=self.provider)
            spec = require_output_spec(builder, "serving a typed operation")

            results = []
            for row in rows:
                outcome = self.process_row(spec, row, ctx, operation, params, analysis)
                if outcome.accepted:
                    results.append(outcome.dto)
                else:
                    self._skip(outcome)

            data = definition.validate_result(results)
            body = SuccessEnvelope(data=data, meta=SuccessMeta(operation=operation))
            return HandlerResponse(status=200, body=body.model_dump(mode="json"))

        except Exception as exc:
            self._report(exc)
            return self._render_error(exc, operation=operation or None)

    def process_row(
        self,
        spec: OutputSpec[Any],
        row: BindingRow,
        ctx: QueryContext,
        operation: str,
        params: Any,
        analysis: AstAnalysis,
    ) -> RowOutcome[Any]:
        """Authorize, validate, and map one row; failures become a skipped outcome.

        ``skipped`` is ``"quads"``, ``"authorization"`` or ``"validation"``.
        """
        try:
            quads = spec.build_quads(row)
        except Exception as exc:
            return RowOutcome(row=row, skipped="quads", error=exc)

        if self.authorize_row is not None:
            try:
                self.authorize_row(AuthorizeRowInput(
                    ctx=ctx,
                    operation=operation,
                    params=params,
                    row=row,
                    ast=analysis.ast,
                    used_iris=analysis.used_iris,
                    prefixes=analysis.prefixes,
                    quads=quads,
                ))
            except Exception as exc:
                return RowOutcome(row=row, skipped="authorization", error=exc)

        try:
            dto = shape_row(spec, row, self.validator, quads=quads)
        except Exception as exc:
            return RowOutcome(row=row, skipped="validation", error=exc)
        return RowOutcome(row=row, dto=dto)

    # ── helpers ──────────────────────────────────────────────────────

    @staticmethod
    def _parse_envelope(body: Any) -> RequestEnvelope:
        if isinstance(body, (bytes, str)):
            return RequestEnvelope.model_validate_json(body)
        return RequestEnvelope.model_validate(body)

    def _skip(self, outcome: RowOutcome[Any]) -> None:
        logger.warning("Row dropped at %s: %s", outcome.skipped, outcome.error)
        if self.log_hook is not None and outcome.error is not None:
            self.log_hook(outcome.error)

    def _report(self, exc: Exception) -> None:
        if _status_of(exc) >= 500:
            logger.exception("Request failed")
        else:
            logger.info("Request rejected: %s", exc)
        if self.log_hook is not None:
            self.log_hook(exc)

    @staticmethod
    def _render_error(exc: Exception, operation: str | None) -> HandlerResponse:
        issues = None
        if isinstance(exc, ValidationError):
            name = "ValidationError"
            issues = json.loads(exc.json())
        elif isinstance(exc, SparqlGateError):
            name = exc.name
        else:
            name = "ServerError"

        message = exc.message if isinstance(exc, SparqlGateError) else str(exc)
        envelope = ErrorEnvelope(
            error=ErrorBody(name=name, message=message, issues=issues),
            meta=ErrorMeta(operation=operation) if operation else None,
        )
        return HandlerResponse(
            status=_status_of(exc),
            body=envelope.model_dump(mode="json", exclude_none=True),
        )


def _status_of(exc: BaseException) -> int:
    hinted = getattr(exc, "status", None)
    if isinstance(hinted, int) and not isinstance(hinted, bool):
        return hinted
    if isinstance(exc, ValidationError):
        return 400
    return 500


def create_sparql_server(registry: QueryRegistry, **options: Any) -> SparqlServer:
    """Build a :class:`SparqlServer`; keyword options as for its constructor."""
    return SparqlServer(registry, **options)
