"""
Pydantic models for the request/response wire format and the operation registry.

Wire format::

    request   {"operation": "person.list", "params": {...}}
    success   {"data": [...], "meta": {"operation": "person.list"}}
    error     {"error": {"name": ..., "message": ..., "issues": ...}, "meta": {"operation": ...}}
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

__all__ = [
    "ErrorBody",
    "ErrorEnvelope",
    "ErrorMeta",
    "QueryDef",
    "QueryRegistry",
    "RequestEnvelope",
    "SuccessEnvelope",
    "SuccessMeta",
]

P = TypeVar("P")
R = TypeVar("R")


class RequestEnvelope(BaseModel):
    """Inbound request body."""

    operation: Optional[str] = Field(None, description="Registered operation name")
    params: Any = Field(None, description="Operation parameters, validated per operation")


class SuccessMeta(BaseModel):
    operation: str


class SuccessEnvelope(BaseModel):
    """Response body for a served operation."""

    data: List[Any]
    meta: SuccessMeta


class ErrorBody(BaseModel):
    name: str
    message: str
    issues: Optional[Any] = None


class ErrorMeta(BaseModel):
    operation: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class ErrorEnvelope(BaseModel):
    """Response body for any failed request."""

    error: ErrorBody
    meta: Optional[ErrorMeta] = None


@dataclass
class QueryDef(Generic[P, R]):
    """One operation a server exposes.

    Attributes:
        params: Type the request ``params`` are validated against
            (a pydantic model or anything ``TypeAdapter`` accepts)
        result_item: Type each mapped row must satisfy
        build: ``(params, ctx) -> QueryBuilder`` carrying an OutputSpec
        description: Shown by the operation listing
    """

    params: Any
    result_item: Any
    build: Callable[[P, Any], Any]
    description: str = ""

    @cached_property
    def params_adapter(self) -> TypeAdapter[Any]:
        return TypeAdapter(self.params)

    @cached_property
    def result_adapter(self) -> TypeAdapter[Any]:
        return TypeAdapter(List[self.result_item])  # type: ignore[name-defined]

    def validate_params(self, raw: Any) -> P:
        """Validate request params; a missing value is treated as ``{}``."""
        return self.params_adapter.validate_python({} if raw is None else raw)

    def validate_result(self, items: List[Any]) -> List[Any]:
        """Validate mapped rows and return them JSON-ready."""
        parsed = self.result_adapter.validate_python(items)
        return self.result_adapter.dump_python(parsed, mode="json")


QueryRegistry = Dict[str, QueryDef[Any, Any]]
