"""Tests for the namespace authorization policies."""

from __future__ import annotations

import pytest
from rdflib import BNode, Literal, URIRef
from rdflib.namespace import RDF

from sparqlgate.auth import (
    AuthorizeOperationInput,
    AuthorizeRowInput,
    NamespacePolicy,
    QueryContext,
    authorize_operation_by_namespace,
    authorize_row_by_quads,
    default_allowed_namespaces,
)
from sparqlgate.errors import Forbidden
from sparqlgate.query_ast import SelectQuery
from sparqlgate.terms import Quad


def _op_check(used_iris, ctx=None):
    return AuthorizeOperationInput(
        ctx=ctx or QueryContext(),
        operation="test.op",
        params={},
        ast=SelectQuery(),
        used_iris=set(used_iris),
        prefixes={},
    )


def _row_check(quads, ctx=None):
    return AuthorizeRowInput(
        ctx=ctx or QueryContext(),
        operation="test.op",
        params={},
        row={},
        ast=SelectQuery(),
        used_iris=set(),
        prefixes={},
        quads=quads,
    )


def test_default_namespaces_without_tenant():
    allowed = default_allowed_namespaces(QueryContext())
    assert allowed[0] == "http://example.org/"
    assert str(RDF) in allowed


def test_default_namespaces_for_tenant():
    allowed = default_allowed_namespaces(QueryContext(tenant_id="acme corp"))
    assert allowed[0] == "https://data.example.com/acme%20corp/"


def test_operation_rejects_foreign_namespace():
    policy = NamespacePolicy(["http://example.org/"])
    policy.authorize_operation(_op_check({"http://example.org/a"}))

    with pytest.raises(Forbidden) as excinfo:
        policy.authorize_operation(_op_check({"http://example.org/a", "http://forbidden.example/x"}))
    assert excinfo.value.status == 403
    assert excinfo.value.message == "Forbidden namespace in query: http://forbidden.example/x"


def test_status_hint_is_configurable():
    policy = NamespacePolicy(["http://example.org/"], status=401)
    with pytest.raises(Forbidden) as excinfo:
        policy.authorize_operation(_op_check({"urn:x"}))
    assert excinfo.value.status == 401


def test_row_checks_predicate_and_graph():
    policy = NamespacePolicy(["http://example.org/"])
    subject = URIRef("http://example.org/s")

    policy.authorize_row(_row_check([
        Quad(subject, URIRef("http://example.org/p"), Literal("x")),
        Quad(BNode(), URIRef("http://example.org/p"), URIRef("http://elsewhere.example/o")),
    ]))

    with pytest.raises(Forbidden, match="Forbidden predicate: http://elsewhere.example/p"):
        policy.authorize_row(_row_check([Quad(subject, URIRef("http://elsewhere.example/p"), Literal("x"))]))

    with pytest.raises(Forbidden, match="Forbidden graph: http://elsewhere.example/g"):
        policy.authorize_row(_row_check([
            Quad(subject, URIRef("http://example.org/p"), Literal("x"), URIRef("http://elsewhere.example/g")),
        ]))


def test_namespaces_from_context():
    policy = NamespacePolicy(lambda ctx: [f"http://example.org/{ctx.tenant_id}/"])
    tenant_a = QueryContext(tenant_id="a")

    policy.authorize_operation(_op_check({"http://example.org/a/thing"}, tenant_a))
    with pytest.raises(Forbidden):
        policy.authorize_operation(_op_check({"http://example.org/b/thing"}, tenant_a))


def test_module_level_hooks_use_defaults():
    authorize_operation_by_namespace(_op_check({"http://example.org/x", str(RDF.type)}))
    with pytest.raises(Forbidden):
        authorize_operation_by_namespace(_op_check({"http://forbidden.example/x"}))

    authorize_row_by_quads(_row_check([Quad(URIRef("http://example.org/s"), RDF.type, URIRef("http://example.org/T"))]))
    with pytest.raises(Forbidden):
        authorize_row_by_quads(_row_check([Quad(URIRef("http://example.org/s"), URIRef("urn:p"), Literal(1))]))
