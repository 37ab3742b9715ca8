"""Tests for the query, operations, and health routes."""

from __future__ import annotations

import logging

import pytest

from sparqlgate.backend.app import create_app, load_registry
from sparqlgate.backend.config import TestConfig
from sparqlgate.demo import SHAPES_TTL, demo_provider, demo_validator, registry


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok", "operations": 1}


def test_operations(client):
    resp = client.get("/api/operations")
    assert resp.status_code == 200
    assert resp.get_json() == [
        {"name": "person.list", "description": "List people with their names and ages"},
    ]


def test_query_success(client):
    resp = client.post("/api/query", json={"operation": "person.list", "params": {"limit": 10}})
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["meta"] == {"operation": "person.list"}
    assert sorted(p["name"] for p in data["data"]) == ["Alice", "Bob", "Dave"]


@pytest.mark.parametrize("method", ["get", "put", "delete", "patch"])
def test_query_other_methods(client, method):
    resp = getattr(client, method)("/api/query")
    assert resp.status_code == 405
    assert resp.get_json()["error"]["name"] == "MethodNotAllowed"


def test_query_invalid_json(client):
    resp = client.post("/api/query", data="not json", content_type="application/json")
    assert resp.status_code == 400
    assert resp.get_json()["error"]["name"] == "ValidationError"


def test_query_unknown_operation(client):
    resp = client.post("/api/query", json={"operation": "person.delete"})
    assert resp.status_code == 404
    assert resp.get_json()["meta"] == {"operation": "person.delete"}


def test_query_invalid_params(client):
    resp = client.post("/api/query", json={"operation": "person.list", "params": {"limit": 0}})
    assert resp.status_code == 400
    assert resp.get_json()["error"]["issues"][0]["loc"] == ["limit"]


def test_unknown_route(client):
    resp = client.get("/api/nothing-here")
    assert resp.status_code == 404
    assert resp.get_json()["error"]["name"] == "NotFound"


def test_tenant_header_reaches_context():
    seen = []
    application = create_app(
        TestConfig,
        registry=registry,
        provider=demo_provider(),
        validator=demo_validator(),
        authorize_operation=lambda check: seen.append(check.ctx),
    )
    application.test_client().post(
        "/api/query",
        json={"operation": "person.list"},
        headers={"X-Tenant-Id": "acme", "X-User-Id": "u-1"},
    )
    assert seen[0].tenant_id == "acme"
    assert seen[0].user_id == "u-1"


def test_allowed_namespaces_from_config():
    class LockedConfig(TestConfig):
        ALLOWED_NAMESPACES = ["http://other.example/"]

    application = create_app(
        LockedConfig,
        registry=registry,
        provider=demo_provider(),
        validator=demo_validator(),
    )
    resp = application.test_client().post("/api/query", json={"operation": "person.list"})
    assert resp.status_code == 403
    assert resp.get_json()["error"]["name"] == "Forbidden"


def test_registry_from_config():
    class RegistryConfig(TestConfig):
        REGISTRY = "sparqlgate.demo:registry"

    application = create_app(RegistryConfig)
    resp = application.test_client().get("/api/operations")
    assert [op["name"] for op in resp.get_json()] == ["person.list"]


def test_load_registry_errors():
    with pytest.raises(ValueError, match="module:attribute"):
        load_registry("sparqlgate.demo")
    with pytest.raises(TypeError, match="not a registry"):
        load_registry("sparqlgate.demo:PERSON_SHAPE")
    with pytest.raises(AttributeError):
        load_registry("sparqlgate.demo:missing")


def test_warns_when_no_shapes_are_loaded(caplog):
    with caplog.at_level(logging.WARNING, logger="sparqlgate.backend.app"):
        create_app(TestConfig, registry=registry, provider=demo_provider())
    assert any("No SHAPES_FILE configured" in r.getMessage() for r in caplog.records)


def test_no_shapes_warning_with_explicit_validator(caplog):
    with caplog.at_level(logging.WARNING, logger="sparqlgate.backend.app"):
        create_app(TestConfig, registry=registry, provider=demo_provider(), validator=demo_validator())
    assert not any("No SHAPES_FILE configured" in r.getMessage() for r in caplog.records)


def test_shapes_file_silences_warning(caplog, tmp_path):
    path = tmp_path / "shapes.ttl"
    path.write_text(SHAPES_TTL)

    class ShapesConfig(TestConfig):
        SHAPES_FILE = str(path)

    with caplog.at_level(logging.WARNING, logger="sparqlgate.backend.app"):
        application = create_app(ShapesConfig, registry=registry, provider=demo_provider())
    assert not any("No SHAPES_FILE configured" in r.getMessage() for r in caplog.records)

    resp = application.test_client().post("/api/query", json={"operation": "person.list"})
    assert sorted(p["name"] for p in resp.get_json()["data"]) == ["Alice", "Bob", "Dave"]
