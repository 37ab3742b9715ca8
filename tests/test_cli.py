"""Tests for the command line interface."""

from __future__ import annotations

import json
import logging
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from sparqlgate.cli import main
from sparqlgate.demo import DATA_TTL

NAMES_QUERY = (
    "PREFIX ex: <http://example.org/schema#> "
    "SELECT ?name ?age WHERE { ?p ex:name ?name OPTIONAL { ?p ex:age ?age } }"
)


@pytest.fixture(autouse=True)
def restore_logging():
    """The group callback reconfigures logging; undo it after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    package_level = logging.getLogger("sparqlgate").level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("sparqlgate").setLevel(package_level)


@pytest.fixture()
def runner():
    return CliRunner()


@pytest.fixture()
def people_file(tmp_path):
    path = tmp_path / "people.ttl"
    path.write_text(DATA_TTL)
    return str(path)


def test_query_against_data_files(runner, people_file):
    result = runner.invoke(main, ["query", "--data", people_file, NAMES_QUERY])
    assert result.exit_code == 0, result.output

    rows = json.loads(result.output)
    names = sorted(row["name"]["value"] for row in rows)
    assert names == ["Alice", "Bob", "Carol", "Dave"]

    alice = next(row for row in rows if row["name"]["value"] == "Alice")
    assert alice["name"] == {"type": "literal", "value": "Alice"}
    assert alice["age"] == {
        "type": "literal",
        "value": "34",
        "datatype": "http://www.w3.org/2001/XMLSchema#integer",
    }


def test_query_from_file(runner, people_file, tmp_path):
    query_file = tmp_path / "names.rq"
    query_file.write_text(NAMES_QUERY)
    result = runner.invoke(main, ["--verbose", "query", "-d", people_file, "-f", str(query_file)])
    assert result.exit_code == 0, result.output


def test_query_requires_text(runner, people_file):
    result = runner.invoke(main, ["query", "--data", people_file])
    assert result.exit_code == 2
    assert "Give the query" in result.output


def test_query_requires_a_source(runner):
    result = runner.invoke(main, ["query", NAMES_QUERY])
    assert result.exit_code == 2
    assert "--endpoint" in result.output


def test_query_errors_abort(runner, people_file):
    result = runner.invoke(main, ["query", "--engine", "endpoint", "--data", people_file, NAMES_QUERY])
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_operations_demo(runner):
    result = runner.invoke(main, ["operations", "--demo"])
    assert result.exit_code == 0
    assert result.output.strip() == "person.list\tList people with their names and ages"


def test_operations_from_registry_path(runner):
    result = runner.invoke(main, ["operations", "--registry", "sparqlgate.demo:registry"])
    assert result.exit_code == 0
    assert "person.list" in result.output


def test_operations_without_registry(runner):
    result = runner.invoke(main, ["operations"], env={"SPARQLGATE_REGISTRY": ""})
    assert result.exit_code == 2


@patch("flask.Flask.run")
def test_serve_demo(mock_run, runner):
    result = runner.invoke(main, ["serve", "--demo", "--port", "5050"])
    assert result.exit_code == 0, result.output
    assert "1 operation(s)" in result.output
    mock_run.assert_called_once_with(host="127.0.0.1", port=5050, debug=False)
