"""Shared fixtures for sparqlgate tests."""

from __future__ import annotations

import pytest

from sparqlgate.demo import demo_graph, demo_validator
from sparqlgate.engines import GraphEngine


class StaticEngine:
    """Engine returning canned rows and recording every query it receives."""

    kind = "static"

    def __init__(self, rows=(), error=None):
        self.rows = list(rows)
        self.error = error
        self.queries = []
        self.closed = False

    def select(self, query_text):
        self.queries.append(query_text)
        if self.error is not None:
            raise self.error
        return iter(self.rows)

    def close(self):
        self.closed = True


@pytest.fixture()
def static_engine():
    return StaticEngine


@pytest.fixture()
def people_engine():
    """Graph engine over the demo people dataset."""
    return GraphEngine(graph=demo_graph())


@pytest.fixture(scope="session")
def people_validator():
    return demo_validator()
