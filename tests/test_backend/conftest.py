"""Fixtures for backend tests."""

from __future__ import annotations

import pytest

from sparqlgate.backend.app import create_app
from sparqlgate.backend.config import TestConfig
from sparqlgate.demo import demo_provider, demo_validator, registry


@pytest.fixture()
def app():
    """Create a test Flask application serving the people registry."""
    application = create_app(
        TestConfig,
        registry=registry,
        provider=demo_provider(),
        validator=demo_validator(),
    )
    yield application
    application.extensions["sparqlgate"].provider.close()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()
