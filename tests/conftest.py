"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient

from factories import make_services, make_settings


@pytest.fixture(scope="function")
def settings():
    """Create settings instance for testing."""
    return make_settings()


@pytest.fixture(scope="function")
def services(settings):
    """Workflow services backed by in-memory adapters."""
    return make_services(settings)


@pytest.fixture(scope="function")
def app(settings, services):
    """Create FastAPI application for testing."""
    from school_portal.main import create_app

    return create_app(settings, services)


@pytest.fixture(scope="function")
def client(app):
    """Create test client."""
    with TestClient(app) as client:
        yield client
