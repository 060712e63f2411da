"""API-specific test fixtures."""

import pytest
from fastapi.testclient import TestClient

from eyedoo.api.routes.timelines import get_timeline_engine
from eyedoo.main import create_app


@pytest.fixture
def api_app(engine):
    """App with the timeline engine overridden by the in-memory test engine.

    The lifespan is not entered, so no process-wide store is created.
    """
    app = create_app()
    app.dependency_overrides[get_timeline_engine] = lambda: engine
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(api_app):
    return TestClient(api_app)
