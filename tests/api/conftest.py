"""Pytest fixtures for API tests."""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from csvstage.api.main import create_app
from csvstage.core.config import Settings
from csvstage.staging.service import StagingService


@pytest.fixture
def test_client(settings: Settings, service: StagingService) -> Generator[TestClient]:
    """FastAPI test client backed by the in-memory service.

    The injected service keeps the lifespan from connecting to MongoDB.
    """
    app = create_app(settings=settings, service=service)

    with TestClient(app) as client:
        yield client


@pytest.fixture
def staged(test_client: TestClient) -> dict:
    """Three valid rows and one rejected row staged for customers."""
    body = {
        "valid": [
            {"_id": "a", "name": "Ada", "email": "ada@example.com", "age": "36"},
            {"_id": "b", "name": "Bob", "email": "bob@example.com", "age": "41"},
            {"_id": "c", "name": "Cy", "email": "cy@example.com", "age": "29"},
        ],
        "invalid": [{"_id": "x", "name": "", "errors": ["name is required"]}],
    }
    response = test_client.post("/api/v1/staging/customers", json=body)
    assert response.status_code == 200
    return body
