"""
Tests for health check endpoints and error rendering.
"""

import pytest
from fastapi.testclient import TestClient

from app.core.config import settings


@pytest.mark.smoke
def test_health_check(client: TestClient) -> None:
    """Test basic health check."""
    response = client.get(f"{settings.API_V1_PREFIX}/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == settings.PROJECT_NAME
    assert data["version"] == settings.VERSION


def test_database_health_check(client: TestClient) -> None:
    """Test database health check."""
    response = client.get(f"{settings.API_V1_PREFIX}/health/db")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "ok"


@pytest.mark.smoke
def test_api_root(client: TestClient) -> None:
    response = client.get(f"{settings.API_V1_PREFIX}/")
    assert response.status_code == 200
    assert response.json()["docs"] == f"{settings.API_V1_PREFIX}/docs"


def test_errors_share_one_shape(client: TestClient) -> None:
    response = client.get(f"{settings.API_V1_PREFIX}/users/me")
    assert response.status_code == 401
    assert set(response.json()) == {"error", "message", "details"}
