"""Tests for the root and health endpoints."""


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "OK"


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_openapi_lists_prefixed_routes_only(client):
    paths = client.get("/openapi.json").json()["paths"]
    assert "/api/tasks" in paths
    assert "/api/auth/register" in paths
    assert "/tasks" not in paths
