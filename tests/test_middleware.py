"""Middleware tests — request ID, CORS, error handling."""

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from selah.exceptions import StorageError
from selah.progression.store import ProgressionStore


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    """Request ID is auto-generated when not provided."""
    response = await client.get("/health")
    assert "x-request-id" in response.headers
    assert len(response.headers["x-request-id"]) == 36  # UUID format


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    """Custom request ID is echoed back in response."""
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


@pytest.mark.asyncio
async def test_cors_preflight(client: AsyncClient) -> None:
    """CORS preflight returns access-control-allow-origin for configured origin."""
    response = await client.options(
        "/api/v1/progression/levels",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


@pytest.mark.asyncio
async def test_cors_rejects_unknown_origin(client: AsyncClient) -> None:
    response = await client.options(
        "/api/v1/progression/levels",
        headers={
            "Origin": "http://evil.example",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert "access-control-allow-origin" not in response.headers


@pytest.mark.asyncio
async def test_404_returns_json(client: AsyncClient) -> None:
    """Unknown paths return 404 with JSON body."""
    response = await client.get("/nonexistent-path")
    assert response.status_code == 404
    assert response.headers["content-type"] == "application/json"
    assert response.json()["detail"] == "Not Found"


@pytest.mark.asyncio
async def test_request_validation_returns_json(client: AsyncClient) -> None:
    response = await client.post("/api/v1/progression/users/u1/activity", json={})
    assert response.status_code == 422
    data = response.json()
    assert data["detail"] == "Validation error"
    assert data["errors"]


@pytest.mark.asyncio
async def test_storage_error_returns_503(client: AsyncClient, monkeypatch) -> None:
    """Store failures map to 503 with the error code."""

    async def broken_put(self, user_id, state):
        raise StorageError("put_streak_state failed: OperationalError", operation="put_streak_state")

    monkeypatch.setattr(ProgressionStore, "put_streak_state", broken_put)
    response = await client.post(
        "/api/v1/progression/users/u1/activity",
        json={"activity_type": "chapter_read"},
    )
    assert response.status_code == 503
    assert response.json()["error"] == "storage_error"


@pytest.mark.asyncio
async def test_commit_failure_returns_503(client: AsyncClient, monkeypatch) -> None:
    """A failed commit is a storage error, not an unhandled 500."""

    async def broken_commit(self):
        raise OperationalError("COMMIT", {}, Exception("server closed the connection unexpectedly"))

    monkeypatch.setattr(AsyncSession, "commit", broken_commit)
    response = await client.post(
        "/api/v1/progression/users/u1/achievements/evaluate",
        json={"trigger": {"type": "trail_followed"}},
    )
    assert response.status_code == 503
    assert response.json()["error"] == "storage_error"
