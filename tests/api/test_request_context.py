"""Tests for the request context middleware."""

from collections.abc import Iterator

import pytest
import structlog
from fastapi.testclient import TestClient

from catalog_service.infrastructure.config import Settings
from catalog_service.main import create_app


@pytest.fixture
def context_client(app_settings: Settings) -> Iterator[TestClient]:
    """Client for an app with routes that expose the log context and fail."""
    app = create_app(app_settings)

    @app.get("/_context")
    async def log_context() -> dict:
        return structlog.contextvars.get_contextvars()

    @app.get("/_broken")
    async def broken() -> dict:
        raise RuntimeError("disk on fire")

    with TestClient(app) as test_client:
        yield test_client


class TestRequestContext:
    """Tests for request and actor id binding."""

    def test_actor_and_request_ids_are_bound(self, context_client: TestClient) -> None:
        """Should expose both ids to code logging during the request."""
        response = context_client.get(
            "/_context", headers={"X-Actor-ID": "admin-1", "X-Request-ID": "req-7"}
        )
        assert response.status_code == 200
        assert response.json() == {"request_id": "req-7", "actor_id": "admin-1"}
        assert response.headers["X-Request-ID"] == "req-7"

    def test_anonymous_request_binds_request_id_only(self, context_client: TestClient) -> None:
        """Should not leak the previous caller's actor id."""
        context_client.get("/_context", headers={"X-Actor-ID": "admin-1"})

        data = context_client.get("/_context").json()
        assert "actor_id" not in data
        assert data["request_id"]

    def test_unhandled_error_is_a_storage_failure(self, context_client: TestClient) -> None:
        """Should answer an unclaimed exception with a STORAGE error body."""
        response = context_client.get("/_broken", headers={"X-Request-ID": "req-9"})
        assert response.status_code == 500
        data = response.json()
        assert data["error_code"] == "STORAGE"
        assert data["request_id"] == "req-9"
        assert "disk on fire" not in data["message"]
