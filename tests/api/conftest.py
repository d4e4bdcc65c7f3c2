"""Shared fixtures for API tests."""

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from catalog_service.infrastructure.config import Settings
from catalog_service.main import create_app

ACTOR_HEADERS = {"X-Actor-ID": "admin-1"}


@pytest.fixture
def app_settings(tmp_path) -> Settings:
    """Settings pointing at a fresh SQLite file."""
    return Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")


@pytest.fixture
def client(app_settings: Settings) -> Iterator[TestClient]:
    """Create test client without an actor header."""
    with TestClient(create_app(app_settings)) as test_client:
        yield test_client


@pytest.fixture
def actor_client(app_settings: Settings) -> Iterator[TestClient]:
    """Create test client that sends the actor header."""
    with TestClient(create_app(app_settings), headers=ACTOR_HEADERS) as test_client:
        yield test_client


@pytest.fixture
def seeded(actor_client: TestClient) -> dict[str, int]:
    """Create Electronics > Phones, a Books root and a phone product."""
    electronics = actor_client.post("/categories", json={"name": "Electronics"}).json()
    phones = actor_client.post(
        "/categories", json={"name": "Phones", "parent_id": electronics["id"]}
    ).json()
    books = actor_client.post("/categories", json={"name": "Books"}).json()
    phone = actor_client.post(
        "/products",
        json={"name": "Pixel", "price": 10, "category_id": phones["id"], "sku": "ABC-1"},
    ).json()
    return {
        "electronics": electronics["id"],
        "phones": phones["id"],
        "books": books["id"],
        "phone": phone["id"],
    }
