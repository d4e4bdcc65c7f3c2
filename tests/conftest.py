"""Shared fixtures for catalog tests."""

from collections.abc import AsyncIterator
from typing import Any

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from catalog_service.catalog.service import CatalogService
from catalog_service.infrastructure.database import init_models

ACTOR = "admin-1"


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    """Create an engine on a fresh SQLite file with all tables."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def catalog(engine: AsyncEngine) -> CatalogService:
    """Create the catalog facade over the test database."""
    return CatalogService(engine)


@pytest_asyncio.fixture
async def tree(catalog: CatalogService) -> dict[str, dict[str, Any]]:
    """Create Electronics > Phones and a Books root."""
    electronics = (await catalog.categories.add_category("Electronics", None, ACTOR)).unwrap()
    phones = (await catalog.categories.add_category("Phones", electronics["id"], ACTOR)).unwrap()
    books = (await catalog.categories.add_category("Books", None, ACTOR)).unwrap()
    return {"electronics": electronics, "phones": phones, "books": books}


@pytest_asyncio.fixture
async def phone(catalog: CatalogService, tree: dict[str, dict[str, Any]]) -> dict[str, Any]:
    """Create a product in Phones."""
    result = await catalog.products.add_product(
        {
            "name": "Pixel",
            "price": 10,
            "category_id": tree["phones"]["id"],
            "sku": "ABC-1",
            "description": "Android phone",
            "stock_quantity": 5,
        },
        ACTOR,
    )
    return result.unwrap()
