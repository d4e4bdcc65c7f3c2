"""Tests for the category tree cache."""

import pytest
from sqlalchemy import insert

from catalog_service.catalog.cache import CategoryNode, CategoryTreeCache
from catalog_service.catalog.models import Category
from catalog_service.catalog.service import CatalogService


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def make_node(node_id: int, name: str) -> CategoryNode:
    return CategoryNode(
        id=node_id,
        name=name,
        parent_id=None,
        status="active",
        sort_order=node_id,
        depth=0,
        child_count=0,
        product_count=0,
    )


class TestCategoryTreeCache:
    """Tests for CategoryTreeCache."""

    def test_empty_cache_misses(self) -> None:
        """Nothing stored yet."""
        assert CategoryTreeCache().get() is None

    def test_put_then_get(self) -> None:
        """Stored tree is returned while fresh."""
        clock = FakeClock()
        cache = CategoryTreeCache(ttl_seconds=60, clock=clock)
        cache.put([make_node(1, "Books")])

        clock.now += 59
        assert [node.name for node in cache.get()] == ["Books"]

    def test_expires_after_ttl(self) -> None:
        """Tree older than the TTL is dropped."""
        clock = FakeClock()
        cache = CategoryTreeCache(ttl_seconds=60, clock=clock)
        cache.put([make_node(1, "Books")])

        clock.now += 60
        assert cache.get() is None

    def test_invalidate(self) -> None:
        """Invalidate drops the stored tree."""
        cache = CategoryTreeCache()
        cache.put([make_node(1, "Books")])

        cache.invalidate()

        assert cache.get() is None

    def test_get_returns_copy(self) -> None:
        """Callers cannot mutate the cached snapshot."""
        cache = CategoryTreeCache()
        cache.put([make_node(1, "Books")])

        cache.get().clear()

        assert len(cache.get()) == 1


class TestTreeCaching:
    """Tests for caching through the category service."""

    @pytest.mark.asyncio
    async def test_stale_until_ttl(self, engine) -> None:
        """Out-of-band writes show up once the TTL elapses."""
        clock = FakeClock()
        catalog = CatalogService(engine, cache_ttl_seconds=60, clock=clock)
        (await catalog.categories.add_category("Books", None, "admin-1")).unwrap()
        first = (await catalog.categories.get_category_tree()).unwrap()

        # Bypasses the service, so nothing invalidates the cache
        await catalog.gateway.execute(
            insert(Category).values(name="Garden", status="active", sort_order=9)
        )
        cached = (await catalog.categories.get_category_tree()).unwrap()
        clock.now += 61
        fresh = (await catalog.categories.get_category_tree()).unwrap()

        assert [node.name for node in first] == ["Books"]
        assert [node.name for node in cached] == ["Books"]
        assert [node.name for node in fresh] == ["Books", "Garden"]
