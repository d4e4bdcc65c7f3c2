"""Catalog facade.

Wires the storage gateway, history recorder and the catalog components
together so callers (the HTTP layer, scripts, tests) hold one object.

Example usage:
    engine = create_engine_from_settings(settings)
    catalog = CatalogService.from_settings(engine, settings)
    tree = await catalog.categories.get_category_tree()
"""

import time
from collections.abc import Callable

from sqlalchemy.ext.asyncio import AsyncEngine

from catalog_service.catalog.bulk import BulkPipeline
from catalog_service.catalog.cache import CategoryTreeCache
from catalog_service.catalog.categories import CategoryService
from catalog_service.catalog.history import HistoryRecorder
from catalog_service.catalog.products import ProductService
from catalog_service.catalog.revert import RevertService
from catalog_service.catalog.stats import StatsService
from catalog_service.infrastructure.config import Settings
from catalog_service.infrastructure.storage import StorageGateway


class CatalogService:
    """Entry point to every catalog operation.

    Attributes:
        gateway: Storage gateway shared by all components.
        history: History queries and bulk operation ledger.
        categories: Category tree operations.
        products: Product operations.
        reverts: Single-entry and batch revert.
        bulk: CSV import pipeline and nuke.
        stats: Counters and CSV export.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        cache_ttl_seconds: float = 60.0,
        bulk_chunk_size: int = 100,
        preview_row_limit: int = 15,
        default_page_size: int = 10,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.engine = engine
        self.gateway = StorageGateway(engine)
        self.history = HistoryRecorder(self.gateway)
        self.categories = CategoryService(
            self.gateway,
            self.history,
            CategoryTreeCache(ttl_seconds=cache_ttl_seconds, clock=clock),
        )
        self.products = ProductService(
            self.gateway,
            self.history,
            self.categories,
            default_page_size=default_page_size,
        )
        self.reverts = RevertService(
            self.gateway, self.history, self.categories, self.products
        )
        self.bulk = BulkPipeline(
            self.gateway,
            self.history,
            self.categories,
            self.products,
            chunk_size=bulk_chunk_size,
            preview_row_limit=preview_row_limit,
        )
        self.stats = StatsService(self.gateway)

    @classmethod
    def from_settings(cls, engine: AsyncEngine, settings: Settings) -> "CatalogService":
        """Build the facade with tuning values taken from settings."""
        return cls(
            engine,
            cache_ttl_seconds=settings.category_cache_ttl_seconds,
            bulk_chunk_size=settings.bulk_chunk_size,
            preview_row_limit=settings.preview_row_limit,
            default_page_size=settings.default_page_size,
        )
