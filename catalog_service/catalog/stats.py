"""Catalog statistics and CSV export."""

from dataclasses import asdict, dataclass
from typing import Any

import structlog
from sqlalchemy import func, select

from catalog_service.catalog.csv_format import write_products_csv
from catalog_service.catalog.models import Category, Product, ProductHistory
from catalog_service.domain.result import returns_result
from catalog_service.domain.statuses import EntityStatus
from catalog_service.infrastructure.storage import StorageGateway

logger = structlog.get_logger()

ACTIVE = EntityStatus.ACTIVE.value
ARCHIVED = EntityStatus.ARCHIVED.value


@dataclass(frozen=True)
class CatalogStats:
    """Catalog counters."""

    active_categories: int
    active_products: int
    archived_products: int
    history_entries: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


class StatsService:
    """Read-only counters and export."""

    def __init__(self, gateway: StorageGateway) -> None:
        self.gateway = gateway

    async def _count(self, statement) -> int:
        return await self.gateway.fetch_value(statement) or 0

    @returns_result
    async def get_stats(self) -> CatalogStats:
        """Count active categories, active and archived products, and history entries."""
        return CatalogStats(
            active_categories=await self._count(
                select(func.count(Category.id)).where(Category.status == ACTIVE)
            ),
            active_products=await self._count(
                select(func.count(Product.id)).where(Product.status == ACTIVE)
            ),
            archived_products=await self._count(
                select(func.count(Product.id)).where(Product.status == ARCHIVED)
            ),
            history_entries=await self._count(select(func.count(ProductHistory.id))),
        )

    @returns_result
    async def export_products_csv(self, category_id: int | None = None) -> str:
        """Export active products as CSV.

        Rows are ordered by category name, then sort order, then product
        name, so the same catalog always exports the same text.

        Args:
            category_id: Only export products of this category.

        Returns:
            CSV text with a ``sku,name,description,price,category_name,stock_quantity`` header.
            A catalog with nothing to export yields the header line only,
            which the import rejects as having no data rows.
        """
        query = (
            select(
                Product.sku,
                Product.name,
                Product.description,
                Product.price,
                Category.name.label("category_name"),
                Product.stock_quantity,
            )
            .outerjoin(Category, Category.id == Product.category_id)
            .where(Product.status == ACTIVE)
        )
        if category_id is not None:
            query = query.where(Product.category_id == category_id)
        query = query.order_by(Category.name.asc(), Product.sort_order.asc(), Product.name.asc())

        rows = await self.gateway.fetch_all(query)
        logger.info("Products exported", category_id=category_id, rows=len(rows))
        return write_products_csv(rows)
