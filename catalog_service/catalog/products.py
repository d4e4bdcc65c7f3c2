"""Product service.

Product CRUD with validation, SKU uniqueness among non-archived
products, the leaf-category placement rule, and paginated search.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import and_, func, insert, or_, select, update

from catalog_service.catalog.categories import CategoryService
from catalog_service.catalog.history import HistoryRecorder
from catalog_service.catalog.models import Category, Product, to_snapshot, utcnow
from catalog_service.domain.exceptions import (
    ArchivedError,
    CatalogValidationError,
    DuplicateSkuError,
    NotFoundError,
    NotLeafError,
    StateConflictError,
)
from catalog_service.domain.result import returns_result
from catalog_service.domain.statuses import EntityStatus, EntityType, HistoryAction
from catalog_service.infrastructure.storage import StorageGateway

logger = structlog.get_logger()

ACTIVE = EntityStatus.ACTIVE.value
ARCHIVED = EntityStatus.ARCHIVED.value

MAX_PRODUCT_NAME_LENGTH = 200
MAX_SKU_LENGTH = 50
UNLIMITED_STOCK = -1

# Fields an update (or an update revert) may touch
UPDATABLE_FIELDS = (
    "name",
    "description",
    "price",
    "category_id",
    "sku",
    "stock_quantity",
    "image_url",
    "status",
)


# ============================================================================
# Validation
# ============================================================================


def parse_price(value: Any) -> float:
    """Parse a non-negative price.

    Raises:
        CatalogValidationError: If not a finite number >= 0.
    """
    try:
        if isinstance(value, bool):
            raise ValueError(value)
        price = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        raise CatalogValidationError(
            "Price must be a non-negative number", details={"price": value}
        ) from None
    if not math.isfinite(price) or price < 0:
        raise CatalogValidationError(
            "Price must be a non-negative number", details={"price": value}
        )
    return price


def parse_stock_quantity(value: Any) -> int:
    """Parse a stock quantity: -1 (unlimited) or an integer >= 0.

    Raises:
        CatalogValidationError: For anything else.
    """
    try:
        if isinstance(value, bool) or isinstance(value, float) and not value.is_integer():
            raise ValueError(value)
        quantity = int(value.strip()) if isinstance(value, str) else int(value)
    except (TypeError, ValueError):
        raise CatalogValidationError(
            "Stock quantity must be -1 (unlimited) or >= 0",
            details={"stock_quantity": value},
        ) from None
    if quantity < UNLIMITED_STOCK:
        raise CatalogValidationError(
            "Stock quantity must be -1 (unlimited) or >= 0",
            details={"stock_quantity": value},
        )
    return quantity


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def validate_product_fields(data: Mapping[str, Any], partial: bool = False) -> dict[str, Any]:
    """Validate and normalize product fields.

    Only allow-listed fields are read; anything else in ``data`` is
    ignored. On create (``partial=False``) name, price and category are
    required and stock defaults to unlimited.

    Args:
        data: Raw field values.
        partial: Validate only the fields present (update semantics).

    Returns:
        Normalized field values.

    Raises:
        CatalogValidationError: On the first invalid field.
    """
    fields: dict[str, Any] = {}

    if not partial or "name" in data:
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            raise CatalogValidationError("Product name is required")
        if len(name.strip()) > MAX_PRODUCT_NAME_LENGTH:
            raise CatalogValidationError(
                f"Product name too long (max {MAX_PRODUCT_NAME_LENGTH} chars)"
            )
        fields["name"] = name.strip()

    if not partial or "price" in data:
        fields["price"] = parse_price(data.get("price"))

    if not partial or "category_id" in data:
        category_id = data.get("category_id")
        if category_id in (None, ""):
            raise CatalogValidationError("Category is required")
        try:
            fields["category_id"] = int(category_id)
        except (TypeError, ValueError):
            raise CatalogValidationError(
                "Category id must be an integer", details={"category_id": category_id}
            ) from None

    if "stock_quantity" in data and data["stock_quantity"] is not None:
        fields["stock_quantity"] = parse_stock_quantity(data["stock_quantity"])
    elif not partial:
        fields["stock_quantity"] = UNLIMITED_STOCK

    if "sku" in data or not partial:
        sku = _optional_text(data.get("sku"))
        if sku is not None and len(sku) > MAX_SKU_LENGTH:
            raise CatalogValidationError(f"SKU too long (max {MAX_SKU_LENGTH} chars)")
        fields["sku"] = sku

    for key in ("description", "image_url"):
        if key in data or not partial:
            fields[key] = _optional_text(data.get(key))

    if partial and "status" in data:
        try:
            fields["status"] = EntityStatus(data["status"]).value
        except ValueError:
            raise CatalogValidationError(
                f"Unknown status '{data['status']}'", details={"status": data["status"]}
            ) from None

    return fields


# ============================================================================
# Read Models
# ============================================================================


@dataclass(frozen=True)
class ProductPage:
    """One page of product search results.

    Attributes:
        products: Products on this page.
        total: Total matching products.
        page: Current page (clamped to [1, total_pages]).
        total_pages: Number of pages (at least 1).
        page_size: Products per page.
    """

    products: list[dict[str, Any]]
    total: int
    page: int
    total_pages: int
    page_size: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "products": self.products,
            "total": self.total,
            "page": self.page,
            "total_pages": self.total_pages,
            "page_size": self.page_size,
        }


# ============================================================================
# Service
# ============================================================================


class ProductService:
    """Service for product operations.

    Example usage:
        service = ProductService(gateway, history, categories)
        result = await service.add_product(
            {"name": "Pixel 9", "price": "799.00", "category_id": 3, "sku": "PX9"},
            actor_id="42",
        )
    """

    def __init__(
        self,
        gateway: StorageGateway,
        history: HistoryRecorder,
        categories: CategoryService,
        default_page_size: int = 10,
    ) -> None:
        """Initialize service.

        Args:
            gateway: Storage gateway.
            history: History recorder.
            categories: Category service (leaf checks and cache invalidation).
            default_page_size: Page size used when search omits one.
        """
        self.gateway = gateway
        self.history = history
        self.categories = categories
        self.default_page_size = default_page_size

    # ------------------------------------------------------------------
    # Row helpers shared with the other components
    # ------------------------------------------------------------------

    def _select_with_category(self):
        return select(Product, Category.name.label("category_name")).outerjoin(
            Category, Category.id == Product.category_id
        )

    async def load(self, product_id: int) -> dict[str, Any] | None:
        """Load a product row (with its category name) by id."""
        return await self.gateway.fetch_one(
            self._select_with_category().where(Product.id == product_id)
        )

    async def _require(self, product_id: int) -> dict[str, Any]:
        product = await self.load(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    async def find_ids_by_sku(self, sku: str, exclude_id: int | None = None) -> list[int]:
        """Ids of non-archived products holding a SKU."""
        query = select(Product.id).where(Product.sku == sku, Product.status != ARCHIVED)
        if exclude_id is not None:
            query = query.where(Product.id != exclude_id)
        rows = await self.gateway.fetch_all(query.order_by(Product.id))
        return [row["id"] for row in rows]

    async def ensure_sku_available(self, sku: str | None, exclude_id: int | None = None) -> None:
        """Reject a SKU held by another non-archived product.

        Raises:
            DuplicateSkuError: If the SKU is taken.
        """
        if sku and await self.find_ids_by_sku(sku, exclude_id):
            raise DuplicateSkuError(sku)

    async def ensure_category_active(self, category_id: int) -> dict[str, Any]:
        """Load a category that must exist and be active.

        Raises:
            NotFoundError: If the category does not exist.
            ArchivedError: If it is archived.
        """
        category = await self.categories.load(category_id)
        if category is None:
            raise NotFoundError("Category", category_id)
        if category["status"] != ACTIVE:
            raise ArchivedError(
                f"Category {category_id} is archived",
                details={"category_id": category_id},
            )
        return category

    async def ensure_leaf_category(self, category_id: int) -> None:
        """Check a category can receive products.

        Raises:
            NotFoundError: If the category does not exist.
            ArchivedError: If it is archived.
            NotLeafError: If it has active subcategories.
        """
        await self.ensure_category_active(category_id)
        if await self.categories.has_active_children(category_id):
            raise NotLeafError(category_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @returns_result
    async def get_product(self, product_id: int) -> dict[str, Any]:
        """Get a product with its category name."""
        return to_snapshot(await self._require(product_id))

    @returns_result
    async def search_products(
        self,
        query: str | None = None,
        category_id: int | None = None,
        status: EntityStatus | str | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> ProductPage:
        """Search products with filters and pagination.

        Text search is a case-insensitive substring match on name, SKU and
        description. Without a status filter archived products are
        excluded.

        Args:
            query: Text to search for.
            category_id: Filter by category.
            status: Filter by status.
            page: Requested page (clamped to the available range).
            page_size: Products per page.

        Returns:
            One page of products ordered by sort order, newest first within ties.
        """
        page_size = self.default_page_size if page_size is None else page_size
        if page_size < 1:
            raise CatalogValidationError(
                "Page size must be at least 1", details={"page_size": page_size}
            )

        conditions = []
        if status:
            try:
                conditions.append(Product.status == EntityStatus(status).value)
            except ValueError:
                raise CatalogValidationError(
                    f"Unknown status '{status}'", details={"status": status}
                ) from None
        else:
            conditions.append(Product.status != ARCHIVED)

        if category_id is not None:
            conditions.append(Product.category_id == category_id)

        if query:
            search_pattern = f"%{query}%"
            conditions.append(
                or_(
                    Product.name.ilike(search_pattern),
                    Product.sku.ilike(search_pattern),
                    Product.description.ilike(search_pattern),
                )
            )

        total = await self.gateway.fetch_value(
            select(func.count(Product.id)).where(and_(*conditions))
        )
        total_pages = max(math.ceil(total / page_size), 1)
        safe_page = min(max(page, 1), total_pages)

        rows = await self.gateway.fetch_all(
            self._select_with_category()
            .where(and_(*conditions))
            .order_by(Product.sort_order.asc(), Product.id.desc())
            .limit(page_size)
            .offset((safe_page - 1) * page_size)
        )

        return ProductPage(
            products=[to_snapshot(row) for row in rows],
            total=total,
            page=safe_page,
            total_pages=total_pages,
            page_size=page_size,
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @returns_result
    async def add_product(
        self,
        data: Mapping[str, Any],
        actor_id: str,
        *,
        batch_id: str | None = None,
    ) -> dict[str, Any]:
        """Add a product to a leaf category.

        Args:
            data: Product fields (name, price, category_id required).
            actor_id: Opaque actor id.
            batch_id: Batch tag for the history entry.

        Returns:
            The inserted product.
        """
        fields = validate_product_fields(data)

        async with self.gateway.transaction():
            await self.ensure_leaf_category(fields["category_id"])
            await self.ensure_sku_available(fields["sku"])

            max_order = await self.gateway.fetch_value(
                select(func.coalesce(func.max(Product.sort_order), 0)).where(
                    Product.category_id == fields["category_id"],
                    Product.status == ACTIVE,
                )
            )
            now = utcnow()
            result = await self.gateway.execute(
                insert(Product).values(
                    **fields,
                    status=ACTIVE,
                    sort_order=(max_order or 0) + 1,
                    created_at=now,
                    updated_at=now,
                    created_by=str(actor_id),
                )
            )
            product = to_snapshot(await self._require(result.last_insert_id))
            await self.history.record(
                EntityType.PRODUCT,
                product["id"],
                HistoryAction.CREATE,
                None,
                product,
                actor_id,
                batch_id,
            )

        self.categories.invalidate_tree_cache()
        logger.info(
            "Product created",
            product_id=product["id"],
            name=product["name"],
            category_id=product["category_id"],
            batch_id=batch_id,
            actor_id=actor_id,
        )
        return product

    @returns_result
    async def update_product(
        self,
        product_id: int,
        changes: Mapping[str, Any],
        actor_id: str,
        *,
        batch_id: str | None = None,
    ) -> dict[str, Any]:
        """Update allow-listed fields of an active product.

        Args:
            product_id: Product to update.
            changes: Field values; keys outside the allow-list are ignored.
            actor_id: Opaque actor id.
            batch_id: Batch tag for the history entry.

        Returns:
            The updated product.
        """
        allowed = {key: value for key, value in changes.items() if key in UPDATABLE_FIELDS}
        fields = validate_product_fields(allowed, partial=True)
        if not fields:
            raise CatalogValidationError("No changes provided")

        async with self.gateway.transaction():
            old = to_snapshot(await self._require(product_id))
            if old["status"] == ARCHIVED:
                raise ArchivedError(
                    "Cannot edit an archived product. Restore it first",
                    details={"product_id": product_id},
                )

            if "category_id" in fields and fields["category_id"] != old["category_id"]:
                await self.ensure_leaf_category(fields["category_id"])

            if fields.get("sku") and fields["sku"] != old["sku"]:
                await self.ensure_sku_available(fields["sku"], exclude_id=product_id)

            await self.gateway.execute(
                update(Product)
                .where(Product.id == product_id)
                .values(**fields, updated_at=utcnow())
            )
            new = to_snapshot(await self._require(product_id))
            await self.history.record(
                EntityType.PRODUCT,
                product_id,
                HistoryAction.UPDATE,
                old,
                new,
                actor_id,
                batch_id,
            )

        self.categories.invalidate_tree_cache()
        logger.info(
            "Product updated",
            product_id=product_id,
            fields=sorted(fields),
            batch_id=batch_id,
            actor_id=actor_id,
        )
        return new

    @returns_result
    async def delete_product(
        self,
        product_id: int,
        actor_id: str,
        *,
        batch_id: str | None = None,
    ) -> dict[str, Any]:
        """Archive a product; its SKU becomes free again.

        Returns:
            The archived product.
        """
        async with self.gateway.transaction():
            old = to_snapshot(await self._require(product_id))
            if old["status"] == ARCHIVED:
                raise StateConflictError(
                    f"Product {product_id} is already archived",
                    details={"product_id": product_id},
                )

            await self.gateway.execute(
                update(Product)
                .where(Product.id == product_id)
                .values(status=ARCHIVED, updated_at=utcnow())
            )
            new = to_snapshot(await self._require(product_id))
            await self.history.record(
                EntityType.PRODUCT,
                product_id,
                HistoryAction.DELETE,
                old,
                new,
                actor_id,
                batch_id,
            )

        self.categories.invalidate_tree_cache()
        logger.info(
            "Product deleted",
            product_id=product_id,
            name=old["name"],
            batch_id=batch_id,
            actor_id=actor_id,
        )
        return new

    @returns_result
    async def restore_product(self, product_id: int, actor_id: str) -> dict[str, Any]:
        """Reactivate an archived product.

        The product's category must be active, and its SKU must not have
        been taken by another product in the meantime.

        Returns:
            The restored product.
        """
        async with self.gateway.transaction():
            old = to_snapshot(await self._require(product_id))
            if old["status"] == ACTIVE:
                raise StateConflictError(
                    f"Product {product_id} is already active",
                    details={"product_id": product_id},
                )
            category = await self.categories.load(old["category_id"])
            if category is None or category["status"] != ACTIVE:
                raise ArchivedError(
                    "Cannot restore: the product's category is archived or missing. "
                    "Restore the category first",
                    details={"product_id": product_id, "category_id": old["category_id"]},
                )
            await self.ensure_sku_available(old["sku"], exclude_id=product_id)

            await self.gateway.execute(
                update(Product)
                .where(Product.id == product_id)
                .values(status=ACTIVE, updated_at=utcnow())
            )
            new = to_snapshot(await self._require(product_id))
            await self.history.record(
                EntityType.PRODUCT, product_id, HistoryAction.RESTORE, old, new, actor_id
            )

        self.categories.invalidate_tree_cache()
        logger.info("Product restored", product_id=product_id, actor_id=actor_id)
        return new
