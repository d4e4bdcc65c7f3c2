"""Category service.

Tree CRUD over the category forest: leaf detection, cascading
soft-delete with impact preview, restore, and the cached tree read
model. Every mutation records a history entry.
"""

from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import func, insert, select, update
from sqlalchemy.orm import aliased

from catalog_service.catalog.cache import CategoryNode, CategoryTreeCache
from catalog_service.catalog.history import HistoryRecorder, generate_batch_id
from catalog_service.catalog.models import Category, Product, to_snapshot, utcnow
from catalog_service.domain.exceptions import (
    ArchivedError,
    CatalogValidationError,
    DuplicateNameError,
    NotFoundError,
    StateConflictError,
)
from catalog_service.domain.result import returns_result
from catalog_service.domain.statuses import (
    BulkOperationStatus,
    BulkOperationType,
    EntityStatus,
    EntityType,
    HistoryAction,
)
from catalog_service.infrastructure.storage import StorageGateway

logger = structlog.get_logger()

ACTIVE = EntityStatus.ACTIVE.value
ARCHIVED = EntityStatus.ARCHIVED.value

MAX_CATEGORY_NAME_LENGTH = 100


@dataclass(frozen=True)
class DeleteImpact:
    """What a cascading delete of a category would archive.

    Attributes:
        category: The category row.
        subcat_count: Active direct subcategories.
        product_count: Active products directly in the category.
        all_descendant_products: Active products in all descendant categories.
    """

    category: dict[str, Any]
    subcat_count: int
    product_count: int
    all_descendant_products: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "category": self.category,
            "subcat_count": self.subcat_count,
            "product_count": self.product_count,
            "all_descendant_products": self.all_descendant_products,
        }


def clean_category_name(name: Any) -> str:
    """Trim and validate a category name.

    Raises:
        CatalogValidationError: If empty or longer than 100 characters.
    """
    if not isinstance(name, str) or not name.strip():
        raise CatalogValidationError("Category name cannot be empty")
    trimmed = name.strip()
    if len(trimmed) > MAX_CATEGORY_NAME_LENGTH:
        raise CatalogValidationError(
            f"Category name too long (max {MAX_CATEGORY_NAME_LENGTH} chars)",
            details={"length": len(trimmed)},
        )
    return trimmed


class CategoryService:
    """Service for category tree operations.

    Owns the category tree cache; other components call
    ``invalidate_tree_cache()`` after committing changes.

    Example usage:
        service = CategoryService(gateway, history, CategoryTreeCache())
        result = await service.add_category("Electronics", None, actor_id="42")
        if result.ok:
            phones = await service.add_category("Phones", result.value["id"], "42")
    """

    def __init__(
        self,
        gateway: StorageGateway,
        history: HistoryRecorder,
        cache: CategoryTreeCache | None = None,
    ) -> None:
        """Initialize service.

        Args:
            gateway: Storage gateway.
            history: History recorder.
            cache: Tree cache (a 60 s cache is created when omitted).
        """
        self.gateway = gateway
        self.history = history
        self._cache = cache or CategoryTreeCache()

    def invalidate_tree_cache(self) -> None:
        """Drop the cached tree after a committed change."""
        self._cache.invalidate()

    # ------------------------------------------------------------------
    # Row helpers shared with the other components
    # ------------------------------------------------------------------

    async def load(self, category_id: int) -> dict[str, Any] | None:
        """Load a category row by id."""
        return await self.gateway.fetch_one(
            select(Category).where(Category.id == category_id)
        )

    async def has_active_children(self, category_id: int) -> bool:
        """Check whether a category has active subcategories."""
        return bool(await self._count_active_children(category_id))

    async def ensure_name_available(
        self,
        name: str,
        parent_id: int | None,
        exclude_id: int | None = None,
    ) -> None:
        """Reject a name already used by an active sibling.

        Raises:
            DuplicateNameError: If an active sibling has the name (case-insensitive).
        """
        query = select(Category.id).where(
            func.lower(Category.name) == name.lower(),
            Category.status == ACTIVE,
        )
        if parent_id is None:
            query = query.where(Category.parent_id.is_(None))
        else:
            query = query.where(Category.parent_id == parent_id)
        if exclude_id is not None:
            query = query.where(Category.id != exclude_id)

        if await self.gateway.fetch_one(query.limit(1)):
            raise DuplicateNameError(name, parent_id)

    async def ensure_parent_active(self, parent_id: int | None) -> None:
        """Reject a missing or archived parent.

        Raises:
            NotFoundError: If the parent does not exist.
            ArchivedError: If the parent is archived.
        """
        if parent_id is None:
            return
        parent = await self.load(parent_id)
        if parent is None:
            raise NotFoundError("Parent category", parent_id)
        if parent["status"] != ACTIVE:
            raise ArchivedError(
                f"Parent category {parent_id} is archived",
                details={"parent_id": parent_id},
            )

    async def _require(self, category_id: int) -> dict[str, Any]:
        category = await self.load(category_id)
        if category is None:
            raise NotFoundError("Category", category_id)
        return category

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @returns_result
    async def get_category_tree(self, include_archived: bool = False) -> list[CategoryNode]:
        """Get the category tree as a flat list.

        Roots come first, then rows by sort order and name. The active
        tree is served from the cache while it is fresh.

        Args:
            include_archived: Include archived categories (never cached).

        Returns:
            Tree nodes with depth and active child/product counts.
        """
        return await self._tree(include_archived)

    async def _tree(self, include_archived: bool) -> list[CategoryNode]:
        if not include_archived:
            cached = self._cache.get()
            if cached is not None:
                return cached

        child = aliased(Category)
        child_count = (
            select(func.count(child.id))
            .where(child.parent_id == Category.id, child.status == ACTIVE)
            .scalar_subquery()
        )
        product_count = (
            select(func.count(Product.id))
            .where(Product.category_id == Category.id, Product.status == ACTIVE)
            .scalar_subquery()
        )
        query = select(
            Category.id,
            Category.name,
            Category.parent_id,
            Category.status,
            Category.sort_order,
            child_count.label("child_count"),
            product_count.label("product_count"),
        )
        if not include_archived:
            query = query.where(Category.status == ACTIVE)
        query = query.order_by(
            Category.parent_id.is_(None).desc(),
            Category.sort_order.asc(),
            Category.name.asc(),
        )
        rows = await self.gateway.fetch_all(query)

        parents = {row["id"]: row["parent_id"] for row in rows}
        nodes = []
        for row in rows:
            depth = 0
            seen = {row["id"]}
            parent_id = row["parent_id"]
            while parent_id is not None and parent_id in parents and parent_id not in seen:
                depth += 1
                seen.add(parent_id)
                parent_id = parents[parent_id]
            nodes.append(CategoryNode(depth=depth, **row))

        if not include_archived:
            self._cache.put(nodes)
        return nodes

    @returns_result
    async def get_root_categories(self, include_archived: bool = False) -> list[CategoryNode]:
        """Get root categories."""
        tree = await self._tree(include_archived)
        return [node for node in tree if node.parent_id is None]

    @returns_result
    async def get_subcategories(self, parent_id: int) -> list[CategoryNode]:
        """Get the active direct children of a category."""
        tree = await self._tree(False)
        return [node for node in tree if node.parent_id == parent_id]

    @returns_result
    async def get_category(self, category_id: int) -> dict[str, Any]:
        """Get a single category by id."""
        return to_snapshot(await self._require(category_id))

    @returns_result
    async def is_leaf_category(self, category_id: int) -> bool:
        """Whether the category is active and has no active children."""
        category = await self.load(category_id)
        if category is None or category["status"] != ACTIVE:
            return False
        return not await self.has_active_children(category_id)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @returns_result
    async def add_category(
        self,
        name: str,
        parent_id: int | None,
        actor_id: str,
    ) -> dict[str, Any]:
        """Add a root category or a subcategory.

        Args:
            name: Category name (trimmed).
            parent_id: Parent category, None for a root.
            actor_id: Opaque actor id.

        Returns:
            The inserted category.
        """
        trimmed = clean_category_name(name)

        async with self.gateway.transaction():
            await self.ensure_parent_active(parent_id)
            await self.ensure_name_available(trimmed, parent_id)

            siblings = select(func.coalesce(func.max(Category.sort_order), 0)).where(
                Category.status == ACTIVE
            )
            if parent_id is None:
                siblings = siblings.where(Category.parent_id.is_(None))
            else:
                siblings = siblings.where(Category.parent_id == parent_id)
            max_order = await self.gateway.fetch_value(siblings)

            now = utcnow()
            result = await self.gateway.execute(
                insert(Category).values(
                    name=trimmed,
                    parent_id=parent_id,
                    status=ACTIVE,
                    sort_order=(max_order or 0) + 1,
                    created_at=now,
                    updated_at=now,
                    created_by=str(actor_id),
                )
            )
            category = to_snapshot(await self._require(result.last_insert_id))
            await self.history.record(
                EntityType.CATEGORY,
                category["id"],
                HistoryAction.CREATE,
                None,
                category,
                actor_id,
            )

        self.invalidate_tree_cache()
        logger.info(
            "Category created",
            category_id=category["id"],
            name=trimmed,
            parent_id=parent_id,
            actor_id=actor_id,
        )
        return category

    @returns_result
    async def rename_category(
        self,
        category_id: int,
        new_name: str,
        actor_id: str,
    ) -> dict[str, Any]:
        """Rename a category.

        Returns:
            The updated category.
        """
        trimmed = clean_category_name(new_name)

        async with self.gateway.transaction():
            old = to_snapshot(await self._require(category_id))
            await self.ensure_name_available(trimmed, old["parent_id"], exclude_id=category_id)

            await self.gateway.execute(
                update(Category)
                .where(Category.id == category_id)
                .values(name=trimmed, updated_at=utcnow())
            )
            new = to_snapshot(await self._require(category_id))
            await self.history.record(
                EntityType.CATEGORY, category_id, HistoryAction.UPDATE, old, new, actor_id
            )

        self.invalidate_tree_cache()
        logger.info(
            "Category renamed",
            category_id=category_id,
            old_name=old["name"],
            new_name=trimmed,
            actor_id=actor_id,
        )
        return new

    @returns_result
    async def get_category_delete_impact(self, category_id: int) -> DeleteImpact:
        """Describe what ``delete_category`` would archive."""
        category = await self._require(category_id)
        if category["status"] != ACTIVE:
            raise ArchivedError(
                f"Category {category_id} is already archived",
                details={"category_id": category_id},
            )

        subcat_count = await self._count_active_children(category_id)
        product_count = await self._count_active_products(category_id)

        descendant_products = 0
        stack = await self._active_child_ids(category_id)
        while stack:
            child_id = stack.pop()
            descendant_products += await self._count_active_products(child_id)
            stack.extend(await self._active_child_ids(child_id))

        return DeleteImpact(
            category=to_snapshot(category),
            subcat_count=subcat_count,
            product_count=product_count,
            all_descendant_products=descendant_products,
        )

    @returns_result
    async def delete_category(self, category_id: int, actor_id: str) -> str:
        """Soft-delete a category with its whole active subtree.

        Products are archived before their category and children before
        their parent, so history ids follow post-order. The batch is
        recorded as a committed bulk operation and can be reverted as a
        whole.

        Returns:
            The batch id tagging every archived entity.
        """
        category = await self._require(category_id)
        if category["status"] != ACTIVE:
            raise ArchivedError(
                f"Category {category_id} is already archived",
                details={"category_id": category_id},
            )

        batch_id = generate_batch_id()
        async with self.gateway.transaction():
            archived = await self._archive_subtree(category_id, actor_id, batch_id)
            await self.history.create_bulk_operation(
                batch_id,
                BulkOperationType.CATEGORY_DELETE,
                actor_id,
                status=BulkOperationStatus.COMMITTED,
                total_items=archived,
                success_count=archived,
            )

        self.invalidate_tree_cache()
        logger.info(
            "Category deleted",
            category_id=category_id,
            name=category["name"],
            batch_id=batch_id,
            archived=archived,
            actor_id=actor_id,
        )
        return batch_id

    async def _archive_subtree(self, root_id: int, actor_id: str, batch_id: str) -> int:
        """Archive a subtree in post-order; returns the number of archived rows."""
        archived = 0
        # (category_id, children_done)
        stack: list[tuple[int, bool]] = [(root_id, False)]
        while stack:
            category_id, children_done = stack.pop()
            if children_done:
                old = to_snapshot(await self._require(category_id))
                await self.gateway.execute(
                    update(Category)
                    .where(Category.id == category_id)
                    .values(status=ARCHIVED, updated_at=utcnow())
                )
                new = to_snapshot(await self._require(category_id))
                await self.history.record(
                    EntityType.CATEGORY,
                    category_id,
                    HistoryAction.DELETE,
                    old,
                    new,
                    actor_id,
                    batch_id,
                )
                archived += 1
                continue

            products = await self.gateway.fetch_all(
                select(Product)
                .where(Product.category_id == category_id, Product.status == ACTIVE)
                .order_by(Product.id)
            )
            for product in products:
                await self.gateway.execute(
                    update(Product)
                    .where(Product.id == product["id"])
                    .values(status=ARCHIVED, updated_at=utcnow())
                )
                new = await self.gateway.fetch_one(
                    select(Product).where(Product.id == product["id"])
                )
                await self.history.record(
                    EntityType.PRODUCT,
                    product["id"],
                    HistoryAction.DELETE,
                    to_snapshot(product),
                    to_snapshot(new),
                    actor_id,
                    batch_id,
                )
                archived += 1

            stack.append((category_id, True))
            children = await self._active_child_ids(category_id)
            stack.extend((child_id, False) for child_id in reversed(children))
        return archived

    @returns_result
    async def restore_category(self, category_id: int, actor_id: str) -> dict[str, Any]:
        """Reactivate a single archived category.

        Descendants stay archived; revert the delete batch to bring back
        the whole subtree.

        Returns:
            The restored category.
        """
        async with self.gateway.transaction():
            old = to_snapshot(await self._require(category_id))
            if old["status"] == ACTIVE:
                raise StateConflictError(
                    f"Category {category_id} is already active",
                    details={"category_id": category_id},
                )
            await self.ensure_parent_active(old["parent_id"])
            await self.ensure_name_available(old["name"], old["parent_id"], exclude_id=category_id)

            await self.gateway.execute(
                update(Category)
                .where(Category.id == category_id)
                .values(status=ACTIVE, updated_at=utcnow())
            )
            new = to_snapshot(await self._require(category_id))
            await self.history.record(
                EntityType.CATEGORY, category_id, HistoryAction.RESTORE, old, new, actor_id
            )

        self.invalidate_tree_cache()
        logger.info("Category restored", category_id=category_id, actor_id=actor_id)
        return new

    # ------------------------------------------------------------------
    # Counting helpers
    # ------------------------------------------------------------------

    async def _active_child_ids(self, category_id: int) -> list[int]:
        rows = await self.gateway.fetch_all(
            select(Category.id)
            .where(Category.parent_id == category_id, Category.status == ACTIVE)
            .order_by(Category.sort_order, Category.id)
        )
        return [row["id"] for row in rows]

    async def _count_active_children(self, category_id: int) -> int:
        return await self.gateway.fetch_value(
            select(func.count(Category.id)).where(
                Category.parent_id == category_id, Category.status == ACTIVE
            )
        )

    async def _count_active_products(self, category_id: int) -> int:
        return await self.gateway.fetch_value(
            select(func.count(Product.id)).where(
                Product.category_id == category_id, Product.status == ACTIVE
            )
        )
