"""Revert of recorded changes.

Applies the inverse of a history entry (or of every entry of a batch)
and records the outcome as a new ``revert`` entry. Reactivations go
through the same checks as a manual restore, so a revert never breaks
the parent, name, category or SKU rules.
"""

from dataclasses import dataclass, field
from typing import Any

import structlog
from sqlalchemy import update

from catalog_service.catalog.categories import CategoryService
from catalog_service.catalog.history import HistoryEntry, HistoryRecorder
from catalog_service.catalog.models import Category, Product, to_snapshot, utcnow
from catalog_service.catalog.products import UPDATABLE_FIELDS, ProductService
from catalog_service.domain.exceptions import NotFoundError, StateConflictError
from catalog_service.domain.result import returns_result
from catalog_service.domain.statuses import (
    BulkOperationStatus,
    EntityStatus,
    EntityType,
    HistoryAction,
    validate_bulk_transition,
)
from catalog_service.infrastructure.storage import StorageGateway

logger = structlog.get_logger()

ACTIVE = EntityStatus.ACTIVE.value
ARCHIVED = EntityStatus.ARCHIVED.value

CATEGORY_REVERTIBLE_FIELDS = ("name", "status")


@dataclass(frozen=True)
class RevertSummary:
    """Outcome of a batch revert.

    Attributes:
        batch_id: Reverted batch.
        reverted_count: Entries reverted successfully.
        total: Unreverted entries found for the batch.
        errors: Messages for entries that could not be reverted.
    """

    batch_id: str
    reverted_count: int
    total: int
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "batch_id": self.batch_id,
            "reverted_count": self.reverted_count,
            "total": self.total,
            "errors": list(self.errors),
        }


class RevertService:
    """Service that undoes recorded changes."""

    def __init__(
        self,
        gateway: StorageGateway,
        history: HistoryRecorder,
        categories: CategoryService,
        products: ProductService,
    ) -> None:
        """Initialize service.

        Args:
            gateway: Storage gateway.
            history: History recorder.
            categories: Category service (checks and cache invalidation).
            products: Product service (checks and row loading).
        """
        self.gateway = gateway
        self.history = history
        self.categories = categories
        self.products = products

    @returns_result
    async def revert_change(self, history_id: int, actor_id: str) -> HistoryEntry:
        """Revert a single history entry.

        create and restore entries archive the entity again, delete
        entries reactivate it and update entries put the previous field
        values back. The original entry is flagged reverted and a new
        ``revert`` entry snapshots the resulting state.

        Args:
            history_id: Entry to revert.
            actor_id: Opaque actor id.

        Returns:
            The new ``revert`` history entry.
        """
        async with self.gateway.transaction():
            entry = await self.history.load_entry(history_id)
            if entry is None:
                raise NotFoundError("History entry", history_id)
            if entry.reverted:
                raise StateConflictError(
                    f"History entry {history_id} was already reverted",
                    details={"history_id": history_id},
                )
            if entry.action == HistoryAction.REVERT:
                raise StateConflictError(
                    "A revert entry cannot itself be reverted",
                    details={"history_id": history_id},
                )

            if entry.entity_type == EntityType.CATEGORY:
                snapshot = await self._revert_category(entry)
            else:
                snapshot = await self._revert_product(entry)

            await self.history.mark_reverted(history_id)
            revert_id = await self.history.record(
                entry.entity_type,
                entry.entity_id,
                HistoryAction.REVERT,
                None,
                snapshot,
                actor_id,
            )
            revert_entry = await self.history.load_entry(revert_id)

        self.categories.invalidate_tree_cache()
        logger.info(
            "Change reverted",
            history_id=history_id,
            entity_type=entry.entity_type.value,
            entity_id=entry.entity_id,
            action=entry.action.value,
            actor_id=actor_id,
        )
        return revert_entry

    # ------------------------------------------------------------------
    # Inverses
    # ------------------------------------------------------------------

    async def _revert_category(self, entry: HistoryEntry) -> dict[str, Any]:
        current = await self.categories.load(entry.entity_id)
        if current is None:
            raise NotFoundError("Category", entry.entity_id)

        if entry.action in (HistoryAction.CREATE, HistoryAction.RESTORE):
            if current["status"] == ARCHIVED:
                raise StateConflictError(
                    f"Category {entry.entity_id} is already archived",
                    details={"category_id": entry.entity_id},
                )
            if await self.categories.has_active_children(entry.entity_id):
                raise StateConflictError(
                    f"Category {entry.entity_id} has active subcategories; delete it instead",
                    details={"category_id": entry.entity_id},
                )
            values = {"status": ARCHIVED}

        elif entry.action == HistoryAction.DELETE:
            if current["status"] == ACTIVE:
                raise StateConflictError(
                    f"Category {entry.entity_id} is already active",
                    details={"category_id": entry.entity_id},
                )
            await self._check_category_reactivation(current, current["name"])
            values = {"status": ACTIVE}

        else:
            old = entry.old_data or {}
            values = {key: old[key] for key in CATEGORY_REVERTIBLE_FIELDS if key in old}
            if values.get("status", current["status"]) == ACTIVE:
                await self._check_category_reactivation(
                    current, values.get("name", current["name"])
                )

        await self.gateway.execute(
            update(Category)
            .where(Category.id == entry.entity_id)
            .values(**values, updated_at=utcnow())
        )
        return to_snapshot(await self.categories.load(entry.entity_id))

    async def _check_category_reactivation(self, category: dict[str, Any], name: str) -> None:
        if category["status"] != ACTIVE:
            await self.categories.ensure_parent_active(category["parent_id"])
        await self.categories.ensure_name_available(
            name, category["parent_id"], exclude_id=category["id"]
        )

    async def _revert_product(self, entry: HistoryEntry) -> dict[str, Any]:
        current = await self.products.load(entry.entity_id)
        if current is None:
            raise NotFoundError("Product", entry.entity_id)

        if entry.action in (HistoryAction.CREATE, HistoryAction.RESTORE):
            if current["status"] == ARCHIVED:
                raise StateConflictError(
                    f"Product {entry.entity_id} is already archived",
                    details={"product_id": entry.entity_id},
                )
            values = {"status": ARCHIVED}

        elif entry.action == HistoryAction.DELETE:
            if current["status"] == ACTIVE:
                raise StateConflictError(
                    f"Product {entry.entity_id} is already active",
                    details={"product_id": entry.entity_id},
                )
            await self.products.ensure_category_active(current["category_id"])
            await self.products.ensure_sku_available(current["sku"], exclude_id=entry.entity_id)
            values = {"status": ACTIVE}

        else:
            old = entry.old_data or {}
            values = {key: old[key] for key in UPDATABLE_FIELDS if key in old}
            if values.get("status", current["status"]) != ARCHIVED:
                category_id = values.get("category_id", current["category_id"])
                if category_id != current["category_id"]:
                    await self.products.ensure_leaf_category(category_id)
                else:
                    await self.products.ensure_category_active(category_id)
                await self.products.ensure_sku_available(
                    values.get("sku", current["sku"]), exclude_id=entry.entity_id
                )

        await self.gateway.execute(
            update(Product)
            .where(Product.id == entry.entity_id)
            .values(**values, updated_at=utcnow())
        )
        return to_snapshot(await self.products.load(entry.entity_id))

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    @returns_result
    async def revert_bulk_operation(self, batch_id: str, actor_id: str) -> RevertSummary:
        """Revert every unreverted entry of a committed batch.

        Entries are reverted newest first, so parents come back before
        their children and dependants are retired before what they
        depend on. A failing entry is logged and skipped; the batch is
        marked reverted regardless.

        Args:
            batch_id: Batch to revert.
            actor_id: Opaque actor id.

        Returns:
            Counts and per-entry error messages.
        """
        operation = await self.history.load_bulk_operation(batch_id)
        if operation is None:
            raise NotFoundError("Bulk operation", batch_id)
        validate_bulk_transition(batch_id, operation.status, BulkOperationStatus.REVERTED)

        entries = await self.history.pending_batch_entries(batch_id)
        reverted_count = 0
        errors = []
        for entry in entries:
            result = await self.revert_change(entry.id, actor_id)
            if result.ok:
                reverted_count += 1
                continue
            errors.append(f"History entry {entry.id}: {result.error.message}")
            logger.error(
                "Failed to revert history entry",
                batch_id=batch_id,
                history_id=entry.id,
                error_code=result.error.code.value,
                error=result.error.message,
            )

        await self.history.mark_bulk_reverted(batch_id)
        self.categories.invalidate_tree_cache()
        logger.info(
            "Bulk operation reverted",
            batch_id=batch_id,
            reverted=reverted_count,
            total=len(entries),
            actor_id=actor_id,
        )
        return RevertSummary(
            batch_id=batch_id,
            reverted_count=reverted_count,
            total=len(entries),
            errors=errors,
        )
