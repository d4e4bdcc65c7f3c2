"""Bulk pipeline.

CSV import in two steps: a preview that validates and classifies every
row and persists the result, then a commit that applies the stored rows
in chunked transactions. Also hosts the "archive everything" nuke
operation. Every change is tagged with the batch id so the whole batch
can be reverted.
"""

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, field
from typing import Any

import structlog
from sqlalchemy import select, update

from catalog_service.catalog.categories import CategoryService
from catalog_service.catalog.csv_format import CSVRecord, parse_bulk_csv
from catalog_service.catalog.history import (
    BulkOperationRecord,
    HistoryRecorder,
    generate_batch_id,
)
from catalog_service.catalog.models import Category, Product, to_snapshot, utcnow
from catalog_service.catalog.products import (
    MAX_PRODUCT_NAME_LENGTH,
    MAX_SKU_LENGTH,
    UNLIMITED_STOCK,
    ProductService,
    parse_price,
    parse_stock_quantity,
)
from catalog_service.domain.exceptions import (
    CatalogValidationError,
    NotFoundError,
    StateConflictError,
    StorageError,
)
from catalog_service.domain.result import Result, returns_result
from catalog_service.domain.statuses import (
    BulkOperationStatus,
    BulkOperationType,
    EntityStatus,
    EntityType,
    HistoryAction,
    validate_bulk_transition,
)
from catalog_service.infrastructure.storage import StorageGateway

logger = structlog.get_logger()

ACTIVE = EntityStatus.ACTIVE.value
ARCHIVED = EntityStatus.ARCHIVED.value

ACTION_CREATE = "create"
ACTION_UPDATE = "update"

# (processed, total, success_count, error_count)
ProgressSink = Callable[[int, int, int, int], Awaitable[None] | None]


# ============================================================================
# Read Models
# ============================================================================


@dataclass(frozen=True)
class PreviewRow:
    """A validated import row and what committing it will do.

    Attributes:
        line: Line of the row in the import file.
        action: "create" or "update".
        name: Product name.
        price: Parsed price.
        category_id: Resolved leaf category.
        stock_quantity: Parsed stock (-1 when absent).
        sku: SKU, if any.
        description: Description, if any.
        existing_id: Product updated by this row (updates only).
    """

    line: int
    action: str
    name: str
    price: float
    category_id: int
    stock_quantity: int = UNLIMITED_STOCK
    sku: str | None = None
    description: str | None = None
    existing_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PreviewRow":
        """Build a row from its stored form."""
        return cls(**{key: data.get(key) for key in cls.__dataclass_fields__ if key in data})

    def product_fields(self) -> dict[str, Any]:
        """Fields passed to the product service when committing."""
        fields = {
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "category_id": self.category_id,
            "stock_quantity": self.stock_quantity,
        }
        if self.action == ACTION_CREATE:
            fields["sku"] = self.sku
        return fields


@dataclass(frozen=True)
class BulkPreview:
    """Result of ``create_bulk_preview``.

    Attributes:
        batch_id: Batch to commit.
        total_rows: Valid rows stored for commit.
        creates: Rows that will create a product.
        updates: Rows that will update an existing product.
        errors: Line-numbered messages for rejected rows.
        preview_rows: First rows, for display.
    """

    batch_id: str
    total_rows: int
    creates: int
    updates: int
    errors: list[str]
    preview_rows: list[PreviewRow]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "batch_id": self.batch_id,
            "total_rows": self.total_rows,
            "creates": self.creates,
            "updates": self.updates,
            "errors": list(self.errors),
            "preview_rows": [row.to_dict() for row in self.preview_rows],
        }


@dataclass(frozen=True)
class CommitSummary:
    """Result of ``commit_bulk_operation``."""

    batch_id: str
    total: int
    success_count: int
    error_count: int
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass(frozen=True)
class NukeSummary:
    """Result of ``nuke_all_products``."""

    batch_id: str
    archived_count: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class _CategoryIndex:
    """Active categories as seen at preview time."""

    ids: set[int]
    by_name: dict[str, int]
    names: dict[int, str]
    with_children: set[int]

    def resolve(self, record: CSVRecord) -> int:
        if record.category_id is not None:
            try:
                category_id = int(record.category_id)
            except ValueError:
                raise CatalogValidationError(
                    f'invalid category_id "{record.category_id}"'
                ) from None
            if category_id not in self.ids:
                raise CatalogValidationError(
                    f"category_id {record.category_id} does not exist"
                )
        elif record.category_name is not None:
            category_id = self.by_name.get(record.category_name.lower())
            if category_id is None:
                raise CatalogValidationError(
                    f'category "{record.category_name}" not found'
                )
        else:
            raise CatalogValidationError("no category_id or category_name specified")

        if category_id in self.with_children:
            raise CatalogValidationError(
                f'category "{self.names[category_id]}" has subcategories; '
                "products can only be placed in leaf categories"
            )
        return category_id


# ============================================================================
# Pipeline
# ============================================================================


class BulkPipeline:
    """Preview, commit and nuke operations over products.

    Example usage:
        pipeline = BulkPipeline(gateway, history, categories, products)
        preview = (await pipeline.create_bulk_preview(csv_text, "42")).unwrap()
        summary = await pipeline.commit_bulk_operation(preview.batch_id, "42")
    """

    def __init__(
        self,
        gateway: StorageGateway,
        history: HistoryRecorder,
        categories: CategoryService,
        products: ProductService,
        chunk_size: int = 100,
        preview_row_limit: int = 15,
    ) -> None:
        """Initialize pipeline.

        Args:
            gateway: Storage gateway.
            history: History recorder and bulk ledger.
            categories: Category service (cache invalidation).
            products: Product service used to apply rows.
            chunk_size: Rows per commit transaction.
            preview_row_limit: Rows echoed back by the preview.
        """
        self.gateway = gateway
        self.history = history
        self.categories = categories
        self.products = products
        self.chunk_size = chunk_size
        self.preview_row_limit = preview_row_limit

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    async def _category_index(self) -> _CategoryIndex:
        rows = await self.gateway.fetch_all(
            select(Category.id, Category.name, Category.parent_id)
            .where(Category.status == ACTIVE)
            .order_by(Category.id)
        )
        by_name: dict[str, int] = {}
        for row in rows:
            by_name.setdefault(row["name"].lower(), row["id"])
        return _CategoryIndex(
            ids={row["id"] for row in rows},
            by_name=by_name,
            names={row["id"]: row["name"] for row in rows},
            with_children={row["parent_id"] for row in rows if row["parent_id"] is not None},
        )

    def _validate_record(self, record: CSVRecord, categories: _CategoryIndex) -> PreviewRow:
        category_id = categories.resolve(record)

        try:
            price = parse_price(record.price)
        except CatalogValidationError:
            raise CatalogValidationError(f'invalid price "{record.price}"') from None

        stock_quantity = UNLIMITED_STOCK
        if record.stock_quantity is not None:
            try:
                stock_quantity = parse_stock_quantity(record.stock_quantity)
            except CatalogValidationError:
                raise CatalogValidationError(
                    f'invalid stock quantity "{record.stock_quantity}"'
                ) from None

        if len(record.name) > MAX_PRODUCT_NAME_LENGTH:
            raise CatalogValidationError(f"name too long (max {MAX_PRODUCT_NAME_LENGTH} chars)")
        if record.sku is not None and len(record.sku) > MAX_SKU_LENGTH:
            raise CatalogValidationError(f"SKU too long (max {MAX_SKU_LENGTH} chars)")

        return PreviewRow(
            line=record.line,
            action=ACTION_CREATE,
            name=record.name,
            price=price,
            category_id=category_id,
            stock_quantity=stock_quantity,
            sku=record.sku,
            description=record.description,
        )

    @returns_result
    async def create_bulk_preview(self, csv_text: str, actor_id: str) -> BulkPreview:
        """Validate and classify an import file without applying it.

        Rows with a SKU held by an existing non-archived product become
        updates of that product; all other valid rows become creates.
        The classified rows and the error list are stored under a new
        batch id awaiting commit.

        Args:
            csv_text: Decoded CSV text.
            actor_id: Opaque actor id.

        Returns:
            Batch id, counts, errors and the first rows.
        """
        parsed = parse_bulk_csv(csv_text)
        errors = list(parsed.errors)
        categories = await self._category_index()

        rows: list[PreviewRow] = []
        seen_skus: set[str] = set()
        for record in parsed.records:
            try:
                row = self._validate_record(record, categories)
            except CatalogValidationError as exc:
                errors.append(f"Row {record.line}: {exc.message}")
                continue

            if row.sku is not None:
                if row.sku in seen_skus:
                    errors.append(f'Row {row.line}: duplicate SKU "{row.sku}" within batch')
                    continue
                seen_skus.add(row.sku)

                existing = await self.products.find_ids_by_sku(row.sku)
                if len(existing) > 1:
                    errors.append(
                        f'Row {row.line}: SKU "{row.sku}" matches {len(existing)} existing products'
                    )
                    continue
                if existing:
                    row = PreviewRow(
                        **{**row.to_dict(), "action": ACTION_UPDATE, "existing_id": existing[0]}
                    )

            rows.append(row)

        batch_id = generate_batch_id()
        await self.history.create_bulk_operation(
            batch_id,
            BulkOperationType.IMPORT,
            actor_id,
            total_items=len(rows),
            preview_data=[row.to_dict() for row in rows],
            errors=errors,
        )

        creates = sum(1 for row in rows if row.action == ACTION_CREATE)
        logger.info(
            "Bulk preview created",
            batch_id=batch_id,
            total_rows=len(rows),
            creates=creates,
            updates=len(rows) - creates,
            errors=len(errors),
            actor_id=actor_id,
        )
        return BulkPreview(
            batch_id=batch_id,
            total_rows=len(rows),
            creates=creates,
            updates=len(rows) - creates,
            errors=errors,
            preview_rows=rows[: self.preview_row_limit],
        )

    @returns_result
    async def get_bulk_operation(self, batch_id: str) -> BulkOperationRecord:
        """Get one bulk operation including its stored rows."""
        operation = await self.history.load_bulk_operation(batch_id)
        if operation is None:
            raise NotFoundError("Bulk operation", batch_id)
        return operation

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    async def _apply_row(self, row: PreviewRow, batch_id: str, actor_id: str) -> Result:
        if row.action == ACTION_UPDATE and row.existing_id is not None:
            return await self.products.update_product(
                row.existing_id, row.product_fields(), actor_id, batch_id=batch_id
            )
        return await self.products.add_product(
            row.product_fields(), actor_id, batch_id=batch_id
        )

    async def _notify(
        self,
        progress: ProgressSink | None,
        processed: int,
        total: int,
        success_count: int,
        error_count: int,
    ) -> None:
        if progress is None:
            return
        try:
            outcome = progress(processed, total, success_count, error_count)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.warning("Bulk progress sink failed", processed=processed, total=total, exc_info=True)

    @returns_result
    async def commit_bulk_operation(
        self,
        batch_id: str,
        actor_id: str,
        progress: ProgressSink | None = None,
    ) -> CommitSummary:
        """Apply a previewed import.

        Rows are applied in chunks, one transaction per chunk. A row that
        fails validation is counted as an error without stopping its
        chunk; a storage failure rolls the whole chunk back and counts
        every row in it as an error. After each chunk ``progress`` is
        called with ``(processed, total, success_count, error_count)``;
        failures of the sink are logged and ignored.

        Args:
            batch_id: Batch created by ``create_bulk_preview``.
            actor_id: Opaque actor id.
            progress: Optional sync or async progress callback.

        Returns:
            Counters and error messages (preview errors first).
        """
        operation = await self.history.load_bulk_operation(batch_id)
        if operation is None:
            raise NotFoundError("Bulk operation", batch_id)
        validate_bulk_transition(batch_id, operation.status, BulkOperationStatus.COMMITTED)

        rows = [PreviewRow.from_dict(data) for data in operation.preview_data]
        if not rows:
            raise CatalogValidationError(
                "No rows to process", details={"batch_id": batch_id}
            )

        total = len(rows)
        success_count = 0
        error_count = 0
        errors = list(operation.errors)

        for start in range(0, total, self.chunk_size):
            chunk = rows[start : start + self.chunk_size]
            chunk_success = 0
            chunk_errors: list[str] = []
            try:
                async with self.gateway.transaction():
                    for row in chunk:
                        result = await self._apply_row(row, batch_id, actor_id)
                        if result.ok:
                            chunk_success += 1
                        else:
                            chunk_errors.append(f"Row {row.line}: {result.error.message}")
            except StorageError as exc:
                logger.error(
                    "Bulk chunk rolled back",
                    batch_id=batch_id,
                    offset=start,
                    rows=len(chunk),
                    error=exc.message,
                )
                error_count += len(chunk)
                errors.append(
                    f"Rows {chunk[0].line}-{chunk[-1].line}: rolled back ({exc.message})"
                )
            else:
                success_count += chunk_success
                error_count += len(chunk_errors)
                errors.extend(chunk_errors)

            await self._notify(
                progress, start + len(chunk), total, success_count, error_count
            )

        await self.history.finish_commit(batch_id, success_count, error_count, errors)
        self.categories.invalidate_tree_cache()
        logger.info(
            "Bulk import committed",
            batch_id=batch_id,
            success_count=success_count,
            error_count=error_count,
            actor_id=actor_id,
        )
        return CommitSummary(
            batch_id=batch_id,
            total=total,
            success_count=success_count,
            error_count=error_count,
            errors=errors,
        )

    # ------------------------------------------------------------------
    # Nuke
    # ------------------------------------------------------------------

    @returns_result
    async def nuke_all_products(self, actor_id: str) -> NukeSummary:
        """Archive every active product as one revertible batch.

        Returns:
            The batch id and how many products were archived.
        """
        batch_id = generate_batch_id()
        async with self.gateway.transaction():
            products = await self.gateway.fetch_all(
                select(Product).where(Product.status == ACTIVE).order_by(Product.id)
            )
            if not products:
                raise StateConflictError("There are no active products to archive")

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

            await self.history.create_bulk_operation(
                batch_id,
                BulkOperationType.NUKE,
                actor_id,
                status=BulkOperationStatus.COMMITTED,
                total_items=len(products),
                success_count=len(products),
            )

        self.categories.invalidate_tree_cache()
        logger.warning(
            "All products archived",
            batch_id=batch_id,
            archived=len(products),
            actor_id=actor_id,
        )
        return NukeSummary(batch_id=batch_id, archived_count=len(products))
