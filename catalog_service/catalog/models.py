"""SQLAlchemy models for the product catalog.

Defines the categories, products, product_history and bulk_operations
tables. Entities are never physically removed; soft-delete flips
``status`` to ``archived``.
"""

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from catalog_service.infrastructure.database import Base


def utcnow() -> datetime:
    """Current UTC timestamp."""
    return datetime.now(timezone.utc)


def to_snapshot(row: Mapping[str, Any]) -> dict[str, Any]:
    """Convert a fetched row into a JSON-safe dictionary.

    Args:
        row: Row mapping as returned by the storage gateway.

    Returns:
        Copy of the row with datetimes rendered as ISO strings.
    """
    return {
        key: value.isoformat() if isinstance(value, datetime) else value
        for key, value in row.items()
    }


class Category(Base):
    """Node in the category forest.

    Attributes:
        id: Category identifier.
        name: Display name, unique among active siblings (case-insensitive).
        parent_id: Parent category, None for roots.
        status: "active" or "archived".
        sort_order: Position among siblings.
        created_at: Creation timestamp.
        updated_at: Last update timestamp.
        created_by: Opaque actor id of the creator.
    """

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    parent_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("categories.id"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        Index("ix_categories_parent_status", "parent_id", "status"),
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Category(id={self.id}, name={self.name}, status={self.status})>"


# Active siblings never share a name; roots are grouped under parent 0
Index(
    "ux_categories_active_sibling_name",
    func.lower(Category.name),
    func.coalesce(Category.parent_id, 0),
    unique=True,
    sqlite_where=text("status = 'active'"),
    postgresql_where=text("status = 'active'"),
)


class Product(Base):
    """Product owned by exactly one (leaf) category.

    Attributes:
        id: Product identifier.
        name: Product name.
        description: Optional description.
        price: Non-negative price.
        category_id: Owning category.
        sku: Optional SKU, unique among non-archived products.
        stock_quantity: Units in stock, -1 for unlimited.
        image_url: Optional image URL.
        status: "active" or "archived".
        sort_order: Position within the category.
        created_at: Creation timestamp.
        updated_at: Last update timestamp.
        created_by: Opaque actor id of the creator.
    """

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("categories.id"), nullable=False
    )
    sku: Mapped[str | None] = mapped_column(String(50), nullable=True)
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=-1)
    image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        Index("ix_products_category_status_order", "category_id", "status", "sort_order"),
        Index(
            "ix_products_sku",
            "sku",
            sqlite_where=text("sku IS NOT NULL"),
            postgresql_where=text("sku IS NOT NULL"),
        ),
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Product(id={self.id}, sku={self.sku}, name={self.name[:30]})>"


# A SKU belongs to at most one non-archived product
Index(
    "ux_products_live_sku",
    Product.sku,
    unique=True,
    sqlite_where=text("sku IS NOT NULL AND status != 'archived'"),
    postgresql_where=text("sku IS NOT NULL AND status != 'archived'"),
)


class ProductHistory(Base):
    """Append-only audit record of one catalog mutation.

    ``old_data`` and ``new_data`` hold full JSON snapshots of the entity
    so later schema changes never break historical records.
    """

    __tablename__ = "product_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    old_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    changed_by: Mapped[str] = mapped_column(String(100), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    batch_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reverted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_product_history_entity", "entity_type", "entity_id"),
        Index("ix_product_history_batch", "batch_id"),
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ProductHistory(id={self.id}, {self.entity_type}:{self.entity_id}, "
            f"action={self.action})>"
        )


class BulkOperation(Base):
    """Lifecycle record for one batch (import, nuke or category delete)."""

    __tablename__ = "bulk_operations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    batch_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending_preview"
    )
    total_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    preview_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    errors: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    committed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_bulk_operations_status", "status"),
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<BulkOperation(batch_id={self.batch_id}, type={self.type}, status={self.status})>"
