"""Pydantic schemas for API request/response models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

# ============================================================================
# Common Schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response.

    Returned for all error conditions with consistent structure.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] = Field(
        default_factory=dict, description="Additional error context"
    )
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    service: str
    version: str


class BatchResponse(BaseModel):
    """Batch id of a change that can be reverted as a whole."""

    batch_id: str = Field(..., description="Batch tagging every change")


# ============================================================================
# Category Schemas
# ============================================================================


class CategoryCreateRequest(BaseModel):
    """Request to create a category."""

    name: str = Field(..., description="Category name (unique among active siblings)")
    parent_id: int | None = Field(default=None, description="Parent category, omit for a root")


class CategoryRenameRequest(BaseModel):
    """Request to rename a category."""

    name: str = Field(..., description="New category name")


class CategoryResponse(BaseModel):
    """Category row."""

    id: int
    name: str
    parent_id: int | None = None
    status: str
    sort_order: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    created_by: str | None = None


class CategoryNodeSchema(BaseModel):
    """Node of the flat category tree."""

    id: int
    name: str
    parent_id: int | None = None
    status: str
    sort_order: int
    depth: int = Field(..., description="Distance from the root")
    child_count: int = Field(..., description="Active direct subcategories")
    product_count: int = Field(..., description="Active products directly in the category")


class CategoryTreeResponse(BaseModel):
    """Flat category tree."""

    categories: list[CategoryNodeSchema]
    total: int


class DeleteImpactResponse(BaseModel):
    """What deleting a category would archive."""

    category: CategoryResponse
    subcat_count: int = Field(..., description="Active direct subcategories")
    product_count: int = Field(..., description="Active products directly in the category")
    all_descendant_products: int = Field(
        ..., description="Active products in all descendant categories"
    )


# ============================================================================
# Product Schemas
# ============================================================================


class ProductCreateRequest(BaseModel):
    """Request to create a product."""

    name: str = Field(..., description="Product name")
    price: float = Field(..., description="Price (non-negative)")
    category_id: int = Field(..., description="Leaf category")
    description: str | None = Field(default=None, description="Description")
    sku: str | None = Field(default=None, description="SKU (unique among non-archived products)")
    stock_quantity: int = Field(default=-1, description="Stock, -1 for unlimited")
    image_url: str | None = Field(default=None, description="Product image URL")


class ProductUpdateRequest(BaseModel):
    """Request to update a product. Only the fields sent are changed."""

    name: str | None = None
    price: float | None = None
    category_id: int | None = None
    description: str | None = None
    sku: str | None = None
    stock_quantity: int | None = None
    image_url: str | None = None
    status: str | None = None


class ProductResponse(BaseModel):
    """Product row with its category name."""

    id: int
    name: str
    description: str | None = None
    price: float
    category_id: int
    category_name: str | None = None
    sku: str | None = None
    stock_quantity: int
    image_url: str | None = None
    status: str
    sort_order: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    created_by: str | None = None


class ProductPageResponse(BaseModel):
    """One page of product search results."""

    products: list[ProductResponse]
    total: int = Field(..., description="Total number of matching products")
    page: int = Field(..., description="Current page number")
    total_pages: int = Field(..., description="Number of pages")
    page_size: int = Field(..., description="Products per page")


# ============================================================================
# History Schemas
# ============================================================================


class HistoryEntrySchema(BaseModel):
    """Audit log entry."""

    id: int
    entity_type: str
    entity_id: int
    action: str
    old_data: dict[str, Any] | None = None
    new_data: dict[str, Any] | None = None
    changed_by: str
    changed_at: datetime | None = None
    batch_id: str | None = None
    reverted: bool


class HistoryListResponse(BaseModel):
    """List of history entries, newest first."""

    entries: list[HistoryEntrySchema]
    total: int


# ============================================================================
# Bulk Schemas
# ============================================================================


class BulkPreviewRequest(BaseModel):
    """Request to preview a CSV import."""

    csv_text: str = Field(..., description="Decoded CSV text with a header row")


class PreviewRowSchema(BaseModel):
    """A validated import row."""

    line: int
    action: str = Field(..., description="create or update")
    name: str
    price: float
    category_id: int
    stock_quantity: int
    sku: str | None = None
    description: str | None = None
    existing_id: int | None = Field(default=None, description="Product updated by this row")


class BulkPreviewResponse(BaseModel):
    """Preview of a CSV import awaiting commit."""

    batch_id: str
    total_rows: int
    creates: int
    updates: int
    errors: list[str]
    preview_rows: list[PreviewRowSchema]


class BulkOperationSchema(BaseModel):
    """Bulk operation record."""

    batch_id: str
    type: str
    status: str
    total_items: int
    success_count: int
    error_count: int
    errors: list[str] = Field(default_factory=list)
    created_by: str
    created_at: datetime | None = None
    committed_at: datetime | None = None
    preview_data: list[PreviewRowSchema] | None = None


class BulkOperationsListResponse(BaseModel):
    """Bulk operations, newest first."""

    operations: list[BulkOperationSchema]
    total: int


class CommitSummaryResponse(BaseModel):
    """Outcome of a bulk commit."""

    batch_id: str
    total: int
    success_count: int
    error_count: int
    errors: list[str]


class RevertSummaryResponse(BaseModel):
    """Outcome of a batch revert."""

    batch_id: str
    reverted_count: int
    total: int
    errors: list[str]


class NukeSummaryResponse(BaseModel):
    """Outcome of archiving every product."""

    batch_id: str
    archived_count: int


# ============================================================================
# Stats Schemas
# ============================================================================


class StatsResponse(BaseModel):
    """Catalog counters."""

    active_categories: int
    active_products: int
    archived_products: int
    history_entries: int
