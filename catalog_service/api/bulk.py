"""Bulk API endpoints.

Provides endpoints for CSV import (preview then commit), batch revert
and archiving every product.
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Query, status

from catalog_service.api.deps import get_actor_id, get_catalog, unwrap
from catalog_service.api.schemas import (
    BulkOperationSchema,
    BulkOperationsListResponse,
    BulkPreviewRequest,
    BulkPreviewResponse,
    CommitSummaryResponse,
    ErrorResponse,
    NukeSummaryResponse,
    RevertSummaryResponse,
)
from catalog_service.catalog.service import CatalogService

logger = structlog.get_logger()

router = APIRouter(prefix="/bulk", tags=["Bulk"])

Catalog = Annotated[CatalogService, Depends(get_catalog)]
Actor = Annotated[str, Depends(get_actor_id)]


def log_progress(processed: int, total: int, success_count: int, error_count: int) -> None:
    """Progress sink for commits started over HTTP."""
    logger.info(
        "Bulk commit progress",
        processed=processed,
        total=total,
        success_count=success_count,
        error_count=error_count,
    )


@router.get("", response_model=BulkOperationsListResponse, summary="List bulk operations")
async def list_bulk_operations(
    catalog: Catalog,
    limit: Annotated[int, Query(ge=1, le=100, description="Maximum operations")] = 10,
) -> BulkOperationsListResponse:
    """List bulk operations, newest first."""
    operations = unwrap(await catalog.history.get_bulk_operations(limit))
    return BulkOperationsListResponse(
        operations=[BulkOperationSchema(**operation.to_dict()) for operation in operations],
        total=len(operations),
    )


@router.post(
    "/preview",
    response_model=BulkPreviewResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
    summary="Preview CSV import",
    description="Validate and classify a CSV import without applying it.",
)
async def create_bulk_preview(
    request: BulkPreviewRequest,
    catalog: Catalog,
    actor_id: Actor,
) -> BulkPreviewResponse:
    """Create a bulk import preview."""
    preview = unwrap(await catalog.bulk.create_bulk_preview(request.csv_text, actor_id))
    return BulkPreviewResponse(**preview.to_dict())


@router.post(
    "/nuke",
    response_model=NukeSummaryResponse,
    responses={409: {"model": ErrorResponse}},
    summary="Archive all products",
    description="Archive every active product as one revertible batch.",
)
async def nuke_all_products(catalog: Catalog, actor_id: Actor) -> NukeSummaryResponse:
    """Archive all active products."""
    summary = unwrap(await catalog.bulk.nuke_all_products(actor_id))
    return NukeSummaryResponse(**summary.to_dict())


@router.get(
    "/{batch_id}",
    response_model=BulkOperationSchema,
    responses={404: {"model": ErrorResponse}},
    summary="Get bulk operation",
)
async def get_bulk_operation(batch_id: str, catalog: Catalog) -> BulkOperationSchema:
    """Get a bulk operation with its stored rows."""
    operation = unwrap(await catalog.bulk.get_bulk_operation(batch_id))
    return BulkOperationSchema(**operation.to_dict(include_preview=True))


@router.post(
    "/{batch_id}/commit",
    response_model=CommitSummaryResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Commit CSV import",
)
async def commit_bulk_operation(
    batch_id: str,
    catalog: Catalog,
    actor_id: Actor,
) -> CommitSummaryResponse:
    """Apply a previewed import."""
    summary = unwrap(
        await catalog.bulk.commit_bulk_operation(batch_id, actor_id, progress=log_progress)
    )
    return CommitSummaryResponse(**summary.to_dict())


@router.post(
    "/{batch_id}/revert",
    response_model=RevertSummaryResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Revert batch",
)
async def revert_bulk_operation(
    batch_id: str,
    catalog: Catalog,
    actor_id: Actor,
) -> RevertSummaryResponse:
    """Revert every change of a committed batch."""
    summary = unwrap(await catalog.reverts.revert_bulk_operation(batch_id, actor_id))
    return RevertSummaryResponse(**summary.to_dict())
