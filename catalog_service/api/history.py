"""History API endpoints.

Provides endpoints for reading the audit log and reverting changes.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from catalog_service.api.deps import get_actor_id, get_catalog, unwrap
from catalog_service.api.schemas import ErrorResponse, HistoryEntrySchema, HistoryListResponse
from catalog_service.catalog.history import HistoryEntry
from catalog_service.catalog.service import CatalogService

router = APIRouter(prefix="/history", tags=["History"])

Catalog = Annotated[CatalogService, Depends(get_catalog)]


def entries_to_response(entries: list[HistoryEntry]) -> HistoryListResponse:
    """Convert history entries to response schema."""
    return HistoryListResponse(
        entries=[HistoryEntrySchema(**entry.to_dict()) for entry in entries],
        total=len(entries),
    )


@router.get(
    "",
    response_model=HistoryListResponse,
    responses={422: {"model": ErrorResponse}},
    summary="Recent history",
)
async def get_recent_history(
    catalog: Catalog,
    limit: Annotated[int, Query(ge=1, le=500, description="Maximum entries")] = 20,
    entity_type: Annotated[
        str | None, Query(description="Only 'category' or 'product' entries")
    ] = None,
) -> HistoryListResponse:
    """Get the most recent history entries."""
    entries = unwrap(await catalog.history.get_recent_history(limit, entity_type))
    return entries_to_response(entries)


@router.get(
    "/{entity_type}/{entity_id}",
    response_model=HistoryListResponse,
    responses={422: {"model": ErrorResponse}},
    summary="Entity history",
)
async def get_entity_history(
    entity_type: str,
    entity_id: int,
    catalog: Catalog,
    limit: Annotated[int, Query(ge=1, le=500, description="Maximum entries")] = 30,
) -> HistoryListResponse:
    """Get the history of one category or product."""
    entries = unwrap(await catalog.history.get_entity_history(entity_type, entity_id, limit))
    return entries_to_response(entries)


@router.post(
    "/{history_id}/revert",
    response_model=HistoryEntrySchema,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Revert change",
    description="Apply the inverse of a history entry; returns the new revert entry.",
)
async def revert_change(
    history_id: int,
    catalog: Catalog,
    actor_id: Annotated[str, Depends(get_actor_id)],
) -> HistoryEntrySchema:
    """Revert a single change."""
    entry = unwrap(await catalog.reverts.revert_change(history_id, actor_id))
    return HistoryEntrySchema(**entry.to_dict())
