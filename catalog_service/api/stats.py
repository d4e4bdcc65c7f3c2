"""Statistics endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends

from catalog_service.api.deps import get_catalog, unwrap
from catalog_service.api.schemas import StatsResponse
from catalog_service.catalog.service import CatalogService

router = APIRouter(tags=["Stats"])


@router.get("/stats", response_model=StatsResponse, summary="Catalog counters")
async def get_stats(catalog: Annotated[CatalogService, Depends(get_catalog)]) -> StatsResponse:
    """Count active categories, active and archived products, and history entries."""
    return StatsResponse(**unwrap(await catalog.stats.get_stats()).to_dict())
