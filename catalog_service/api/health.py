"""Health check endpoints.

Provides endpoints for monitoring service health and readiness.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from catalog_service.api.deps import get_catalog
from catalog_service.api.schemas import HealthResponse
from catalog_service.catalog.service import CatalogService
from catalog_service.domain.exceptions import StorageError

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Check service health.

    Returns:
        Health status with service name and version.
    """
    return HealthResponse(
        status="healthy",
        service="catalog-service",
        version=request.app.version,
    )


@router.get("/ready")
async def readiness_check(
    catalog: Annotated[CatalogService, Depends(get_catalog)],
) -> JSONResponse:
    """Check that the database answers queries.

    Returns:
        Readiness status, 503 when the store is unreachable.
    """
    try:
        await catalog.gateway.ping()
    except StorageError as exc:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable", "error": exc.message},
        )
    return JSONResponse(content={"status": "ready"})
