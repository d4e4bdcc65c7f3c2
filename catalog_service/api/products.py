"""Product API endpoints.

Provides endpoints for searching, editing and exporting products.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import PlainTextResponse

from catalog_service.api.deps import get_actor_id, get_catalog, unwrap
from catalog_service.api.schemas import (
    ErrorResponse,
    ProductCreateRequest,
    ProductPageResponse,
    ProductResponse,
    ProductUpdateRequest,
)
from catalog_service.catalog.service import CatalogService
from catalog_service.infrastructure.config import settings

router = APIRouter(prefix="/products", tags=["Products"])

Catalog = Annotated[CatalogService, Depends(get_catalog)]
Actor = Annotated[str, Depends(get_actor_id)]


# ============================================================================
# Reads
# ============================================================================


@router.get(
    "",
    response_model=ProductPageResponse,
    responses={422: {"model": ErrorResponse}},
    summary="Search products",
    description="Case-insensitive search over name, SKU and description with pagination.",
)
async def search_products(
    catalog: Catalog,
    query: Annotated[str | None, Query(description="Text to search for")] = None,
    category_id: Annotated[int | None, Query(description="Filter by category")] = None,
    product_status: Annotated[
        str | None, Query(alias="status", description="Filter by status (default: not archived)")
    ] = None,
    page: Annotated[int, Query(description="Page number (1-based, clamped)")] = 1,
    page_size: Annotated[
        int | None, Query(ge=1, le=settings.max_page_size, description="Products per page")
    ] = None,
) -> ProductPageResponse:
    """Search products."""
    result = await catalog.products.search_products(
        query=query,
        category_id=category_id,
        status=product_status,
        page=page,
        page_size=page_size,
    )
    return ProductPageResponse(**unwrap(result).to_dict())


@router.get(
    "/export.csv",
    response_class=PlainTextResponse,
    summary="Export products",
    description="Active products as CSV, ordered by category name, sort order and name.",
)
async def export_products(
    catalog: Catalog,
    category_id: Annotated[int | None, Query(description="Only this category")] = None,
) -> PlainTextResponse:
    """Export active products as CSV."""
    csv_text = unwrap(await catalog.stats.export_products_csv(category_id))
    return PlainTextResponse(
        csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="products.csv"'},
    )


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get product",
)
async def get_product(product_id: int, catalog: Catalog) -> ProductResponse:
    """Get a product by ID."""
    return ProductResponse(**unwrap(await catalog.products.get_product(product_id)))


# ============================================================================
# Mutations
# ============================================================================


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Create product",
)
async def create_product(
    request: ProductCreateRequest,
    catalog: Catalog,
    actor_id: Actor,
) -> ProductResponse:
    """Create a product in a leaf category."""
    product = unwrap(await catalog.products.add_product(request.model_dump(), actor_id))
    return ProductResponse(**product)


@router.patch(
    "/{product_id}",
    response_model=ProductResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Update product",
)
async def update_product(
    product_id: int,
    request: ProductUpdateRequest,
    catalog: Catalog,
    actor_id: Actor,
) -> ProductResponse:
    """Update the fields sent in the request body."""
    changes = request.model_dump(exclude_unset=True)
    product = unwrap(await catalog.products.update_product(product_id, changes, actor_id))
    return ProductResponse(**product)


@router.delete(
    "/{product_id}",
    response_model=ProductResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Delete product",
)
async def delete_product(
    product_id: int,
    catalog: Catalog,
    actor_id: Actor,
) -> ProductResponse:
    """Archive a product."""
    return ProductResponse(**unwrap(await catalog.products.delete_product(product_id, actor_id)))


@router.post(
    "/{product_id}/restore",
    response_model=ProductResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Restore product",
)
async def restore_product(
    product_id: int,
    catalog: Catalog,
    actor_id: Actor,
) -> ProductResponse:
    """Reactivate an archived product."""
    return ProductResponse(**unwrap(await catalog.products.restore_product(product_id, actor_id)))
