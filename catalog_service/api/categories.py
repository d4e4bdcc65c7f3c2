"""Category API endpoints.

Provides endpoints for browsing and editing the category tree.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from catalog_service.api.deps import get_actor_id, get_catalog, unwrap
from catalog_service.api.schemas import (
    BatchResponse,
    CategoryCreateRequest,
    CategoryNodeSchema,
    CategoryRenameRequest,
    CategoryResponse,
    CategoryTreeResponse,
    DeleteImpactResponse,
    ErrorResponse,
)
from catalog_service.catalog.cache import CategoryNode
from catalog_service.catalog.service import CatalogService

router = APIRouter(prefix="/categories", tags=["Categories"])

Catalog = Annotated[CatalogService, Depends(get_catalog)]
Actor = Annotated[str, Depends(get_actor_id)]


def tree_to_response(nodes: list[CategoryNode]) -> CategoryTreeResponse:
    """Convert tree nodes to response schema."""
    return CategoryTreeResponse(
        categories=[CategoryNodeSchema(**node.to_dict()) for node in nodes],
        total=len(nodes),
    )


# ============================================================================
# Reads
# ============================================================================


@router.get(
    "/tree",
    response_model=CategoryTreeResponse,
    summary="Get category tree",
    description="Flat list of categories with depth and active child/product counts.",
)
async def get_category_tree(
    catalog: Catalog,
    include_archived: Annotated[bool, Query(description="Include archived categories")] = False,
) -> CategoryTreeResponse:
    """Get the category tree."""
    return tree_to_response(unwrap(await catalog.categories.get_category_tree(include_archived)))


@router.get("/roots", response_model=CategoryTreeResponse, summary="List root categories")
async def get_root_categories(catalog: Catalog) -> CategoryTreeResponse:
    """List active root categories."""
    return tree_to_response(unwrap(await catalog.categories.get_root_categories()))


@router.get(
    "/{category_id}",
    response_model=CategoryResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get category",
)
async def get_category(category_id: int, catalog: Catalog) -> CategoryResponse:
    """Get a category by ID."""
    return CategoryResponse(**unwrap(await catalog.categories.get_category(category_id)))


@router.get(
    "/{category_id}/children",
    response_model=CategoryTreeResponse,
    summary="List subcategories",
)
async def get_subcategories(category_id: int, catalog: Catalog) -> CategoryTreeResponse:
    """List the active direct children of a category."""
    return tree_to_response(unwrap(await catalog.categories.get_subcategories(category_id)))


@router.get(
    "/{category_id}/delete-impact",
    response_model=DeleteImpactResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Preview category delete",
    description="Count what deleting the category would archive.",
)
async def get_category_delete_impact(category_id: int, catalog: Catalog) -> DeleteImpactResponse:
    """Describe the impact of deleting a category."""
    impact = unwrap(await catalog.categories.get_category_delete_impact(category_id))
    return DeleteImpactResponse(**impact.to_dict())


# ============================================================================
# Mutations
# ============================================================================


@router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Create category",
)
async def create_category(
    request: CategoryCreateRequest,
    catalog: Catalog,
    actor_id: Actor,
) -> CategoryResponse:
    """Create a root category or a subcategory."""
    category = unwrap(
        await catalog.categories.add_category(request.name, request.parent_id, actor_id)
    )
    return CategoryResponse(**category)


@router.patch(
    "/{category_id}",
    response_model=CategoryResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Rename category",
)
async def rename_category(
    category_id: int,
    request: CategoryRenameRequest,
    catalog: Catalog,
    actor_id: Actor,
) -> CategoryResponse:
    """Rename a category."""
    category = unwrap(
        await catalog.categories.rename_category(category_id, request.name, actor_id)
    )
    return CategoryResponse(**category)


@router.delete(
    "/{category_id}",
    response_model=BatchResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Delete category",
    description="Archive the category, its subcategories and their products as one batch.",
)
async def delete_category(
    category_id: int,
    catalog: Catalog,
    actor_id: Actor,
) -> BatchResponse:
    """Soft-delete a category subtree."""
    batch_id = unwrap(await catalog.categories.delete_category(category_id, actor_id))
    return BatchResponse(batch_id=batch_id)


@router.post(
    "/{category_id}/restore",
    response_model=CategoryResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Restore category",
)
async def restore_category(
    category_id: int,
    catalog: Catalog,
    actor_id: Actor,
) -> CategoryResponse:
    """Reactivate an archived category."""
    category = unwrap(await catalog.categories.restore_category(category_id, actor_id))
    return CategoryResponse(**category)
