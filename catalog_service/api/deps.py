"""Shared API dependencies.

Resolves the catalog facade from application state, reads the actor
header, and turns failed results into HTTP errors.
"""

from typing import Annotated, TypeVar

from fastapi import Header, HTTPException, Request, status

from catalog_service.catalog.service import CatalogService
from catalog_service.domain.exceptions import CatalogError, ErrorCode
from catalog_service.domain.result import Result

T = TypeVar("T")

ACTOR_HEADER = "X-Actor-ID"

STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.VALIDATION: 422,
    ErrorCode.DUPLICATE_NAME: status.HTTP_409_CONFLICT,
    ErrorCode.DUPLICATE_SKU: status.HTTP_409_CONFLICT,
    ErrorCode.ARCHIVED: status.HTTP_409_CONFLICT,
    ErrorCode.NOT_LEAF: status.HTTP_409_CONFLICT,
    ErrorCode.STATE_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.STORAGE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_catalog(request: Request) -> CatalogService:
    """Get the catalog facade created at startup."""
    return request.app.state.catalog


def get_actor_id(
    x_actor_id: Annotated[str | None, Header(alias=ACTOR_HEADER)] = None,
) -> str:
    """Get the acting user's id from the request header.

    Raises:
        HTTPException: 400 if the header is missing or blank.
    """
    if x_actor_id is None or not x_actor_id.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error_code": ErrorCode.VALIDATION.value,
                "message": f"Missing {ACTOR_HEADER} header",
            },
        )
    return x_actor_id.strip()


def error_to_http(error: CatalogError) -> HTTPException:
    """Map a catalog error to an HTTP exception."""
    return HTTPException(
        status_code=STATUS_BY_CODE.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail=error.to_dict(),
    )


def unwrap(result: Result[T]) -> T:
    """Return the result value or raise the matching HTTP error.

    Raises:
        HTTPException: If the result is a failure.
    """
    if result.error is not None:
        raise error_to_http(result.error)
    return result.value  # type: ignore[return-value]
