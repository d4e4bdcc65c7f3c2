"""Catalog exceptions.

Errors raised by the catalog services when an operation violates a
business rule or the backing store fails. Each error carries a
machine-readable ``ErrorCode`` so the boundary can turn it into a
structured result.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Machine codes carried by failed results."""

    NOT_FOUND = "NOT_FOUND"
    DUPLICATE_NAME = "DUPLICATE_NAME"
    DUPLICATE_SKU = "DUPLICATE_SKU"
    VALIDATION = "VALIDATION"
    ARCHIVED = "ARCHIVED"
    NOT_LEAF = "NOT_LEAF"
    STATE_CONFLICT = "STATE_CONFLICT"
    STORAGE = "STORAGE"


class CatalogError(Exception):
    """Base class for all catalog exceptions.

    Subclasses fix the ``code``; callers catch ``CatalogError`` to handle
    every expected failure in one place.
    """

    code: ErrorCode = ErrorCode.VALIDATION

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize catalog error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "error_code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


# ============================================================================
# Lookup Errors
# ============================================================================


class NotFoundError(CatalogError):
    """Raised when an id does not resolve to a row."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, entity: str, entity_id: Any) -> None:
        """Initialize not found error.

        Args:
            entity: Human name of the entity kind (e.g. "Category").
            entity_id: The id that was looked up.
        """
        super().__init__(
            f"{entity} {entity_id} not found",
            details={"entity": entity, "id": entity_id},
        )


# ============================================================================
# Uniqueness Errors
# ============================================================================


class DuplicateNameError(CatalogError):
    """Raised when an active sibling already uses the category name."""

    code = ErrorCode.DUPLICATE_NAME

    def __init__(self, name: str, parent_id: int | None) -> None:
        """Initialize duplicate name error.

        Args:
            name: The conflicting name.
            parent_id: Parent category id, None for roots.
        """
        super().__init__(
            f'A category named "{name}" already exists at this level',
            details={"name": name, "parent_id": parent_id},
        )


class DuplicateSkuError(CatalogError):
    """Raised when a non-archived product already holds the SKU."""

    code = ErrorCode.DUPLICATE_SKU

    def __init__(self, sku: str) -> None:
        """Initialize duplicate SKU error.

        Args:
            sku: The conflicting SKU.
        """
        super().__init__(f'SKU "{sku}" already exists', details={"sku": sku})


# ============================================================================
# Validation and State Errors
# ============================================================================


class CatalogValidationError(CatalogError):
    """Raised for malformed input (empty name, bad price, oversized fields)."""

    code = ErrorCode.VALIDATION


class ArchivedError(CatalogError):
    """Raised when an operation needs an active entity but found an archived one."""

    code = ErrorCode.ARCHIVED


class NotLeafError(CatalogError):
    """Raised when products are placed in a category that has active children."""

    code = ErrorCode.NOT_LEAF

    def __init__(self, category_id: int) -> None:
        """Initialize not leaf error.

        Args:
            category_id: Category that still has active subcategories.
        """
        super().__init__(
            f"Category {category_id} has subcategories; products can only be placed in leaf categories",
            details={"category_id": category_id},
        )


class StateConflictError(CatalogError):
    """Raised when the entity or batch is not in a state that allows the operation."""

    code = ErrorCode.STATE_CONFLICT


# ============================================================================
# Storage Errors
# ============================================================================


class StorageError(CatalogError):
    """Raised when the backing store fails.

    Unlike the other catalog errors this one is not converted into a
    failed result; it propagates to the caller.
    """

    code = ErrorCode.STORAGE
