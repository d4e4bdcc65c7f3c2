"""Domain layer: error vocabulary, tagged results and status enums."""

from catalog_service.domain.exceptions import (
    ArchivedError,
    CatalogError,
    CatalogValidationError,
    DuplicateNameError,
    DuplicateSkuError,
    ErrorCode,
    NotFoundError,
    NotLeafError,
    StateConflictError,
    StorageError,
)
from catalog_service.domain.result import Result, returns_result
from catalog_service.domain.statuses import (
    BulkOperationStatus,
    BulkOperationType,
    EntityStatus,
    EntityType,
    HistoryAction,
    validate_bulk_transition,
)

__all__ = [
    # Exceptions
    "ArchivedError",
    "CatalogError",
    "CatalogValidationError",
    "DuplicateNameError",
    "DuplicateSkuError",
    "ErrorCode",
    "NotFoundError",
    "NotLeafError",
    "StateConflictError",
    "StorageError",
    # Results
    "Result",
    "returns_result",
    # Statuses
    "BulkOperationStatus",
    "BulkOperationType",
    "EntityStatus",
    "EntityType",
    "HistoryAction",
    "validate_bulk_transition",
]
