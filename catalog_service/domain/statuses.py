"""Status vocabularies and lifecycle rules for catalog entities.

Bulk operations follow a small deterministic state machine:

    PENDING_PREVIEW ──commit──► COMMITTED ──revert──► REVERTED
"""

from enum import Enum

from catalog_service.domain.exceptions import StateConflictError


class EntityStatus(str, Enum):
    """Status of a category or product."""

    ACTIVE = "active"
    ARCHIVED = "archived"


class EntityType(str, Enum):
    """Kinds of entity tracked by the history log."""

    CATEGORY = "category"
    PRODUCT = "product"


class HistoryAction(str, Enum):
    """Mutation kinds recorded in the history log."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    RESTORE = "restore"
    REVERT = "revert"


class BulkOperationType(str, Enum):
    """Kinds of batch operation."""

    IMPORT = "import"
    NUKE = "nuke"
    CATEGORY_DELETE = "category_delete"


class BulkOperationStatus(str, Enum):
    """Bulk operation lifecycle states."""

    PENDING_PREVIEW = "pending_preview"
    COMMITTED = "committed"
    REVERTED = "reverted"

    def can_transition_to(self, target: "BulkOperationStatus") -> bool:
        """Check if transition to target state is valid.

        Args:
            target: The target state.

        Returns:
            True if transition is allowed.
        """
        return target in self.allowed_transitions()

    def allowed_transitions(self) -> list["BulkOperationStatus"]:
        """Get list of valid target states from current state."""
        return _BULK_TRANSITIONS[self]

    def is_terminal(self) -> bool:
        """Check if this is a terminal state."""
        return not self.allowed_transitions()


_BULK_TRANSITIONS: dict[BulkOperationStatus, list[BulkOperationStatus]] = {
    BulkOperationStatus.PENDING_PREVIEW: [BulkOperationStatus.COMMITTED],
    BulkOperationStatus.COMMITTED: [BulkOperationStatus.REVERTED],
    BulkOperationStatus.REVERTED: [],
}


def validate_bulk_transition(
    batch_id: str,
    current: BulkOperationStatus,
    target: BulkOperationStatus,
) -> None:
    """Validate a bulk operation state transition.

    Args:
        batch_id: Batch identifier (for the error message).
        current: Current state.
        target: Requested state.

    Raises:
        StateConflictError: If the transition is not allowed.
    """
    if not current.can_transition_to(target):
        raise StateConflictError(
            f"Bulk operation {batch_id} cannot move from '{current.value}' to '{target.value}'",
            details={
                "batch_id": batch_id,
                "current_state": current.value,
                "target_state": target.value,
                "allowed_transitions": [s.value for s in current.allowed_transitions()],
            },
        )
