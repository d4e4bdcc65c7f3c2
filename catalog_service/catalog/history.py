"""History recorder.

Append-only audit log of catalog mutations and the ledger of bulk
operations. Every create/update/delete/restore/revert performed by the
catalog services is written here, optionally tagged with a batch id so
the whole batch can be reverted later.
"""

import json
import secrets
import time
from dataclasses import dataclass, field
from typing import Any

import structlog
from sqlalchemy import insert, select, update

from catalog_service.catalog.models import BulkOperation, ProductHistory, utcnow
from catalog_service.domain.exceptions import CatalogValidationError
from catalog_service.domain.result import returns_result
from catalog_service.domain.statuses import (
    BulkOperationStatus,
    BulkOperationType,
    EntityType,
    HistoryAction,
)
from catalog_service.infrastructure.storage import StorageGateway

logger = structlog.get_logger()


def generate_batch_id() -> str:
    """Generate a globally unique batch identifier."""
    return f"batch_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def _encode(data: dict[str, Any] | None) -> str | None:
    if data is None:
        return None
    return json.dumps(data, sort_keys=True, default=str)


def _decode(raw: str | None) -> Any:
    if raw is None:
        return None
    return json.loads(raw)


@dataclass(frozen=True)
class HistoryEntry:
    """Immutable audit record.

    Attributes:
        id: Entry identifier (monotonic with apply order).
        entity_type: "category" or "product".
        entity_id: Id of the affected entity.
        action: Mutation kind.
        old_data: Snapshot before the change (None on create).
        new_data: Snapshot after the change.
        changed_by: Actor id.
        changed_at: When the change was recorded.
        batch_id: Batch tag, if any.
        reverted: Whether this entry has been reverted.
    """

    id: int
    entity_type: EntityType
    entity_id: int
    action: HistoryAction
    old_data: dict[str, Any] | None
    new_data: dict[str, Any] | None
    changed_by: str
    changed_at: Any
    batch_id: str | None
    reverted: bool

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "HistoryEntry":
        """Build an entry from a product_history row."""
        return cls(
            id=row["id"],
            entity_type=EntityType(row["entity_type"]),
            entity_id=row["entity_id"],
            action=HistoryAction(row["action"]),
            old_data=_decode(row["old_data"]),
            new_data=_decode(row["new_data"]),
            changed_by=row["changed_by"],
            changed_at=row["changed_at"],
            batch_id=row["batch_id"],
            reverted=bool(row["reverted"]),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "entity_type": self.entity_type.value,
            "entity_id": self.entity_id,
            "action": self.action.value,
            "old_data": self.old_data,
            "new_data": self.new_data,
            "changed_by": self.changed_by,
            "changed_at": _isoformat(self.changed_at),
            "batch_id": self.batch_id,
            "reverted": self.reverted,
        }


@dataclass(frozen=True)
class BulkOperationRecord:
    """Lifecycle record for one batch.

    Attributes:
        id: Surrogate key (monotonic with creation order).
        batch_id: Batch identifier.
        type: Kind of batch.
        status: Lifecycle state.
        total_items: Rows (or entities) in the batch.
        success_count: Rows applied successfully.
        error_count: Rows that failed.
        preview_data: Classified rows persisted at preview time.
        errors: Error messages collected during preview and commit.
        created_by: Actor id.
        created_at: Creation timestamp.
        committed_at: Commit timestamp, None while pending.
    """

    id: int
    batch_id: str
    type: BulkOperationType
    status: BulkOperationStatus
    total_items: int
    success_count: int
    error_count: int
    preview_data: list[dict[str, Any]] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    created_by: str = ""
    created_at: Any = None
    committed_at: Any = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "BulkOperationRecord":
        """Build a record from a bulk_operations row."""
        return cls(
            id=row["id"],
            batch_id=row["batch_id"],
            type=BulkOperationType(row["type"]),
            status=BulkOperationStatus(row["status"]),
            total_items=row["total_items"],
            success_count=row["success_count"],
            error_count=row["error_count"],
            preview_data=_decode(row["preview_data"]) or [],
            errors=_decode(row["errors"]) or [],
            created_by=row["created_by"],
            created_at=row["created_at"],
            committed_at=row["committed_at"],
        )

    def to_dict(self, include_preview: bool = False) -> dict[str, Any]:
        """Convert to dictionary.

        Args:
            include_preview: Whether to include the stored preview rows.
        """
        data = {
            "batch_id": self.batch_id,
            "type": self.type.value,
            "status": self.status.value,
            "total_items": self.total_items,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "errors": list(self.errors),
            "created_by": self.created_by,
            "created_at": _isoformat(self.created_at),
            "committed_at": _isoformat(self.committed_at),
        }
        if include_preview:
            data["preview_data"] = list(self.preview_data)
        return data


def _isoformat(value: Any) -> Any:
    return value.isoformat() if hasattr(value, "isoformat") else value


class HistoryRecorder:
    """Append-only history log and bulk operation ledger."""

    def __init__(self, gateway: StorageGateway) -> None:
        """Initialize recorder.

        Args:
            gateway: Storage gateway.
        """
        self.gateway = gateway

    # ------------------------------------------------------------------
    # Append
    # ------------------------------------------------------------------

    async def record(
        self,
        entity_type: EntityType,
        entity_id: int,
        action: HistoryAction,
        old_data: dict[str, Any] | None,
        new_data: dict[str, Any] | None,
        actor_id: str,
        batch_id: str | None = None,
    ) -> int:
        """Append one history entry.

        Args:
            entity_type: Kind of entity changed.
            entity_id: Id of the entity.
            action: Mutation kind.
            old_data: Full snapshot before the change.
            new_data: Full snapshot after the change.
            actor_id: Opaque actor id.
            batch_id: Optional batch tag.

        Returns:
            Id of the new entry.
        """
        result = await self.gateway.execute(
            insert(ProductHistory).values(
                entity_type=entity_type.value,
                entity_id=entity_id,
                action=action.value,
                old_data=_encode(old_data),
                new_data=_encode(new_data),
                changed_by=str(actor_id),
                changed_at=utcnow(),
                batch_id=batch_id,
                reverted=False,
            )
        )
        return result.last_insert_id

    async def mark_reverted(self, history_id: int) -> None:
        """Flag an entry as reverted."""
        await self.gateway.execute(
            update(ProductHistory)
            .where(ProductHistory.id == history_id)
            .values(reverted=True)
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def load_entry(self, history_id: int) -> HistoryEntry | None:
        """Load one entry by id."""
        row = await self.gateway.fetch_one(
            select(ProductHistory).where(ProductHistory.id == history_id)
        )
        return HistoryEntry.from_row(row) if row else None

    async def pending_batch_entries(self, batch_id: str) -> list[HistoryEntry]:
        """Load unreverted entries of a batch, newest first."""
        rows = await self.gateway.fetch_all(
            select(ProductHistory)
            .where(
                ProductHistory.batch_id == batch_id,
                ProductHistory.reverted.is_(False),
            )
            .order_by(ProductHistory.id.desc())
        )
        return [HistoryEntry.from_row(row) for row in rows]

    @returns_result
    async def get_recent_history(
        self,
        limit: int = 20,
        entity_type: EntityType | str | None = None,
    ) -> list[HistoryEntry]:
        """Get the most recent history entries.

        Args:
            limit: Maximum entries to return.
            entity_type: Optional entity kind filter.

        Returns:
            Entries, newest first.
        """
        _check_limit(limit)
        query = select(ProductHistory)
        if entity_type is not None:
            query = query.where(
                ProductHistory.entity_type == _entity_type(entity_type).value
            )
        query = query.order_by(ProductHistory.id.desc()).limit(limit)
        rows = await self.gateway.fetch_all(query)
        return [HistoryEntry.from_row(row) for row in rows]

    @returns_result
    async def get_entity_history(
        self,
        entity_type: EntityType | str,
        entity_id: int,
        limit: int = 30,
    ) -> list[HistoryEntry]:
        """Get history of one entity, newest first."""
        _check_limit(limit)
        rows = await self.gateway.fetch_all(
            select(ProductHistory)
            .where(
                ProductHistory.entity_type == _entity_type(entity_type).value,
                ProductHistory.entity_id == entity_id,
            )
            .order_by(ProductHistory.id.desc())
            .limit(limit)
        )
        return [HistoryEntry.from_row(row) for row in rows]

    # ------------------------------------------------------------------
    # Bulk operation ledger
    # ------------------------------------------------------------------

    async def create_bulk_operation(
        self,
        batch_id: str,
        operation_type: BulkOperationType,
        actor_id: str,
        *,
        status: BulkOperationStatus = BulkOperationStatus.PENDING_PREVIEW,
        total_items: int = 0,
        success_count: int = 0,
        error_count: int = 0,
        preview_data: list[dict[str, Any]] | None = None,
        errors: list[str] | None = None,
    ) -> None:
        """Persist a new bulk operation record."""
        now = utcnow()
        await self.gateway.execute(
            insert(BulkOperation).values(
                batch_id=batch_id,
                type=operation_type.value,
                status=status.value,
                total_items=total_items,
                success_count=success_count,
                error_count=error_count,
                preview_data=json.dumps(preview_data or []),
                errors=json.dumps(errors or []),
                created_by=str(actor_id),
                created_at=now,
                committed_at=now if status == BulkOperationStatus.COMMITTED else None,
            )
        )

    async def load_bulk_operation(self, batch_id: str) -> BulkOperationRecord | None:
        """Load a bulk operation by batch id."""
        row = await self.gateway.fetch_one(
            select(BulkOperation).where(BulkOperation.batch_id == batch_id)
        )
        return BulkOperationRecord.from_row(row) if row else None

    async def finish_commit(
        self,
        batch_id: str,
        success_count: int,
        error_count: int,
        errors: list[str],
    ) -> None:
        """Move a bulk operation to committed with its counters."""
        await self.gateway.execute(
            update(BulkOperation)
            .where(BulkOperation.batch_id == batch_id)
            .values(
                status=BulkOperationStatus.COMMITTED.value,
                success_count=success_count,
                error_count=error_count,
                errors=json.dumps(errors),
                committed_at=utcnow(),
            )
        )

    async def mark_bulk_reverted(self, batch_id: str) -> None:
        """Move a bulk operation to reverted."""
        await self.gateway.execute(
            update(BulkOperation)
            .where(BulkOperation.batch_id == batch_id)
            .values(status=BulkOperationStatus.REVERTED.value)
        )

    @returns_result
    async def get_bulk_operations(self, limit: int = 10) -> list[BulkOperationRecord]:
        """Get bulk operations, newest first."""
        _check_limit(limit)
        rows = await self.gateway.fetch_all(
            select(BulkOperation).order_by(BulkOperation.id.desc()).limit(limit)
        )
        return [BulkOperationRecord.from_row(row) for row in rows]


def _check_limit(limit: int) -> None:
    if limit < 1:
        raise CatalogValidationError("Limit must be at least 1", details={"limit": limit})


def _entity_type(value: EntityType | str) -> EntityType:
    try:
        return EntityType(value)
    except ValueError:
        raise CatalogValidationError(
            f"Unknown entity type '{value}'",
            details={"entity_type": value},
        ) from None
