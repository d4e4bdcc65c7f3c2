"""Process-local cache of the active category tree."""

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CategoryNode:
    """Flat tree node returned by the category tree read model.

    Attributes:
        id: Category id.
        name: Category name.
        parent_id: Parent id, None for roots.
        status: "active" or "archived".
        sort_order: Position among siblings.
        depth: Distance from the root among the returned rows.
        child_count: Active direct subcategories.
        product_count: Active products directly in this category.
    """

    id: int
    name: str
    parent_id: int | None
    status: str
    sort_order: int
    depth: int
    child_count: int
    product_count: int

    @property
    def is_leaf(self) -> bool:
        """Whether products may be placed here."""
        return self.status == "active" and self.child_count == 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "parent_id": self.parent_id,
            "status": self.status,
            "sort_order": self.sort_order,
            "depth": self.depth,
            "child_count": self.child_count,
            "product_count": self.product_count,
        }


@dataclass(frozen=True)
class _Snapshot:
    nodes: tuple[CategoryNode, ...]
    stored_at: float


class CategoryTreeCache:
    """Short-TTL cache of the active category tree.

    The whole tree is published as one immutable snapshot, so readers see
    either the previous tree or the new one, never a mix.
    """

    def __init__(
        self,
        ttl_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize cache.

        Args:
            ttl_seconds: How long a stored tree stays valid.
            clock: Monotonic time source.
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._snapshot: _Snapshot | None = None

    def get(self) -> list[CategoryNode] | None:
        """Return the cached tree, or None when empty or expired."""
        snapshot = self._snapshot
        if snapshot is None:
            return None
        if self._clock() - snapshot.stored_at >= self.ttl_seconds:
            return None
        return list(snapshot.nodes)

    def put(self, nodes: Sequence[CategoryNode]) -> None:
        """Store a freshly loaded tree."""
        self._snapshot = _Snapshot(nodes=tuple(nodes), stored_at=self._clock())

    def invalidate(self) -> None:
        """Drop the cached tree."""
        self._snapshot = None
