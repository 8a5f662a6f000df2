"""PersistQ Storage Backend - Abstract Item Store.

A backend owns one table of queue items of a single item type. The
engine drives it with a small set of operations: insert, delete by id,
predicate scans described by ItemQuery and delete by predicate. Stored
rows are only changed through two single-column writes, one pushing the
visibility deadline forward and one setting the tombstone, so a stale
copy of an item can never overwrite newer state.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import dataclasses
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Type

if TYPE_CHECKING:
    from persistq_core.queue.item import QueueItem

ORDER_COLUMNS = ("id", "created_at")


@dataclass(frozen=True)
class ItemQuery:
    """Predicate and ordering for an item scan.

    Attributes:
        visible_at: Only items with invisible_until <= visible_at
        deleted: True for tombstoned only, False for active only, None for both
        since: Only items with created_at >= since
        order_by: "id" or "created_at", ascending
        limit: Maximum number of items
    """

    visible_at: Optional[float] = None
    deleted: Optional[bool] = None
    since: Optional[float] = None
    order_by: str = "id"
    limit: Optional[int] = None

    def __post_init__(self):
        if self.order_by not in ORDER_COLUMNS:
            raise ValueError(f"Cannot order items by {self.order_by!r}")
        if self.limit is not None and self.limit < 1:
            raise ValueError("limit must be positive")

    def narrow(self, **changes) -> "ItemQuery":
        """Copy of this query with some fields replaced."""
        return dataclasses.replace(self, **changes)

    def matches(self, item: QueueItem) -> bool:
        """Evaluate the predicate in Python (limit and order ignored)."""
        if self.visible_at is not None and not item.is_visible(self.visible_at):
            return False
        if self.deleted is not None:
            if (getattr(item, "deleted_at", None) is not None) != self.deleted:
                return False
        if self.since is not None and getattr(item, "created_at", 0.0) < self.since:
            return False
        return True


class StorageBackend(ABC):
    """Abstract storage backend for one item table."""

    def __init__(self, item_type: Type[QueueItem], queue_name: str):
        self.item_type = item_type
        self.queue_name = queue_name

    @abstractmethod
    def insert(self, item: QueueItem) -> int:
        """Insert an item and return its new id."""
        pass

    @abstractmethod
    def extend_invisibility(self, item_id: int, until: float) -> Optional[float]:
        """Raise an item's stored invisible_until to at least until.

        The stored deadline never moves backwards and no other column
        is written.

        Returns:
            The stored deadline afterwards, or None if the row is gone
        """
        pass

    @abstractmethod
    def mark_deleted(self, item_id: int, at: float) -> Optional[float]:
        """Tombstone an item unless it already carries a tombstone.

        Returns:
            The stored deleted_at afterwards, or None if the row is gone

        Raises:
            ValueError: If the item type has no deleted_at column
        """
        pass

    @abstractmethod
    def delete(self, item_id: int) -> bool:
        """Delete an item by id. False if there was no such row."""
        pass

    @abstractmethod
    def scan(self, query: ItemQuery) -> List[QueueItem]:
        """Return items matching a query, in query order."""
        pass

    @abstractmethod
    def count(self, query: Optional[ItemQuery] = None) -> int:
        """Count items matching a query."""
        pass

    @abstractmethod
    def delete_matching(self, query: ItemQuery) -> int:
        """Delete every item matching a query and return how many went."""
        pass

    def first(self, query: ItemQuery) -> Optional[QueueItem]:
        """Return the first item matching a query, or None."""
        items = self.scan(query.narrow(limit=1))
        return items[0] if items else None

    @abstractmethod
    def close(self) -> None:
        """Release the storage handle."""
        pass

    @abstractmethod
    def destroy(self) -> None:
        """Close and remove the backing storage."""
        pass


__all__ = ["StorageBackend", "ItemQuery"]
