"""PersistQ Memory Backend - In-Memory Item Store.

Nothing survives close(); intended for tests and throwaway queues.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import dataclasses
import threading
from typing import TYPE_CHECKING, Dict, List, Optional, Type

from persistq_core.errors import StorageError
from persistq_core.storage.backend import ItemQuery, StorageBackend

if TYPE_CHECKING:
    from persistq_core.queue.item import QueueItem


class MemoryBackend(StorageBackend):
    """In-memory storage backend."""

    def __init__(self, item_type: Type[QueueItem], queue_name: str):
        super().__init__(item_type, queue_name)
        self._rows: Dict[int, QueueItem] = {}
        self._next_id = 1
        self._closed = False
        self._lock = threading.RLock()

    def _check_open(self) -> None:
        if self._closed:
            raise StorageError("Memory store is closed", queue_name=self.queue_name)

    def _copy(self, item: QueueItem) -> QueueItem:
        return dataclasses.replace(item, queue_name=self.queue_name)

    def insert(self, item: QueueItem) -> int:
        with self._lock:
            self._check_open()
            item_id = self._next_id
            self._next_id += 1
            self._rows[item_id] = dataclasses.replace(item, id=item_id)
            return item_id

    def extend_invisibility(self, item_id: int, until: float) -> Optional[float]:
        with self._lock:
            self._check_open()
            stored = self._rows.get(item_id)
            if stored is None:
                return None
            if until > stored.invisible_until:
                stored = self._rows[item_id] = dataclasses.replace(stored, invisible_until=until)
            return stored.invisible_until

    def mark_deleted(self, item_id: int, at: float) -> Optional[float]:
        if not self.item_type.soft_delete:
            raise ValueError(f"{self.item_type.table} has no deleted_at column")
        with self._lock:
            self._check_open()
            stored = self._rows.get(item_id)
            if stored is None:
                return None
            if stored.deleted_at is None:
                stored = self._rows[item_id] = dataclasses.replace(stored, deleted_at=at)
            return stored.deleted_at

    def delete(self, item_id: int) -> bool:
        with self._lock:
            self._check_open()
            return self._rows.pop(item_id, None) is not None

    def _select(self, query: ItemQuery) -> List[QueueItem]:
        items = [item for item in self._rows.values() if query.matches(item)]
        if query.order_by == "created_at":
            items.sort(key=lambda item: (getattr(item, "created_at", 0.0), item.id))
        else:
            items.sort(key=lambda item: item.id)
        if query.limit is not None:
            items = items[:query.limit]
        return items

    def scan(self, query: ItemQuery) -> List[QueueItem]:
        with self._lock:
            self._check_open()
            return [self._copy(item) for item in self._select(query)]

    def count(self, query: Optional[ItemQuery] = None) -> int:
        with self._lock:
            self._check_open()
            return len(self._select(query or ItemQuery()))

    def delete_matching(self, query: ItemQuery) -> int:
        with self._lock:
            self._check_open()
            doomed = [item.id for item in self._select(query)]
            for item_id in doomed:
                del self._rows[item_id]
            return len(doomed)

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def destroy(self) -> None:
        with self._lock:
            self._rows.clear()
            self._next_id = 1
            self._closed = True


__all__ = ["MemoryBackend"]
