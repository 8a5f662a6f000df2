"""PersistQ Filter Queue - Soft Delete and Purge.

A filter queue wraps the base engine. Deleting an item sets a
tombstone instead of removing its row; tombstoned items are skipped by
dequeue and peek but stay listable until purged. Because delete is
soft by default, dequeue(remove=True) tombstones the item it returns.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Callable, List, Optional, Type, Union

from persistq_core.protocol.codec import Codec
from persistq_core.queue.base import Queue, QueueConfig, QueueStats
from persistq_core.queue.item import FilterQueueItem, to_timestamp
from persistq_core.storage.backend import ItemQuery, StorageBackend

logger = logging.getLogger(__name__)

Since = Union[datetime, float, None]

ACTIVE = ItemQuery(deleted=False)
DELETED = ItemQuery(deleted=True)


class FilterQueue:
    """Queue with tombstones, partition listings and purge.

    Takes the same arguments as Queue; the backend must store
    FilterQueueItem rows.
    """

    def __init__(
        self,
        config: QueueConfig,
        backend: StorageBackend,
        codec: Optional[Codec] = None,
        *,
        clock: Callable[[], float] = time.time,
        on_dispose: Optional[Callable[[Queue], None]] = None,
    ):
        if not backend.item_type.soft_delete:
            raise ValueError(
                f"FilterQueue needs a soft-delete item type, got {backend.item_type.__name__}"
            )
        self._engine = Queue(
            config,
            backend,
            codec,
            selection=ACTIVE,
            remover=self._tombstone,
            clock=clock,
            on_dispose=on_dispose,
        )

    @property
    def engine(self) -> Queue:
        return self._engine

    @property
    def name(self) -> str:
        return self._engine.name

    @property
    def config(self) -> QueueConfig:
        return self._engine.config

    @property
    def codec(self) -> Codec:
        return self._engine.codec

    @property
    def item_type(self) -> Type[FilterQueueItem]:
        return self._engine.item_type

    @property
    def disposed(self) -> bool:
        return self._engine.disposed

    def enqueue(self, value: Any) -> None:
        self._engine.enqueue(value)

    def dequeue(
        self,
        remove: bool = True,
        invisible_timeout: Optional[int] = None,
    ) -> Optional[FilterQueueItem]:
        """Take the oldest visible, active item. remove=True tombstones it."""
        return self._engine.dequeue(remove=remove, invisible_timeout=invisible_timeout)

    def peek(self) -> Optional[FilterQueueItem]:
        return self._engine.peek()

    def invalidate(self, item: FilterQueueItem, invisible_timeout: Optional[int] = None) -> bool:
        return self._engine.invalidate(item, invisible_timeout)

    def decode(self, item: FilterQueueItem, expected_type: Optional[Type] = None) -> Any:
        return self._engine.decode(item, expected_type)

    def _tombstone(self, item: FilterQueueItem) -> bool:
        with self._engine.session() as backend:
            stored = backend.mark_deleted(item.id, self._engine.now())
        if stored is None:
            logger.debug(f"Item {item.id} already absent from queue {self.name}")
            return False
        item.deleted_at = stored
        logger.debug(f"Tombstoned item {item.id} on queue {self.name}")
        return True

    def delete(self, item: FilterQueueItem, remove_from_store: bool = False) -> bool:
        """Delete an item.

        A soft delete never replaces an existing tombstone; the item's
        deleted_at is refreshed from storage.

        Args:
            item: Item read from this queue
            remove_from_store: Remove the row instead of tombstoning it

        Returns:
            True if the item was tombstoned or removed, False if it was already gone

        Raises:
            QueueMismatchError: If the item was not read from this queue
        """
        if remove_from_store:
            return self._engine.delete(item)
        self._engine.check_item(item)
        return self._tombstone(item)

    def _list(self, query: ItemQuery, since: Since) -> List[FilterQueueItem]:
        query = query.narrow(since=to_timestamp(since))
        with self._engine.session() as backend:
            return backend.scan(query)

    def active_items(self, since: Since = None) -> List[FilterQueueItem]:
        """Items that are not tombstoned, oldest first.

        Args:
            since: Only items created at or after this time
        """
        return self._list(ACTIVE, since)

    def deleted_items(self, since: Since = None) -> List[FilterQueueItem]:
        """Tombstoned items, oldest first."""
        return self._list(DELETED, since)

    def all_items(self, since: Since = None) -> List[FilterQueueItem]:
        """Every stored item, tombstoned or not."""
        return self._list(ItemQuery(), since)

    def purge_deleted_items(self) -> int:
        """Permanently remove every tombstoned item.

        Returns:
            Number of items removed
        """
        with self._engine.session() as backend:
            purged = backend.delete_matching(DELETED)
        logger.info(f"Purged {purged} deleted items from queue {self.name}")
        return purged

    def get_stats(self) -> QueueStats:
        return self._engine.get_stats()

    def dispose(self) -> None:
        self._engine.dispose()

    def __enter__(self) -> "FilterQueue":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def __len__(self) -> int:
        return len(self._engine)

    def __repr__(self) -> str:
        state = "disposed" if self.disposed else "open"
        return f"FilterQueue(name={self.name!r}, state={state})"


__all__ = ["FilterQueue"]
