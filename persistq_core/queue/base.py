"""PersistQ Base Queue - Core Queue Engine.

This module provides the queue engine: a durable FIFO queue with an
SQS-style invisibility window. A consumer can either pop an item
outright or take it with a deadline; if the item is not deleted before
the deadline passes it becomes visible again at its original position.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Type

from persistq_core.errors import QueueDisposedError, QueueMismatchError
from persistq_core.protocol.codec import DEFAULT_CODEC, Codec, resolve_codec
from persistq_core.queue.item import QueueItem
from persistq_core.storage.backend import ItemQuery, StorageBackend
from persistq_core.storage.sql import storage_path

logger = logging.getLogger(__name__)

DEFAULT_INVISIBLE_TIMEOUT_MS = 30000


@dataclass
class QueueConfig:
    """Queue configuration.

    Attributes:
        name: Queue name, also the storage file name
        storage_dir: Directory holding the storage file
        reset: Drop the stored items of this queue kind before opening
        invisible_timeout_ms: Default invisibility window for dequeue/invalidate
        codec: Codec name used for payloads
    """

    name: str
    storage_dir: str = "."
    reset: bool = False
    invisible_timeout_ms: int = DEFAULT_INVISIBLE_TIMEOUT_MS
    codec: str = DEFAULT_CODEC

    def __post_init__(self):
        if not self.name:
            raise ValueError("Queue name is required")
        if "/" in self.name or "\\" in self.name:
            raise ValueError(f"Queue name must not contain path separators: {self.name!r}")
        if self.invisible_timeout_ms < 0:
            raise ValueError("invisible_timeout_ms must be >= 0")

    @property
    def storage_path(self) -> Path:
        return storage_path(self.storage_dir, self.name)


@dataclass
class QueueStats:
    """Queue statistics.

    Attributes:
        total: Rows in storage, tombstones included
        visible: Items a dequeue could return right now
        invisible: Items hidden by an invisibility window
        deleted: Tombstoned items awaiting purge
        enqueued: Items enqueued through this instance
        dequeued: Items dequeued through this instance
    """

    total: int = 0
    visible: int = 0
    invisible: int = 0
    deleted: int = 0
    enqueued: int = 0
    dequeued: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    last_activity: Optional[datetime] = None


class Queue:
    """Durable queue engine bound to one storage location.

    All operations that touch storage are serialized by a per-instance
    lock, so the select-then-mutate step of dequeue is atomic within
    the process. Instances are normally obtained from a QueueFactory,
    which guarantees one live instance per name.

    Args:
        config: Queue configuration
        backend: Open storage backend; its item type fixes the queue's item type
        codec: Payload codec (defaults to the one named in config)
        selection: Base predicate for "next item" scans
        remover: Called under the lock to remove an item on dequeue(remove=True)
        clock: Returns the current time in POSIX seconds
        on_dispose: Called once after the store is closed
    """

    def __init__(
        self,
        config: QueueConfig,
        backend: StorageBackend,
        codec: Optional[Codec] = None,
        *,
        selection: Optional[ItemQuery] = None,
        remover: Optional[Callable[[QueueItem], Any]] = None,
        clock: Callable[[], float] = time.time,
        on_dispose: Optional[Callable[["Queue"], None]] = None,
    ):
        self.config = config
        self._backend = backend
        self._codec = codec or resolve_codec(config.codec)
        self._selection = selection or ItemQuery()
        self._remover = remover or self._hard_delete
        self._clock = clock
        self._on_dispose = on_dispose
        self._lock = threading.RLock()
        self._disposed = False
        self._stats = QueueStats()
        self._enqueued = 0
        self._dequeued = 0

        logger.info(
            f"Queue '{self.name}' opened ({self.item_type.table}, codec={self._codec.name})"
        )

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def engine(self) -> "Queue":
        return self

    @property
    def codec(self) -> Codec:
        return self._codec

    @property
    def item_type(self) -> Type[QueueItem]:
        return self._backend.item_type

    @property
    def disposed(self) -> bool:
        return self._disposed

    def now(self) -> float:
        return self._clock()

    def _check_open(self) -> None:
        if self._disposed:
            raise QueueDisposedError("Queue has been disposed", queue_name=self.name)

    def check_item(self, item: QueueItem) -> None:
        """Reject items that were not read from this queue.

        Raises:
            QueueMismatchError: On item type or queue mismatch
        """
        if type(item) is not self.item_type:
            raise QueueMismatchError(
                f"{type(item).__name__} cannot be used with a {self.item_type.__name__} queue",
                queue_name=self.name,
            )
        if item.queue_name != self.name or item.id is None:
            raise QueueMismatchError(
                f"Item {item.id} belongs to queue {item.queue_name!r}",
                queue_name=self.name,
            )

    @contextmanager
    def session(self) -> Iterator[StorageBackend]:
        """Hold the queue lock and yield the backend."""
        with self._lock:
            self._check_open()
            yield self._backend

    def _touch(self) -> None:
        self._stats.last_activity = datetime.now()

    def _timeout(self, invisible_timeout: Optional[int]) -> float:
        if invisible_timeout is None:
            invisible_timeout = self.config.invisible_timeout_ms
        if invisible_timeout < 0:
            raise ValueError("invisible_timeout must be >= 0")
        return invisible_timeout / 1000.0

    def enqueue(self, value: Any) -> None:
        """Encode a value and append it to the queue.

        Raises:
            EncodingError: If the codec cannot represent the value
        """
        payload = self._codec.encode(value)
        with self.session() as backend:
            item = self.item_type.create(payload, self.now())
            item_id = backend.insert(item)
            self._enqueued += 1
            self._touch()
        logger.debug(f"Enqueued item {item_id} on queue {self.name}")

    def _next_query(self, now: float) -> ItemQuery:
        return self._selection.narrow(visible_at=now, order_by="id", limit=1)

    def peek(self) -> Optional[QueueItem]:
        """Return the item dequeue would select, without touching it."""
        with self.session() as backend:
            return backend.first(self._next_query(self.now()))

    def dequeue(
        self,
        remove: bool = True,
        invisible_timeout: Optional[int] = None,
    ) -> Optional[QueueItem]:
        """Take the oldest visible item.

        Args:
            remove: Remove the item; otherwise hide it for invisible_timeout
            invisible_timeout: Invisibility window in milliseconds

        Returns:
            The item, or None if nothing is visible
        """
        timeout = self._timeout(invisible_timeout)
        with self.session() as backend:
            now = self.now()
            item = backend.first(self._next_query(now))
            if item is None:
                return None
            if remove:
                self._remover(item)
            else:
                self._hide(backend, item, now + timeout)
            self._dequeued += 1
            self._touch()

        if remove:
            logger.debug(f"Dequeued item {item.id} from queue {self.name}")
        else:
            logger.debug(f"Item {item.id} on queue {self.name} hidden until {item.invisible_until}")
        return item

    def _hide(self, backend: StorageBackend, item: QueueItem, until: float) -> bool:
        stored = backend.extend_invisibility(item.id, until)
        if stored is None:
            return False
        item.invisible_until = stored
        return True

    def invalidate(self, item: QueueItem, invisible_timeout: Optional[int] = None) -> bool:
        """Hide an item for another invisibility window.

        The deadline only moves forward: a window ending before the stored
        deadline leaves the item hidden until that deadline, even when the
        item passed in is an older copy. The item's invisible_until is
        refreshed from storage.

        Returns:
            False if the item no longer exists

        Raises:
            QueueMismatchError: If the item was not read from this queue
        """
        self.check_item(item)
        timeout = self._timeout(invisible_timeout)
        with self.session() as backend:
            updated = self._hide(backend, item, self.now() + timeout)
        if not updated:
            logger.debug(f"Invalidate of missing item {item.id} on queue {self.name}")
        return updated

    def _hard_delete(self, item: QueueItem) -> bool:
        with self.session() as backend:
            removed = backend.delete(item.id)
        if not removed:
            logger.debug(f"Item {item.id} already absent from queue {self.name}")
        return removed

    def delete(self, item: QueueItem) -> bool:
        """Permanently remove an item, visible or not.

        Deleting an item that is already gone is a no-op.

        Returns:
            True if a row was removed

        Raises:
            QueueMismatchError: If the item was not read from this queue
        """
        self.check_item(item)
        removed = self._hard_delete(item)
        if removed:
            self._touch()
        return removed

    def decode(self, item: QueueItem, expected_type: Optional[Type] = None) -> Any:
        """Decode an item's payload with this queue's codec."""
        return item.decode(self._codec, expected_type)

    def get_stats(self) -> QueueStats:
        """Get queue statistics."""
        with self.session() as backend:
            now = self.now()
            total = backend.count()
            deleted = backend.count(ItemQuery(deleted=True)) if self.item_type.soft_delete else 0
            visible = backend.count(self._selection.narrow(visible_at=now))
        return QueueStats(
            total=total,
            visible=visible,
            invisible=total - deleted - visible,
            deleted=deleted,
            enqueued=self._enqueued,
            dequeued=self._dequeued,
            created_at=self._stats.created_at,
            last_activity=self._stats.last_activity,
        )

    def dispose(self) -> None:
        """Close the store and release the name. Safe to call repeatedly."""
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            try:
                self._backend.close()
            finally:
                if self._on_dispose is not None:
                    self._on_dispose(self)
        logger.info(f"Queue '{self.name}' disposed")

    def __enter__(self) -> "Queue":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def __len__(self) -> int:
        """Items in the queue, visible or not (tombstones excluded)."""
        with self.session() as backend:
            return backend.count(self._selection)

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "open"
        return f"Queue(name={self.name!r}, item_type={self.item_type.__name__}, state={state})"


__all__ = [
    "Queue",
    "QueueConfig",
    "QueueStats",
    "DEFAULT_INVISIBLE_TIMEOUT_MS",
]
