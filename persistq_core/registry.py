"""PersistQ Registry - Named Queue Instances.

A registry hands out queue engines by name and guarantees at most one
live instance per name. Disposing an instance removes it from its
registry, so the next create() builds a fresh instance over the same
storage.

QueueFactory builds plain queues, FilterQueueFactory builds filter
queues. Factories are ordinary objects: tests build their own over a
temporary directory, while get_factory() is the single process-wide
access point for applications.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, ClassVar, Dict, List, Optional, Set, Type, Union

from persistq_core.errors import AlreadyExistsError, NotFoundError
from persistq_core.protocol.codec import DEFAULT_CODEC
from persistq_core.queue.base import DEFAULT_INVISIBLE_TIMEOUT_MS, Queue, QueueConfig
from persistq_core.queue.filter import FilterQueue
from persistq_core.queue.item import FilterQueueItem, QueueItem
from persistq_core.storage.backend import StorageBackend
from persistq_core.storage.memory import MemoryBackend
from persistq_core.storage.sql import SQLiteBackend

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_NAME = "persistent_queue"

QueueHandle = Union[Queue, FilterQueue]
BackendFactory = Callable[[QueueConfig, Type[QueueItem]], StorageBackend]


@dataclass
class RegistryConfig:
    """Registry-wide defaults for the queues it builds.

    Attributes:
        storage_dir: Directory holding queue storage files
        default_name: Name used by default() and create_new() without a name
        codec: Codec name for payloads
        invisible_timeout_ms: Default invisibility window
    """

    storage_dir: str = "."
    default_name: str = DEFAULT_QUEUE_NAME
    codec: str = DEFAULT_CODEC
    invisible_timeout_ms: int = DEFAULT_INVISIBLE_TIMEOUT_MS

    def __post_init__(self):
        if not self.default_name:
            raise ValueError("default_name is required")

    def queue_config(self, name: str, reset: bool = False) -> QueueConfig:
        return QueueConfig(
            name=name,
            storage_dir=self.storage_dir,
            reset=reset,
            invisible_timeout_ms=self.invisible_timeout_ms,
            codec=self.codec,
        )


def sqlite_backend(config: QueueConfig, item_type: Type[QueueItem]) -> StorageBackend:
    """Open the SQLite file for a queue config."""
    return SQLiteBackend(config.storage_path, item_type, config.name, reset=config.reset)


def memory_backend(config: QueueConfig, item_type: Type[QueueItem]) -> StorageBackend:
    """Open a throwaway in-memory store."""
    return MemoryBackend(item_type, config.name)


class QueueRegistry:
    """Name to live queue mapping with factory semantics.

    The registry lock is held only while reading or changing the
    mapping. Storage is opened outside the lock; if two threads race to
    create the same name, the loser disposes its instance. create_new()
    reserves its name before opening (and possibly resetting) storage;
    create() of a reserved name waits until the reservation settles.

    Args:
        config: Registry defaults
        backend_factory: Opens storage for a queue config and item type
        clock: Time source handed to every queue
    """

    item_type: ClassVar[Type[QueueItem]] = QueueItem

    def __init__(
        self,
        config: Optional[RegistryConfig] = None,
        backend_factory: BackendFactory = sqlite_backend,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or RegistryConfig()
        self._backend_factory = backend_factory
        self._clock = clock
        self._queues: Dict[str, QueueHandle] = {}
        self._reserved: Set[str] = set()
        self._lock = threading.Lock()
        self._settled = threading.Condition(self._lock)

    def _build(self, config: QueueConfig, backend: StorageBackend) -> QueueHandle:
        return Queue(config, backend, clock=self._clock, on_dispose=self._release)

    def _open(self, config: QueueConfig) -> QueueHandle:
        backend = self._backend_factory(config, self.item_type)
        try:
            return self._build(config, backend)
        except Exception:
            backend.close()
            raise

    def _lookup(self, name: str) -> Optional[QueueHandle]:
        """Registered queue for name once no create_new holds it. Caller holds the lock."""
        while name in self._reserved:
            self._settled.wait()
        return self._queues.get(name)

    def _release(self, engine: Queue) -> None:
        with self._lock:
            entry = self._queues.get(engine.name)
            if entry is not None and entry.engine is engine:
                del self._queues[engine.name]
                logger.debug(f"Released queue {engine.name}")

    def _register(self, name: str, candidate: QueueHandle) -> Optional[QueueHandle]:
        """Register candidate unless the name was taken meanwhile; return the holder."""
        with self._lock:
            existing = self._lookup(name)
            if existing is None:
                self._queues[name] = candidate
                return None
        logger.warning(f"Lost race registering queue {name}, discarding duplicate")
        candidate.dispose()
        return existing

    def create(self, name: str) -> QueueHandle:
        """Get the live queue for a name, building it if needed."""
        with self._lock:
            existing = self._lookup(name)
        if existing is not None:
            return existing

        candidate = self._open(self.config.queue_config(name))
        existing = self._register(name, candidate)
        if existing is not None:
            return existing
        logger.info(f"Created queue {name}")
        return candidate

    def create_new(self, name: Optional[str] = None) -> QueueHandle:
        """Build a queue that must not already be registered.

        Without a name the default name is used and its storage is
        reset first. The name is reserved before storage is opened, so
        a concurrent create() of the same name waits for this call and
        never sees storage that is about to be reset.

        Raises:
            AlreadyExistsError: If the name is already registered or being created
            ValueError: If the name is empty or otherwise invalid
        """
        reset = name is None
        if name is None:
            name = self.config.default_name
        config = self.config.queue_config(name, reset=reset)

        with self._lock:
            if name in self._queues or name in self._reserved:
                raise AlreadyExistsError("Queue already exists", queue_name=name)
            self._reserved.add(name)

        try:
            candidate = self._open(config)
        except Exception:
            with self._lock:
                self._reserved.discard(name)
                self._settled.notify_all()
            raise

        with self._lock:
            self._reserved.discard(name)
            self._queues[name] = candidate
            self._settled.notify_all()
        logger.info(f"Created new queue {name}{' (reset)' if reset else ''}")
        return candidate

    def default(self) -> QueueHandle:
        """Get or create the queue with the default name."""
        return self.create(self.config.default_name)

    def get(self, name: str) -> QueueHandle:
        """Get a live queue without creating it.

        Raises:
            NotFoundError: If no queue with this name is registered
        """
        with self._lock:
            try:
                return self._queues[name]
            except KeyError:
                raise NotFoundError("Queue is not registered", queue_name=name) from None

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._queues)

    def dispose_all(self) -> int:
        """Dispose every registered queue. Returns how many were live."""
        with self._lock:
            handles = list(self._queues.values())
        for handle in handles:
            handle.dispose()
        return len(handles)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._queues

    def __len__(self) -> int:
        with self._lock:
            return len(self._queues)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(storage_dir={self.config.storage_dir!r}, queues={len(self)})"


class QueueFactory(QueueRegistry):
    """Registry of plain queues."""


class FilterQueueFactory(QueueRegistry):
    """Registry of filter queues."""

    item_type = FilterQueueItem

    def _build(self, config: QueueConfig, backend: StorageBackend) -> QueueHandle:
        return FilterQueue(config, backend, clock=self._clock, on_dispose=self._release)


_FACTORY_TYPES: Dict[str, Type[QueueRegistry]] = {
    "queue": QueueFactory,
    "filter": FilterQueueFactory,
}
_factories: Dict[str, QueueRegistry] = {}
_factories_config: Optional[RegistryConfig] = None
_factories_lock = threading.Lock()


def get_factory(kind: str = "queue") -> QueueRegistry:
    """Process-wide factory for "queue" or "filter" queues."""
    if kind not in _FACTORY_TYPES:
        raise ValueError(f"Unknown queue kind: {kind!r}")
    with _factories_lock:
        factory = _factories.get(kind)
        if factory is None:
            factory = _FACTORY_TYPES[kind](config=_factories_config)
            _factories[kind] = factory
        return factory


def reset_factories(config: Optional[RegistryConfig] = None) -> None:
    """Dispose every queue built by the process-wide factories and forget them.

    Args:
        config: Defaults for factories built after the reset
    """
    global _factories_config
    with _factories_lock:
        factories = list(_factories.values())
        _factories.clear()
        _factories_config = config
    for factory in factories:
        factory.dispose_all()


__all__ = [
    "QueueRegistry",
    "QueueFactory",
    "FilterQueueFactory",
    "RegistryConfig",
    "DEFAULT_QUEUE_NAME",
    "sqlite_backend",
    "memory_backend",
    "get_factory",
    "reset_factories",
]
