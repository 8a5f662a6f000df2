"""PersistQ - Durable Embedded Message Queue.

PersistQ is a single-process message queue backed by a local SQLite
file. Producers enqueue arbitrary Python values; consumers dequeue them
either outright or with an SQS-style invisibility window, so an item
that is not deleted in time is delivered again at its original
position. Filter queues add soft deletion with a later purge.

Architecture Overview:
┌─────────────────────────────────────────────────────────────────────────┐
│                            PersistQ System                              │
├─────────────────────────────────────────────────────────────────────────┤
│  ┌───────────────────────────────────────────────────────────────────┐ │
│  │                        Registry                                   │ │
│  │  • QueueFactory / FilterQueueFactory - one live queue per name    │ │
│  │  • create / create_new / default / get                            │ │
│  └───────────────────────────────────────────────────────────────────┘ │
│  ┌───────────────────────────────────────────────────────────────────┐ │
│  │                        Queue Module                               │ │
│  │  • Queue - enqueue, dequeue, peek, invalidate, delete, dispose    │ │
│  │  • FilterQueue - tombstones, active/deleted listings, purge       │ │
│  │  • QueueItem / FilterQueueItem - stored records                   │ │
│  └───────────────────────────────────────────────────────────────────┘ │
│  ┌───────────────────────────────────────────────────────────────────┐ │
│  │                        Storage Module                             │ │
│  │  • StorageBackend - abstract item table                           │ │
│  │  • SQLiteBackend - durable file storage                           │ │
│  │  • MemoryBackend - throwaway storage for tests                    │ │
│  └───────────────────────────────────────────────────────────────────┘ │
│  ┌───────────────────────────────────────────────────────────────────┐ │
│  │                       Protocol Module                             │ │
│  │  • Serializer - pickle, JSON, MessagePack                         │ │
│  │  • Compressor - gzip, zlib, LZ4                                   │ │
│  │  • Codec - serializer + compressor, looked up by name             │ │
│  └───────────────────────────────────────────────────────────────────┘ │
└─────────────────────────────────────────────────────────────────────────┘

Example:
    factory = QueueFactory(RegistryConfig(storage_dir="/var/lib/app"))
    with factory.create("jobs") as queue:
        queue.enqueue({"task": "resize", "id": 7})
        item = queue.dequeue(remove=False, invisible_timeout=60000)
        if item is not None:
            handle(queue.decode(item))
            queue.delete(item)

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

# Errors
from persistq_core.errors import (
    QueueError,
    AlreadyExistsError,
    NotFoundError,
    QueueMismatchError,
    EncodingError,
    StorageError,
    QueueDisposedError,
)

# Queue components
from persistq_core.queue.item import ItemState, QueueItem, FilterQueueItem
from persistq_core.queue.base import Queue, QueueConfig, QueueStats
from persistq_core.queue.filter import FilterQueue

# Storage components
from persistq_core.storage.backend import ItemQuery, StorageBackend
from persistq_core.storage.memory import MemoryBackend
from persistq_core.storage.sql import SQLiteBackend

# Protocol components
from persistq_core.protocol.serializer import (
    Serializer,
    PickleSerializer,
    JSONSerializer,
    MsgPackSerializer,
)
from persistq_core.protocol.compressor import Compressor
from persistq_core.protocol.codec import Codec, CodecRegistry

# Registry
from persistq_core.registry import (
    QueueRegistry,
    QueueFactory,
    FilterQueueFactory,
    RegistryConfig,
    get_factory,
    reset_factories,
)

__version__ = "1.0.0"
__author__ = "BlackRoad OS"
__license__ = "Proprietary"

__all__ = [
    # Version
    "__version__",
    # Errors
    "QueueError",
    "AlreadyExistsError",
    "NotFoundError",
    "QueueMismatchError",
    "EncodingError",
    "StorageError",
    "QueueDisposedError",
    # Queue
    "ItemState",
    "QueueItem",
    "FilterQueueItem",
    "Queue",
    "QueueConfig",
    "QueueStats",
    "FilterQueue",
    # Storage
    "ItemQuery",
    "StorageBackend",
    "MemoryBackend",
    "SQLiteBackend",
    # Protocol
    "Serializer",
    "PickleSerializer",
    "JSONSerializer",
    "MsgPackSerializer",
    "Compressor",
    "Codec",
    "CodecRegistry",
    # Registry
    "QueueRegistry",
    "QueueFactory",
    "FilterQueueFactory",
    "RegistryConfig",
    "get_factory",
    "reset_factories",
]
