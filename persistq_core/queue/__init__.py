"""PersistQ Queue Module - Queue Engines and Items.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from persistq_core.queue.item import ItemState, QueueItem, FilterQueueItem
from persistq_core.queue.base import Queue, QueueConfig, QueueStats
from persistq_core.queue.filter import FilterQueue

__all__ = [
    "ItemState",
    "QueueItem",
    "FilterQueueItem",
    "Queue",
    "QueueConfig",
    "QueueStats",
    "FilterQueue",
]
