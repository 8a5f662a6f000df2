"""PersistQ Storage Module - Item Persistence.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from persistq_core.storage.backend import ItemQuery, StorageBackend
from persistq_core.storage.memory import MemoryBackend
from persistq_core.storage.sql import SQLiteBackend, storage_path, remove_storage

__all__ = [
    "ItemQuery",
    "StorageBackend",
    "MemoryBackend",
    "SQLiteBackend",
    "storage_path",
    "remove_storage",
]
