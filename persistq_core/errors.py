"""PersistQ Errors - Exception Taxonomy.

Every error raised by the queue engine, the filter queue and the
registry derives from QueueError. Storage and codec failures are
re-raised as StorageError and EncodingError so callers never have to
know which backend or serializer is in use.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from typing import Optional


class QueueError(Exception):
    """Base class for all queue errors.

    Attributes:
        message: Human readable description
        queue_name: Name of the queue involved, if known
    """

    def __init__(self, message: str, queue_name: Optional[str] = None):
        self.message = message
        self.queue_name = queue_name
        super().__init__(message)

    def __str__(self) -> str:
        if self.queue_name:
            return f"[{self.queue_name}] {self.message}"
        return self.message


class AlreadyExistsError(QueueError):
    """Strict create requested for a name that is already registered."""


class NotFoundError(QueueError):
    """Strict lookup of a name that is not registered."""


class QueueMismatchError(QueueError):
    """An item from one queue was handed to another queue."""


class EncodingError(QueueError):
    """A payload could not be encoded or decoded."""


class StorageError(QueueError):
    """The storage backend failed."""


class QueueDisposedError(QueueError):
    """Operation attempted on a queue that has been disposed."""


__all__ = [
    "QueueError",
    "AlreadyExistsError",
    "NotFoundError",
    "QueueMismatchError",
    "EncodingError",
    "StorageError",
    "QueueDisposedError",
]
