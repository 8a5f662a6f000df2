"""PersistQ Queue Item - Stored Message Records.

This module defines the record stored for every enqueued message. An
item carries an opaque payload produced by a codec and a visibility
deadline; the filter variant adds a creation time and a tombstone.

Timestamps are POSIX seconds (floats), as returned by ``time.time()``.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Type

from persistq_core.errors import EncodingError
from persistq_core.protocol.codec import Codec


class ItemState(Enum):
    """Item visibility states.

    Derived from timestamps at read time, never stored.
    """

    VISIBLE = auto()     # Eligible for delivery
    INVISIBLE = auto()   # Delivered, hidden until invisible_until
    DELETED = auto()     # Tombstoned (filter queues only)


def to_timestamp(value: Any) -> Optional[float]:
    """Normalize a datetime or number to POSIX seconds."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.timestamp()
    return float(value)


@dataclass
class QueueItem:
    """A stored queue message.

    Attributes:
        payload: Codec-encoded message body
        id: Store-assigned identity, None until inserted
        invisible_until: Item is deliverable once now >= this value
        queue_name: Queue the item was read from (not persisted)
    """

    table: ClassVar[str] = "QueueItem"
    soft_delete: ClassVar[bool] = False

    payload: bytes
    id: Optional[int] = None
    invisible_until: float = 0.0
    queue_name: Optional[str] = field(default=None, compare=False, repr=False)

    @classmethod
    def create(cls, payload: bytes, now: float) -> "QueueItem":
        """Build a new, immediately visible item."""
        return cls(payload=payload, invisible_until=now)

    @classmethod
    def columns(cls) -> Tuple[str, ...]:
        """Persisted columns other than the id."""
        return ("payload", "invisible_until")

    def to_row(self) -> Dict[str, Any]:
        return {"payload": self.payload, "invisible_until": self.invisible_until}

    @classmethod
    def from_row(cls, row: Mapping[str, Any], queue_name: Optional[str] = None) -> "QueueItem":
        values = {name: row[name] for name in cls.columns()}
        return cls(id=row["id"], queue_name=queue_name, **values)

    def is_visible(self, now: float) -> bool:
        return self.invisible_until <= now

    def state(self, now: float) -> ItemState:
        if self.is_visible(now):
            return ItemState.VISIBLE
        return ItemState.INVISIBLE

    def decode(self, codec: Codec, expected_type: Optional[Type] = None) -> Any:
        """Decode the payload.

        Args:
            codec: Codec the payload was written with
            expected_type: If given, the decoded value must be an instance of it

        Raises:
            EncodingError: If decoding fails or the value has the wrong type
        """
        value = codec.decode(self.payload)
        if expected_type is not None and not isinstance(value, expected_type):
            raise EncodingError(
                f"Item {self.id} holds {type(value).__name__}, "
                f"expected {expected_type.__name__}",
                queue_name=self.queue_name,
            )
        return value


@dataclass
class FilterQueueItem(QueueItem):
    """A queue message that supports soft deletion.

    Attributes:
        created_at: When the item was built
        deleted_at: When the item was tombstoned, None while active
    """

    table: ClassVar[str] = "FilterQueueItem"
    soft_delete: ClassVar[bool] = True

    created_at: float = 0.0
    deleted_at: Optional[float] = None

    @classmethod
    def create(cls, payload: bytes, now: float) -> "FilterQueueItem":
        return cls(payload=payload, invisible_until=now, created_at=now)

    @classmethod
    def columns(cls) -> Tuple[str, ...]:
        return ("payload", "invisible_until", "created_at", "deleted_at")

    def to_row(self) -> Dict[str, Any]:
        row = super().to_row()
        row["created_at"] = self.created_at
        row["deleted_at"] = self.deleted_at
        return row

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def state(self, now: float) -> ItemState:
        if self.is_deleted:
            return ItemState.DELETED
        return super().state(now)


__all__ = ["ItemState", "QueueItem", "FilterQueueItem", "to_timestamp"]
