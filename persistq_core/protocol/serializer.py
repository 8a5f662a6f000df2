"""PersistQ Serializer - Payload Serialization.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import json
import pickle
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Type

import msgpack


class Serializer(ABC):
    """Abstract payload serializer.

    Subclasses set ``name``, the token used in codec names.
    """

    name: str = ""

    @abstractmethod
    def serialize(self, data: Any) -> bytes:
        """Serialize data to bytes."""
        pass

    @abstractmethod
    def deserialize(self, data: bytes) -> Any:
        """Deserialize bytes to data."""
        pass

    @property
    @abstractmethod
    def content_type(self) -> str:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class PickleSerializer(Serializer):
    """Pickle serializer for arbitrary Python objects.

    The default serializer: instances of user classes round-trip through
    the queue as long as the class is importable when decoding.
    """

    name = "pickle"

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL):
        self.protocol = protocol

    def serialize(self, data: Any) -> bytes:
        return pickle.dumps(data, protocol=self.protocol)

    def deserialize(self, data: bytes) -> Any:
        return pickle.loads(data)

    @property
    def content_type(self) -> str:
        return "application/x-python-pickle"


class JSONSerializer(Serializer):
    """JSON serializer. Tuples come back as lists."""

    name = "json"

    def serialize(self, data: Any) -> bytes:
        return json.dumps(data, separators=(",", ":")).encode("utf-8")

    def deserialize(self, data: bytes) -> Any:
        return json.loads(data.decode("utf-8"))

    @property
    def content_type(self) -> str:
        return "application/json"


class MsgPackSerializer(Serializer):
    """MessagePack serializer."""

    name = "msgpack"

    def serialize(self, data: Any) -> bytes:
        return msgpack.packb(data, use_bin_type=True)

    def deserialize(self, data: bytes) -> Any:
        return msgpack.unpackb(data, raw=False)

    @property
    def content_type(self) -> str:
        return "application/msgpack"


_SERIALIZERS: Dict[str, Type[Serializer]] = {
    cls.name: cls for cls in (PickleSerializer, JSONSerializer, MsgPackSerializer)
}


def get_serializer(name: str) -> Serializer:
    """Build a serializer by name."""
    try:
        return _SERIALIZERS[name]()
    except KeyError:
        raise ValueError(f"Unknown serializer: {name!r}") from None


def serializer_names() -> List[str]:
    return sorted(_SERIALIZERS)


__all__ = [
    "Serializer",
    "PickleSerializer",
    "JSONSerializer",
    "MsgPackSerializer",
    "get_serializer",
    "serializer_names",
]
