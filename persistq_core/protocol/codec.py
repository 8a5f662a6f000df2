"""PersistQ Codec - Pluggable Payload Codec.

A codec turns any value into the opaque byte blob stored in a queue
item and back. It is a serializer followed by a compression stage and
is named "<serializer>" or "<serializer>+<compression>", for example
"pickle", "json" or "msgpack+lz4".

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional, Union

from persistq_core.errors import EncodingError
from persistq_core.protocol.compressor import IDENTITY, Compressor, get_compressor
from persistq_core.protocol.serializer import PickleSerializer, Serializer, get_serializer

logger = logging.getLogger(__name__)

DEFAULT_CODEC = "pickle"


class Codec:
    """Payload codec combining serialization and compression."""

    def __init__(
        self,
        serializer: Optional[Serializer] = None,
        compressor: Optional[Compressor] = None,
    ):
        self.serializer = serializer or PickleSerializer()
        self.compressor = compressor or IDENTITY

    @classmethod
    def from_name(cls, name: str) -> "Codec":
        """Build a codec from a name such as "json" or "pickle+gzip"."""
        serializer_name, _, encoding = name.partition("+")
        return cls(
            serializer=get_serializer(serializer_name),
            compressor=get_compressor(encoding or "identity"),
        )

    @property
    def name(self) -> str:
        if self.compressor.encoding == "identity":
            return self.serializer.name
        return f"{self.serializer.name}+{self.compressor.encoding}"

    @property
    def content_type(self) -> str:
        return self.serializer.content_type

    @property
    def content_encoding(self) -> str:
        return self.compressor.encoding

    def encode(self, data: Any) -> bytes:
        """Encode a value to bytes.

        Raises:
            EncodingError: If the value cannot be represented
        """
        try:
            serialized = self.serializer.serialize(data)
            return self.compressor.compress(serialized)
        except Exception as e:
            raise EncodingError(
                f"Cannot encode {type(data).__name__} with codec {self.name}: {e}"
            ) from e

    def decode(self, data: bytes) -> Any:
        """Decode bytes back to a value.

        Raises:
            EncodingError: If the payload is not valid for this codec
        """
        try:
            decompressed = self.compressor.decompress(data)
            return self.serializer.deserialize(decompressed)
        except Exception as e:
            raise EncodingError(f"Cannot decode payload with codec {self.name}: {e}") from e

    def __repr__(self) -> str:
        return f"Codec(name={self.name!r})"


class CodecRegistry:
    """Registry for codec lookup by name.

    Composite names that were never registered are built on first use
    and cached.
    """

    _codecs: Dict[str, Codec] = {}
    _lock = threading.Lock()

    @classmethod
    def register(cls, name: str, codec: Codec) -> None:
        """Register a codec under a name."""
        with cls._lock:
            cls._codecs[name] = codec
        logger.debug(f"Registered codec {name} ({codec.name})")

    @classmethod
    def get(cls, name: str) -> Codec:
        """Get a codec by name.

        Raises:
            ValueError: If the name does not describe a known codec
        """
        with cls._lock:
            codec = cls._codecs.get(name)
            if codec is None:
                codec = Codec.from_name(name)
                cls._codecs[name] = codec
            return codec

    @classmethod
    def default(cls) -> Codec:
        """Get default codec."""
        return cls.get(DEFAULT_CODEC)


def resolve_codec(codec: Union[str, Codec, None]) -> Codec:
    """Accept a codec instance, a codec name, or None for the default."""
    if codec is None:
        return CodecRegistry.default()
    if isinstance(codec, Codec):
        return codec
    return CodecRegistry.get(codec)


__all__ = ["Codec", "CodecRegistry", "DEFAULT_CODEC", "resolve_codec"]
