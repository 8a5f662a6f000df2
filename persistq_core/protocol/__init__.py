"""PersistQ Protocol Module - Payload Serialization & Encoding.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from persistq_core.protocol.serializer import (
    Serializer,
    PickleSerializer,
    JSONSerializer,
    MsgPackSerializer,
)
from persistq_core.protocol.compressor import Compressor, get_compressor
from persistq_core.protocol.codec import Codec, CodecRegistry, resolve_codec

__all__ = [
    "Serializer", "PickleSerializer", "JSONSerializer", "MsgPackSerializer",
    "Compressor", "get_compressor",
    "Codec", "CodecRegistry", "resolve_codec",
]
