"""PersistQ Compressor - Payload Compression Stages.

A compressor is a named pair of byte transforms applied after
serialization. The stage name is what ends up in a codec name such as
"pickle+gzip".

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import functools
import gzip
import zlib
from dataclasses import dataclass
from typing import Callable, Dict, List

import lz4.frame


@dataclass(frozen=True)
class Compressor:
    """A compression stage.

    Attributes:
        encoding: Content encoding name
        compress: bytes -> bytes
        decompress: bytes -> bytes
    """

    encoding: str
    compress: Callable[[bytes], bytes]
    decompress: Callable[[bytes], bytes]


def _identity(data: bytes) -> bytes:
    return data


IDENTITY = Compressor("identity", _identity, _identity)


def gzip_compressor(level: int = 9) -> Compressor:
    return Compressor(
        "gzip",
        functools.partial(gzip.compress, compresslevel=level),
        gzip.decompress,
    )


def zlib_compressor(level: int = 9) -> Compressor:
    return Compressor(
        "deflate",
        functools.partial(zlib.compress, level=level),
        zlib.decompress,
    )


LZ4 = Compressor("lz4", lz4.frame.compress, lz4.frame.decompress)


_COMPRESSORS: Dict[str, Compressor] = {
    "identity": IDENTITY,
    "gzip": gzip_compressor(),
    "deflate": zlib_compressor(),
    "lz4": LZ4,
}


def get_compressor(encoding: str) -> Compressor:
    """Look up a compression stage by encoding name."""
    try:
        return _COMPRESSORS[encoding]
    except KeyError:
        raise ValueError(f"Unknown compression: {encoding!r}") from None


def compressor_names() -> List[str]:
    return sorted(_COMPRESSORS)


__all__ = [
    "Compressor",
    "IDENTITY",
    "gzip_compressor",
    "zlib_compressor",
    "LZ4",
    "get_compressor",
    "compressor_names",
]
