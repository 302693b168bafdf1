from __future__ import annotations

import zlib
from dataclasses import dataclass
from typing import Optional, Tuple

from .constants import CHUNK_CRC_STRUCT, CHUNK_HDR_STRUCT, FILE_CHUNK_TYPE
from .errors import OutOfBoundsError
from .source import DataSource


@dataclass
class Chunk:
    ctype: bytes
    source: DataSource
    crc: int
    length: int
    # Decoded record key; set only for fiLe chunks
    key: Optional[str] = None

    @property
    def is_file(self) -> bool:
        return self.ctype == FILE_CHUNK_TYPE

    def data(self) -> memoryview:
        return self.source.view()

    @property
    def encoded_size(self) -> int:
        return CHUNK_HDR_STRUCT.size + self.length + CHUNK_CRC_STRUCT.size

    def pack(self) -> bytes:
        return b"".join(
            (
                CHUNK_HDR_STRUCT.pack(self.length, self.ctype),
                self.data(),
                CHUNK_CRC_STRUCT.pack(self.crc),
            )
        )


def chunk_crc(ctype: bytes, payload) -> int:
    # CRC covers the type tag first, then the payload; length is excluded
    return zlib.crc32(payload, zlib.crc32(ctype)) & 0xFFFFFFFF


def read_chunk_at(buf: bytes, offset: int) -> Tuple[bytes, int, int, int, int]:
    """Locate the chunk starting at ``offset``.

    Returns: (ctype, data_start, data_end, stored_crc, next_offset)
    """
    end = len(buf)
    if end - offset < CHUNK_HDR_STRUCT.size:
        raise OutOfBoundsError(f"Truncated chunk header at offset {offset}")
    length, ctype = CHUNK_HDR_STRUCT.unpack_from(buf, offset)
    data_start = offset + CHUNK_HDR_STRUCT.size
    data_end = data_start + length
    if data_end > end:
        raise OutOfBoundsError(f"Chunk {ctype!r} length {length} runs past end of buffer")
    if end - data_end < CHUNK_CRC_STRUCT.size:
        raise OutOfBoundsError(f"Chunk {ctype!r} is missing its CRC")
    (crc,) = CHUNK_CRC_STRUCT.unpack_from(buf, data_end)
    return ctype, data_start, data_end, crc, data_end + CHUNK_CRC_STRUCT.size
