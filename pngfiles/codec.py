from __future__ import annotations

import zlib
from dataclasses import dataclass

from .constants import DEFLATE_LEVEL, DEFLATE_WBITS, MAX_KEY_LENGTH, RECORD_LEN_STRUCT
from .errors import CompressionError, EncodingError


@dataclass
class FileHeader:
    key: str
    data: memoryview  # still deflate-compressed


def deflate(data: bytes, level: int = DEFLATE_LEVEL) -> bytes:
    c = zlib.compressobj(level, zlib.DEFLATED, DEFLATE_WBITS)
    return c.compress(data) + c.flush()


def inflate(data) -> bytes:
    d = zlib.decompressobj(DEFLATE_WBITS)
    try:
        out = d.decompress(data) + d.flush()
    except zlib.error as e:
        raise CompressionError(f"deflate stream is corrupt: {e}")
    if not d.eof:
        raise CompressionError("deflate stream is truncated")
    return out


def encode_file(key: str, raw: bytes) -> bytes:
    """Build a fiLe chunk payload: key_len | key | data_len | deflate(raw)."""
    key_bytes = key.encode("utf-8")
    if len(key_bytes) > MAX_KEY_LENGTH:
        raise EncodingError("File key is too long for a u32 length prefix")
    compressed = deflate(raw)
    return b"".join(
        (
            RECORD_LEN_STRUCT.pack(len(key_bytes)),
            key_bytes,
            RECORD_LEN_STRUCT.pack(len(compressed)),
            compressed,
        )
    )


def decode_header(payload) -> FileHeader:
    """Split a fiLe payload into its key and a view of the compressed data.

    Only the two length prefixes and the key are read, so the cost does not
    depend on the size of the embedded file. Bytes after the data are ignored.
    """
    view = memoryview(payload)
    size = RECORD_LEN_STRUCT.size
    if len(view) < size:
        raise EncodingError("File record too short for key length")
    (key_len,) = RECORD_LEN_STRUCT.unpack_from(view, 0)
    pos = size
    if key_len > len(view) - pos:
        raise EncodingError("File record key overruns payload")
    try:
        key = bytes(view[pos : pos + key_len]).decode("utf-8")
    except UnicodeDecodeError as e:
        raise EncodingError(f"File record key is not valid UTF-8: {e}")
    pos += key_len
    if len(view) - pos < size:
        raise EncodingError("File record too short for data length")
    (data_len,) = RECORD_LEN_STRUCT.unpack_from(view, pos)
    pos += size
    if data_len > len(view) - pos:
        raise EncodingError("File record data overruns payload")
    return FileHeader(key=key, data=view[pos : pos + data_len])


def extract_file(payload) -> bytes:
    return inflate(decode_header(payload).data)
