from __future__ import annotations

from typing import BinaryIO

from .constants import CHUNK_CRC_STRUCT, CHUNK_HDR_STRUCT, PNG_SIGNATURE
from .container import PngContainer


def serialize(png: PngContainer) -> bytes:
    """Encode the container back to PNG bytes.

    Stored lengths and CRCs are written as-is; nothing is re-validated.
    """
    out = bytearray(png.size_hint)
    pos = len(PNG_SIGNATURE)
    out[:pos] = PNG_SIGNATURE
    for c in png.chunks:
        CHUNK_HDR_STRUCT.pack_into(out, pos, c.length, c.ctype)
        pos += CHUNK_HDR_STRUCT.size
        out[pos : pos + c.length] = c.data()
        pos += c.length
        CHUNK_CRC_STRUCT.pack_into(out, pos, c.crc)
        pos += CHUNK_CRC_STRUCT.size
    return bytes(out)


def write_png(f: BinaryIO, png: PngContainer) -> int:
    """Write the container to an open binary file; returns bytes written."""
    f.write(PNG_SIGNATURE)
    total = len(PNG_SIGNATURE)
    for c in png.chunks:
        raw = c.pack()
        f.write(raw)
        total += len(raw)
    return total
