from __future__ import annotations

from typing import List

from .codec import decode_header
from .constants import PNG_SIGNATURE
from .container import PngContainer
from .errors import FormatError, IntegrityError
from .records import Chunk, chunk_crc, read_chunk_at
from .source import BorrowedRange


def parse_png(data) -> PngContainer:
    """Parse a complete PNG buffer into a mutable chunk container.

    Every chunk is CRC-checked. fiLe chunks additionally have their record
    header decoded so lookups by key never need to inflate anything; their
    payloads, like all others, stay as ranges into one shared buffer.

    Raises FormatError, OutOfBoundsError, IntegrityError or EncodingError.
    Nothing is returned unless the whole buffer parses.
    """
    # Chunk ranges point into this object, so it must not be mutable
    buf = data if isinstance(data, bytes) else bytes(data)

    if len(buf) < len(PNG_SIGNATURE) or buf[: len(PNG_SIGNATURE)] != PNG_SIGNATURE:
        raise FormatError("Input is not PNG format")

    chunks: List[Chunk] = []
    off = len(PNG_SIGNATURE)
    while off < len(buf):
        ctype, start, end, crc, off = read_chunk_at(buf, off)
        src = BorrowedRange(buf, start, end)
        if chunk_crc(ctype, src.view()) != crc:
            raise IntegrityError(f"CRC mismatch in {ctype!r} chunk at offset {start - 8}; PNG file is corrupted")
        # Checked after the CRC so a damaged tag reports as corruption
        try:
            ctype.decode("ascii")
        except UnicodeDecodeError:
            raise FormatError(f"Invalid chunk type {ctype!r} at offset {start - 8}")
        chunk = Chunk(ctype=ctype, source=src, crc=crc, length=end - start)
        if chunk.is_file:
            chunk.key = decode_header(src.view()).key
        chunks.append(chunk)

    return PngContainer(chunks)
