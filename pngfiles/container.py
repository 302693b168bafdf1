from __future__ import annotations

from typing import Iterator, List, Optional

from .codec import encode_file, extract_file
from .constants import FILE_CHUNK_TYPE, MAX_CHUNK_LENGTH, PNG_SIGNATURE
from .errors import CompressionError, DuplicateKeyError, EncodingError, SizeLimitError
from .records import Chunk, chunk_crc
from .source import owned


class PngContainer:
    """In-memory chunk sequence of one PNG, with fiLe records addressable by key.

    Mutations only ever touch fiLe chunks: new records are appended after
    every existing chunk and replacements keep their index, so the order of
    all other chunks is exactly what was parsed.
    """

    def __init__(self, chunks: Optional[List[Chunk]] = None, *, max_chunk_length: int = MAX_CHUNK_LENGTH):
        self.chunks: List[Chunk] = list(chunks or [])
        self.max_chunk_length = max_chunk_length

    def __len__(self) -> int:
        return len(self.chunks)

    def __contains__(self, key: object) -> bool:
        return self._find(key) is not None

    @property
    def size_hint(self) -> int:
        """Exact serialized size, used by the writer to preallocate."""
        return len(PNG_SIGNATURE) + sum(c.encoded_size for c in self.chunks)

    def _find(self, key) -> Optional[int]:
        for i, c in enumerate(self.chunks):
            if c.is_file and c.key == key:
                return i
        return None

    def file_chunks(self) -> Iterator[Chunk]:
        return (c for c in self.chunks if c.is_file)

    def keys(self) -> List[str]:
        return [c.key for c in self.file_chunks()]

    def get_file(self, key: str, *, strict: bool = False) -> Optional[bytes]:
        """Return the decompressed contents stored under ``key``.

        Returns None if no record has that key. A record that fails to decode
        or inflate also yields None unless ``strict`` is set, in which case
        EncodingError/CompressionError is raised.
        """
        idx = self._find(key)
        if idx is None:
            return None
        try:
            return extract_file(self.chunks[idx].data())
        except (EncodingError, CompressionError):
            if strict:
                raise
            return None

    def remove_file(self, key: str) -> bool:
        idx = self._find(key)
        if idx is None:
            return False
        del self.chunks[idx]
        return True

    def insert_file(self, key: str, data: bytes, replace: bool = False) -> None:
        """Store ``data`` under ``key`` in a new fiLe chunk.

        Raises DuplicateKeyError if the key exists and ``replace`` is false,
        SizeLimitError if the encoded record does not fit the length field.
        The container is untouched when either is raised. A replace keeps the
        position of the first chunk with ``key`` and drops any later ones.
        """
        idx = self._find(key)
        if idx is not None and not replace:
            raise DuplicateKeyError(f"Key {key!r} already in use")

        payload = encode_file(key, data)
        if len(payload) > self.max_chunk_length:
            raise SizeLimitError(
                f"Encoded record for {key!r} is {len(payload)} bytes; chunks hold at most {self.max_chunk_length}"
            )

        chunk = Chunk(
            ctype=FILE_CHUNK_TYPE,
            source=owned(payload),
            crc=chunk_crc(FILE_CHUNK_TYPE, payload),
            length=len(payload),
            key=key,
        )
        if idx is None:
            self.chunks.append(chunk)
            return
        self.chunks[idx + 1 :] = [c for c in self.chunks[idx + 1 :] if not (c.is_file and c.key == key)]
        self.chunks[idx] = chunk
