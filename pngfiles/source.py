from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class BorrowedRange:
    """Payload that lives inside the buffer a container was parsed from.

    The buffer is shared by every chunk of the same parse and is never
    written to; each chunk only keeps its own (start, end) pair.
    """

    buffer: bytes
    start: int
    end: int

    def view(self) -> memoryview:
        return memoryview(self.buffer)[self.start : self.end]

    def __len__(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class OwnedBuffer:
    """Payload allocated for a single chunk (inserted or replaced)."""

    data: bytes

    def view(self) -> memoryview:
        return memoryview(self.data)

    def __len__(self) -> int:
        return len(self.data)


DataSource = Union[BorrowedRange, OwnedBuffer]


def owned(data) -> OwnedBuffer:
    # bytes() copies anything mutable, so the chunk's buffer is exclusively its own
    return OwnedBuffer(bytes(data))
