from __future__ import annotations

import os


def key_from_path(p: str) -> str:
    """Derive the embedding key for a file: its base name, extension included.

    Rules:
    - Trailing slashes are ignored
    - '', '.' and '..' have no base name and are rejected
    """
    name = os.path.basename(os.path.normpath(str(p)))
    if name in ("", ".", ".."):
        raise ValueError(f"Cannot derive a file key from path {p!r}")
    return name
