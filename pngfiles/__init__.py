"""
pngfiles — store files inside PNG images.

Features:

- Files are kept in private ancillary ``fiLe`` chunks, one record per key,
  deflate-compressed; all other chunks are carried through byte for byte.
- Every chunk CRC is verified on load; a damaged image is rejected whole.
- Parsed chunks are zero-copy views into the source buffer; only inserted or
  replaced records allocate.
- CLI for encode / decode / remove / list (see pngfiles.cli).

Typical use:

    png = parse_png(data)
    png.insert_file("notes.txt", b"...", replace=True)
    out = serialize(png)
"""

from .container import PngContainer
from .reader import parse_png
from .writer import serialize, write_png

__version__ = "0.1"

__all__ = [
    "PngContainer",
    "parse_png",
    "serialize",
    "write_png",
    "constants",
    "codec",
    "errors",
]
