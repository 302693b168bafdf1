from __future__ import annotations

import os
import sys
import argparse
import tempfile

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from pngfiles.reader import parse_png
from pngfiles.writer import write_png
from pngfiles.container import PngContainer
from pngfiles.codec import decode_header
from pngfiles.pathutil import key_from_path
from pngfiles.errors import (
    PngFilesError,
    KeyNotFoundError,
)


@dataclass
class EncodeMode:
    files: List[str] = field(default_factory=list)


@dataclass
class DecodeMode:
    files: List[str] = field(default_factory=list)


@dataclass
class RemoveMode:
    files: List[str] = field(default_factory=list)


@dataclass
class ListMode:
    pass


Mode = Union[EncodeMode, DecodeMode, RemoveMode, ListMode]


def _load(path: str) -> PngContainer:
    with open(path, "rb") as f:
        return parse_png(f.read())


def _target_mode(path: str) -> int:
    """Mode for a file written to ``path``: the current file's, else 0o666 less the umask."""
    if os.path.isfile(path):
        return os.stat(path).st_mode & 0o7777
    mask = os.umask(0)
    os.umask(mask)
    return 0o666 & ~mask


def _stage(path: str, write) -> str:
    """Write a temporary sibling of ``path`` and return its name.

    Args:
        path: Final destination; the temporary file gets the mode it should have.
        write: Callable receiving the open binary handle.
    """
    target_dir = os.path.dirname(os.path.abspath(path))
    fd, tmp = tempfile.mkstemp(prefix=".pngfiles-", suffix=".tmp", dir=target_dir)
    try:
        with os.fdopen(fd, "wb") as f:
            write(f)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp, _target_mode(path))
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise
    return tmp


def _atomic_write(path: str, write) -> None:
    """Write ``path`` through a temporary sibling and swap it in with os.replace."""
    tmp = _stage(path, write)
    try:
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def _save(path: str, png: PngContainer) -> None:
    _atomic_write(path, lambda f: write_png(f, png))


def cmd_encode(image: str, files: List[str], *, output: Optional[str] = None, quiet: bool = False) -> bool:
    """Embed files into a PNG, replacing records that share a key.

    Args:
        image: Source PNG path.
        files: Files to embed; each is keyed by its base name.
        output: Destination PNG. Defaults to rewriting ``image``.
        quiet: Suppress per-file progress lines.
    """
    png = _load(image)
    for path in files:
        key = key_from_path(path)
        with open(path, "rb") as f:
            data = f.read()
        replaced = key in png
        png.insert_file(key, data, replace=True)
        if not quiet:
            print(f"  {'replacing' if replaced else 'embedding'}: {key} ({len(data)} bytes)")
    dst = output or image
    _save(dst, png)
    if not quiet:
        print(f"Wrote {dst}: {len(png.keys())} embedded file(s)")
    return True


def cmd_decode(image: str, files: List[str], *, outdir: str = ".", quiet: bool = False) -> bool:
    """Extract embedded files into ``outdir``.

    Every key is resolved and inflated before anything is written, so a
    missing or damaged record leaves ``outdir`` untouched. Outputs are staged
    as temporary files and renamed together; if any step fails, files this
    call created are removed again.
    """
    png = _load(image)
    extracted: Dict[str, bytes] = {}
    for path in files:
        key = key_from_path(path)
        data = png.get_file(key, strict=True)
        if data is None:
            raise KeyNotFoundError(f"Key {key} not found in image")
        extracted[key] = data

    os.makedirs(outdir or ".", exist_ok=True)
    # (tmp, dst, existed before this call)
    staged: List[Tuple[str, str, bool]] = []
    committed: List[Tuple[str, str, bool]] = []
    try:
        for key, data in extracted.items():
            dst = os.path.join(outdir or ".", key)
            existed = os.path.lexists(dst)
            staged.append((_stage(dst, lambda f, data=data: f.write(data)), dst, existed))
        for entry in staged:
            os.replace(entry[0], entry[1])
            committed.append(entry)
    except BaseException:
        for tmp, dst, existed in staged:
            if (tmp, dst, existed) in committed:
                # Prior contents are gone; only files new to outdir can be undone
                if not existed and os.path.isfile(dst):
                    os.unlink(dst)
            elif os.path.exists(tmp):
                os.unlink(tmp)
        raise

    if not quiet:
        for key, data in extracted.items():
            print(f" extracting: {key} ({len(data)} bytes)")
    return True


def cmd_remove(image: str, files: List[str], *, quiet: bool = False) -> bool:
    """Remove embedded files from a PNG in place."""
    png = _load(image)
    removed = 0
    for path in files:
        key = key_from_path(path)
        if png.remove_file(key):
            removed += 1
            if not quiet:
                print(f"   removing: {key}")
        else:
            print(f"Warning: key {key} not found in image", file=sys.stderr)
    _save(image, png)
    if not quiet:
        print(f"Removed {removed} file(s) from {image}")
    return True


def cmd_list(image: str) -> bool:
    """List embedded files as ``stored<TAB>key`` lines."""
    png = _load(image)
    for c in png.file_chunks():
        print(f"{len(decode_header(c.data()).data)}\t{c.key}")
    return True


def dispatch(mode: Mode, image: str, *, output: Optional[str] = None, quiet: bool = False) -> bool:
    if isinstance(mode, EncodeMode):
        return cmd_encode(image, mode.files, output=output, quiet=quiet)
    if isinstance(mode, DecodeMode):
        return cmd_decode(image, mode.files, outdir=output or ".", quiet=quiet)
    if isinstance(mode, RemoveMode):
        return cmd_remove(image, mode.files, quiet=quiet)
    if isinstance(mode, ListMode):
        return cmd_list(image)
    raise RuntimeError("Unknown mode")


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="pngfiles",
        description="Embed, extract and remove files stored inside PNG images",
        epilog="Embedded files live in private fiLe chunks; image data is left untouched.",
    )
    modes = ap.add_mutually_exclusive_group(required=True)
    modes.add_argument("-e", "--encode", action="store_true", help="Encode files into the PNG")
    modes.add_argument("-d", "--decode", action="store_true", help="Decode files from the PNG")
    modes.add_argument("-r", "--remove", action="store_true", help="Remove files from the PNG")
    modes.add_argument("-l", "--list", action="store_true", help="List files embedded in the PNG")
    ap.add_argument("-i", "--input", required=True, help="Input PNG path")
    ap.add_argument(
        "-o",
        "--output",
        help=(
            "Encode: PNG to write (default: rewrite the input). "
            "Decode: directory to extract into (default: current directory). "
            "Ignored by remove and list."
        ),
    )
    ap.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")
    ap.add_argument("files", nargs="*", help="Files to encode, or files whose base names are the keys to decode/remove")

    args = ap.parse_args(argv)
    if not args.list and not args.files:
        ap.error("at least one file is required for encode, decode and remove")

    if args.encode:
        mode: Mode = EncodeMode(args.files)
    elif args.decode:
        mode = DecodeMode(args.files)
    elif args.remove:
        mode = RemoveMode(args.files)
    else:
        mode = ListMode()

    try:
        dispatch(mode, args.input, output=args.output, quiet=args.quiet)
    except (PngFilesError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
