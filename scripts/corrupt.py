from __future__ import annotations

import argparse
import os
import random
import sys
from typing import Optional

from pngfiles.reader import parse_png
from pngfiles.errors import PngFilesError


def _flip_bytes(path: str, offsets, xor_val: int = 0xFF) -> None:
    """XOR each byte at ``offsets`` with ``xor_val`` and rewrite the image once."""
    with open(path, "rb") as f:
        buf = bytearray(f.read())
    mask = xor_val & 0xFF
    for off in offsets:
        if off < 0 or off >= len(buf):
            raise ValueError(f"Offset {off} outside image (0..{len(buf)-1})")
        buf[off] ^= mask
    with open(path, "wb") as f:
        f.write(buf)
        f.flush()
        os.fsync(f.fileno())


def _chunk_offsets(path: str):
    # (index, ctype, data_start, length); data_start - 4 is the type tag
    with open(path, "rb") as f:
        png = parse_png(f.read())
    return [(i, c.ctype, c.source.start, c.length) for i, c in enumerate(png.chunks)]


def cmd_by_offset(args: argparse.Namespace) -> None:
    _flip_bytes(args.image, [args.offset], xor_val=args.xor)
    print(f"Flipped 1 byte at offset {args.offset}")


def cmd_chunk(args: argparse.Namespace) -> None:
    chunks = _chunk_offsets(args.image)
    if args.type is not None:
        want = args.type.encode("ascii")
        found = next((c for c in chunks if c[1] == want), None)
        if found is None:
            raise ValueError(f"No {args.type} chunk in image")
    else:
        if args.index < 0 or args.index >= len(chunks):
            raise ValueError(f"Chunk index out of range (0..{len(chunks)-1})")
        found = chunks[args.index]
    idx, ctype, start, length = found
    if args.tag:
        if args.within < 0 or args.within >= 4:
            raise ValueError("--within must be 0..3 with --tag")
        off = start - 4 + args.within
    else:
        if args.within < 0 or args.within >= length:
            raise ValueError(f"--within must be within chunk length (0..{length-1})")
        off = start + args.within
    _flip_bytes(args.image, [off], xor_val=args.xor)
    print(f"Flipped 1 byte in chunk {idx} ({ctype.decode('ascii')}) at offset {off}")


def _crc_covered(chunks):
    # Tag and payload of every chunk; length and CRC fields are left alone
    return [range(start - 4, start + length) for _, _, start, length in chunks]


def cmd_random(args: argparse.Namespace) -> None:
    rng = random.Random(args.seed)
    spans = _crc_covered(_chunk_offsets(args.image))
    total = sum(len(s) for s in spans)
    if args.count < 1 or args.count > total:
        raise ValueError(f"--count must be 1..{total}")
    offsets = []
    for n in sorted(rng.sample(range(total), args.count)):
        for s in spans:
            if n < len(s):
                offsets.append(s[n])
                break
            n -= len(s)
    _flip_bytes(args.image, offsets, xor_val=args.xor)
    print(f"Flipped {len(offsets)} byte(s) at offsets {', '.join(map(str, offsets))}")


def main(argv: Optional[list[str]] = None) -> None:
    ap = argparse.ArgumentParser(prog="pngfiles.corrupt", description="Corrupt PNG images for testing")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p_off = sub.add_parser("by-offset", help="Flip one byte at an absolute file offset")
    p_off.add_argument("image", help="Path to PNG image")
    p_off.add_argument("--offset", type=int, required=True, help="Absolute byte offset in image")
    p_off.add_argument("--xor", type=lambda x: int(x, 0), default=0xFF, help="XOR mask to apply (default 0xFF)")
    p_off.set_defaults(func=cmd_by_offset)

    p_chunk = sub.add_parser("chunk", help="Flip a byte inside one chunk's payload or type tag")
    p_chunk.add_argument("image", help="Path to PNG image")
    p_chunk.add_argument("--index", type=int, default=0, help="Chunk index (0-based, default 0)")
    p_chunk.add_argument("--type", help="Pick the first chunk of this type instead of --index")
    p_chunk.add_argument("--within", type=int, default=0, help="Byte offset within payload or tag (default 0)")
    p_chunk.add_argument("--tag", action="store_true", help="Corrupt the type tag instead of the payload")
    p_chunk.add_argument("--xor", type=lambda x: int(x, 0), default=0x01, help="XOR mask to apply (default 0x01)")
    p_chunk.set_defaults(func=cmd_chunk)

    p_rand = sub.add_parser("random", help="Flip N distinct random bytes inside chunk tags or payloads")
    p_rand.add_argument("image", help="Path to PNG image")
    p_rand.add_argument("--count", type=int, default=1, help="Number of random byte flips (default 1)")
    p_rand.add_argument("--seed", type=int, default=None, help="PRNG seed for reproducibility")
    p_rand.add_argument("--xor", type=lambda x: int(x, 0), default=0xFF, help="XOR mask to apply (default 0xFF)")
    p_rand.set_defaults(func=cmd_random)

    args = ap.parse_args(argv)
    try:
        args.func(args)
    except (PngFilesError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
