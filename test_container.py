from __future__ import annotations

import io
import os
import struct
import unittest
import zlib

from pngfiles.reader import parse_png
from pngfiles.writer import serialize, write_png
from pngfiles.container import PngContainer
from pngfiles.codec import encode_file
from pngfiles.constants import PNG_SIGNATURE, FILE_CHUNK_TYPE, RECORD_LEN_STRUCT
from pngfiles.source import BorrowedRange, OwnedBuffer
from pngfiles.errors import (
    FormatError,
    IntegrityError,
    OutOfBoundsError,
    EncodingError,
    CompressionError,
    DuplicateKeyError,
    SizeLimitError,
)


def _chunk(ctype: bytes, data: bytes) -> bytes:
    crc = zlib.crc32(ctype + data) & 0xFFFFFFFF
    return struct.pack(">I", len(data)) + ctype + data + struct.pack(">I", crc)


def _make_png(*extra: bytes) -> bytes:
    # 2x2 RGB image: red row, green row
    ihdr = struct.pack(">IIBBBBB", 2, 2, 8, 2, 0, 0, 0)
    raw = b"\x00" + b"\xff\x00\x00" * 2 + b"\x00" + b"\x00\xff\x00" * 2
    return (
        PNG_SIGNATURE
        + _chunk(b"IHDR", ihdr)
        + _chunk(b"tEXt", b"Comment\x00hello")
        + _chunk(b"IDAT", zlib.compress(raw))
        + b"".join(extra)
        + _chunk(b"IEND", b"")
    )


def _types(png: PngContainer):
    return [c.ctype for c in png.chunks]


class ParseTests(unittest.TestCase):
    def test_roundtrip_is_byte_identical(self):
        data = _make_png()
        png = parse_png(data)
        self.assertEqual(_types(png), [b"IHDR", b"tEXt", b"IDAT", b"IEND"])
        self.assertEqual(serialize(png), data)
        self.assertEqual(png.size_hint, len(data))

    def test_roundtrip_with_embedded_files(self):
        data = _make_png(_chunk(FILE_CHUNK_TYPE, encode_file("a.txt", b"alpha" * 100)))
        png = parse_png(data)
        self.assertEqual(png.keys(), ["a.txt"])
        self.assertEqual(serialize(png), data)

    def test_write_png_matches_serialize(self):
        png = parse_png(_make_png())
        png.insert_file("x.bin", os.urandom(512))
        buf = io.BytesIO()
        n = write_png(buf, png)
        self.assertEqual(buf.getvalue(), serialize(png))
        self.assertEqual(n, png.size_hint)

    def test_chunks_share_one_backing_buffer(self):
        png = parse_png(_make_png())
        sources = [c.source for c in png.chunks]
        self.assertTrue(all(isinstance(s, BorrowedRange) for s in sources))
        self.assertTrue(all(s.buffer is sources[0].buffer for s in sources))
        self.assertEqual(bytes(png.chunks[1].data()), b"Comment\x00hello")

    def test_mutable_input_is_not_aliased(self):
        data = bytearray(_make_png())
        png = parse_png(data)
        expected = bytes(data)
        data[20] ^= 0xFF
        self.assertEqual(serialize(png), expected)

    def test_zero_length_payload(self):
        png = parse_png(_make_png())
        iend = png.chunks[-1]
        self.assertEqual(iend.length, 0)
        self.assertEqual(bytes(iend.data()), b"")

    def test_signature_only(self):
        png = parse_png(PNG_SIGNATURE)
        self.assertEqual(len(png), 0)
        self.assertEqual(serialize(png), PNG_SIGNATURE)

    def test_bad_signature(self):
        data = bytearray(_make_png())
        data[1] = ord("Q")
        with self.assertRaises(FormatError):
            parse_png(bytes(data))
        with self.assertRaises(FormatError):
            parse_png(b"\x89PN")
        with self.assertRaises(FormatError):
            parse_png(b"")

    def test_truncated_buffer(self):
        data = _make_png()
        for cut in (1, 4, 10, 14):
            with self.assertRaises(OutOfBoundsError):
                parse_png(data[:-cut])

    def test_length_past_end(self):
        data = PNG_SIGNATURE + struct.pack(">I", 1000) + b"tEXt" + b"short"
        with self.assertRaises(OutOfBoundsError):
            parse_png(data)

    def test_malformed_file_record_fails_parse(self):
        bad = RECORD_LEN_STRUCT.pack(50) + b"abc"
        with self.assertRaises(EncodingError):
            parse_png(_make_png(_chunk(FILE_CHUNK_TYPE, bad)))

    def test_duplicate_keys_tolerated_at_parse(self):
        data = _make_png(
            _chunk(FILE_CHUNK_TYPE, encode_file("dup.txt", b"first")),
            _chunk(FILE_CHUNK_TYPE, encode_file("dup.txt", b"second")),
        )
        png = parse_png(data)
        self.assertEqual(png.keys(), ["dup.txt", "dup.txt"])
        self.assertEqual(png.get_file("dup.txt"), b"first")
        self.assertTrue(png.remove_file("dup.txt"))
        self.assertEqual(png.get_file("dup.txt"), b"second")


class CorruptionTests(unittest.TestCase):
    def _flip(self, data: bytes, offset: int, mask: int) -> bytes:
        b = bytearray(data)
        b[offset] ^= mask
        return bytes(b)

    def test_any_bit_flip_in_tag_or_payload(self):
        png = parse_png(_make_png())
        png.insert_file("doc.txt", b"some document text\n" * 10)
        data = serialize(png)
        parsed = parse_png(data)
        for c in parsed.chunks:
            start = c.source.start
            offsets = list(range(start - 4, start))
            if c.length:
                offsets += [start, start + c.length // 2, start + c.length - 1]
            for off in offsets:
                for bit in range(8):
                    with self.subTest(ctype=c.ctype, offset=off, bit=bit):
                        with self.assertRaises(IntegrityError):
                            parse_png(self._flip(data, off, 1 << bit))

    def test_stored_crc_flip(self):
        data = _make_png()
        # Last 4 bytes are the IEND CRC
        with self.assertRaises(IntegrityError):
            parse_png(self._flip(data, len(data) - 1, 0x01))

    def test_parse_is_atomic(self):
        data = self._flip(_make_png(), 20, 0x01)
        png = None
        with self.assertRaises(IntegrityError):
            png = parse_png(data)
        self.assertIsNone(png)


class MutationTests(unittest.TestCase):
    def test_insert_then_get(self):
        png = parse_png(_make_png())
        payload = os.urandom(3000)
        png.insert_file("blob.bin", payload)
        self.assertEqual(png.get_file("blob.bin"), payload)
        self.assertIn("blob.bin", png)
        reparsed = parse_png(serialize(png))
        self.assertEqual(reparsed.get_file("blob.bin"), payload)

    def test_insert_appends_after_all_chunks(self):
        png = parse_png(_make_png())
        png.insert_file("one", b"1")
        png.insert_file("two", b"2")
        self.assertEqual(
            _types(png), [b"IHDR", b"tEXt", b"IDAT", b"IEND", FILE_CHUNK_TYPE, FILE_CHUNK_TYPE]
        )
        self.assertEqual(png.keys(), ["one", "two"])

    def test_new_chunk_owns_its_buffer(self):
        png = parse_png(_make_png())
        png.insert_file("k", b"v")
        self.assertIsInstance(png.chunks[-1].source, OwnedBuffer)
        self.assertTrue(all(isinstance(c.source, BorrowedRange) for c in png.chunks[:-1]))

    def test_insert_then_remove(self):
        data = _make_png()
        png = parse_png(data)
        png.insert_file("gone.txt", b"bye")
        self.assertTrue(png.remove_file("gone.txt"))
        self.assertIsNone(png.get_file("gone.txt"))
        self.assertFalse(png.remove_file("gone.txt"))
        self.assertEqual(serialize(png), data)

    def test_remove_missing_is_noop(self):
        data = _make_png()
        png = parse_png(data)
        self.assertFalse(png.remove_file("nope"))
        self.assertEqual(serialize(png), data)

    def test_get_missing(self):
        png = parse_png(_make_png())
        self.assertIsNone(png.get_file("missing"))
        self.assertIsNone(png.get_file("missing", strict=True))

    def test_duplicate_rejected_without_replace(self):
        png = parse_png(_make_png())
        png.insert_file("k.txt", b"v1")
        before = serialize(png)
        with self.assertRaises(DuplicateKeyError):
            png.insert_file("k.txt", b"v2", replace=False)
        self.assertEqual(serialize(png), before)
        self.assertEqual(png.get_file("k.txt"), b"v1")

    def test_replace_keeps_position(self):
        data = _make_png(_chunk(FILE_CHUNK_TYPE, encode_file("mid.txt", b"old")))
        png = parse_png(data)
        pos = png.keys().index("mid.txt")
        idx = [i for i, c in enumerate(png.chunks) if c.key == "mid.txt"][0]
        untouched = [bytes(c.data()) for i, c in enumerate(png.chunks) if i != idx]

        png.insert_file("mid.txt", b"new contents", replace=True)
        self.assertEqual(png.get_file("mid.txt"), b"new contents")
        self.assertEqual(png.chunks[idx].key, "mid.txt")
        self.assertIsInstance(png.chunks[idx].source, OwnedBuffer)
        self.assertEqual(png.keys().index("mid.txt"), pos)
        self.assertEqual(_types(png), [b"IHDR", b"tEXt", b"IDAT", FILE_CHUNK_TYPE, b"IEND"])
        self.assertEqual([bytes(c.data()) for i, c in enumerate(png.chunks) if i != idx], untouched)

        reparsed = parse_png(serialize(png))
        self.assertEqual(_types(reparsed), _types(png))
        self.assertEqual(reparsed.get_file("mid.txt"), b"new contents")

    def test_replace_collapses_duplicate_keys(self):
        data = _make_png(
            _chunk(FILE_CHUNK_TYPE, encode_file("dup.txt", b"first")),
            _chunk(b"tEXt", b"Author\x00someone"),
            _chunk(FILE_CHUNK_TYPE, encode_file("dup.txt", b"second")),
            _chunk(FILE_CHUNK_TYPE, encode_file("other.txt", b"kept")),
        )
        png = parse_png(data)
        self.assertEqual(png.keys(), ["dup.txt", "dup.txt", "other.txt"])

        png.insert_file("dup.txt", b"third", replace=True)
        self.assertEqual(png.keys(), ["dup.txt", "other.txt"])
        self.assertEqual(png.chunks[3].key, "dup.txt")
        self.assertEqual(
            _types(png),
            [b"IHDR", b"tEXt", b"IDAT", FILE_CHUNK_TYPE, b"tEXt", FILE_CHUNK_TYPE, b"IEND"],
        )
        self.assertEqual(png.get_file("dup.txt"), b"third")
        self.assertTrue(png.remove_file("dup.txt"))
        self.assertIsNone(png.get_file("dup.txt"))
        self.assertEqual(png.get_file("other.txt"), b"kept")

    def test_rejected_replace_leaves_duplicates(self):
        data = _make_png(
            _chunk(FILE_CHUNK_TYPE, encode_file("dup.txt", b"first")),
            _chunk(FILE_CHUNK_TYPE, encode_file("dup.txt", b"second")),
        )
        png = parse_png(data)
        png.max_chunk_length = 8
        with self.assertRaises(SizeLimitError):
            png.insert_file("dup.txt", b"too big for the limit", replace=True)
        self.assertEqual(png.keys(), ["dup.txt", "dup.txt"])
        self.assertEqual(serialize(png), data)

    def test_minimal_buffer_roundtrip(self):
        png = parse_png(PNG_SIGNATURE)
        self.assertEqual(png.chunks, [])
        png.insert_file("a.txt", bytes([0x01, 0x02, 0x03]), True)
        again = parse_png(serialize(png))
        self.assertEqual(again.get_file("a.txt"), bytes([0x01, 0x02, 0x03]))

    def test_empty_file(self):
        png = parse_png(_make_png())
        png.insert_file("empty", b"")
        self.assertEqual(parse_png(serialize(png)).get_file("empty"), b"")

    def test_size_limit(self):
        png = parse_png(_make_png())
        png.insert_file("small", b"x")
        before = serialize(png)
        png.max_chunk_length = 64
        with self.assertRaises(SizeLimitError):
            png.insert_file("big.bin", os.urandom(256))
        self.assertEqual(serialize(png), before)
        with self.assertRaises(SizeLimitError):
            png.insert_file("small", os.urandom(256), replace=True)
        self.assertEqual(serialize(png), before)
        self.assertEqual(png.get_file("small"), b"x")

    def test_damaged_record_reads_as_absent(self):
        # Valid header and CRC, but the deflate stream is garbage
        key = b"bad.bin"
        body = RECORD_LEN_STRUCT.pack(len(key)) + key + RECORD_LEN_STRUCT.pack(3) + b"\xff\xff\xff"
        png = parse_png(_make_png(_chunk(FILE_CHUNK_TYPE, body)))
        self.assertIn("bad.bin", png)
        self.assertIsNone(png.get_file("bad.bin"))
        with self.assertRaises(CompressionError):
            png.get_file("bad.bin", strict=True)


if __name__ == "__main__":
    unittest.main()
