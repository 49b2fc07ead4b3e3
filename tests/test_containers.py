"""Tests for ISOBMFF / RIFF container resolution and chunk walking."""

import struct

from file_forensic.models import FileCategory
from file_forensic.parsers.chunks import MAX_PNG_CHUNK_LENGTH, iter_png_chunks, iter_riff_chunks
from file_forensic.parsers.containers import (
    ContainerResolver,
    is_likely_isobmff,
    parse_ftyp_box,
    parse_top_level_boxes,
)


def _ftyp(major, compatible=(), size=None):
    body = major + struct.pack(">I", 0) + b"".join(compatible)
    size = size if size is not None else 8 + len(body)
    return struct.pack(">I", size) + b"ftyp" + body


class TestFtypBox:
    """Tests for parse_ftyp_box."""

    def test_parses_brands(self, heic_bytes):
        ftyp = parse_ftyp_box(heic_bytes)
        assert ftyp.major_brand == "heic"
        assert ftyp.minor_version == 0
        assert ftyp.compatible_brands == ["mif1", "heic"]
        assert ftyp.size == 24

    def test_too_short(self):
        assert parse_ftyp_box(b"\x00\x00\x00\x10ftyp") is None

    def test_wrong_box_type(self):
        assert parse_ftyp_box(struct.pack(">I", 16) + b"moov" + b"\x00" * 8) is None

    def test_size_below_minimum(self):
        assert parse_ftyp_box(_ftyp(b"heic", size=8) + b"\x00" * 8) is None

    def test_size_beyond_buffer(self):
        assert parse_ftyp_box(_ftyp(b"heic", size=400)) is None


class TestTopLevelBoxes:
    """Tests for parse_top_level_boxes."""

    def test_walks_boxes_and_stops_after_mdat(self, heic_bytes):
        trailing = struct.pack(">I", 8) + b"free"
        boxes = parse_top_level_boxes(heic_bytes + trailing)
        assert [b.box_type for b in boxes] == ["ftyp", "meta", "mdat"]
        assert boxes[1].offset == 24

    def test_stops_on_overrun(self):
        data = _ftyp(b"isom") + struct.pack(">I", 1000) + b"moov"
        assert [b.box_type for b in parse_top_level_boxes(data)] == ["ftyp"]

    def test_respects_limit(self):
        data = b"".join(struct.pack(">I", 8) + b"free" for _ in range(20))
        assert len(parse_top_level_boxes(data, limit=10)) == 10

    def test_is_likely_isobmff(self, heic_bytes, png_bytes):
        assert is_likely_isobmff(heic_bytes)
        assert not is_likely_isobmff(png_bytes)


class TestIsobmffResolution:
    """Tests for ContainerResolver.resolve_isobmff."""

    def test_heic_confidence(self, heic_bytes):
        result = ContainerResolver().resolve_isobmff(heic_bytes)
        assert result.valid
        assert result.file_type == "heic"
        assert result.mime_type == "image/heic"
        assert result.category == FileCategory.IMAGE
        assert result.confidence >= 85

    def test_brand_only_heic_still_reaches_85(self):
        result = ContainerResolver().resolve_isobmff(_ftyp(b"heic", (b"mif1",)))
        assert result.file_type == "heic"
        assert result.confidence == 85

    def test_compatible_brand_fallback(self):
        result = ContainerResolver().resolve_isobmff(_ftyp(b"zzzz", (b"avif",)))
        assert result.file_type == "avif"

    def test_unknown_brand(self):
        result = ContainerResolver().resolve_isobmff(_ftyp(b"zzzz", (b"yyyy",)))
        assert result.valid
        assert result.file_type == "unknown_isobmff"
        assert result.confidence == 70
        assert "zzzz" in result.description

    def test_invalid_buffer(self):
        result = ContainerResolver().resolve_isobmff(b"\x00" * 4)
        assert not result.valid
        assert result.confidence == 0
        assert result.error

    def test_unsupported_family(self, heic_bytes):
        result = ContainerResolver().resolve(heic_bytes, "ole")
        assert not result.valid
        assert "Unsupported" in result.error


class TestRiffResolution:
    """Tests for ContainerResolver.resolve_riff."""

    def test_webp(self, webp_bytes):
        result = ContainerResolver().resolve(webp_bytes, "riff_container")
        assert result.valid
        assert result.file_type == "webp"
        assert result.major_brand == "WEBP"
        # wrapper + well formed + known form + media chunk
        assert result.confidence == 90
        assert [b.box_type for b in result.boxes] == ["VP8L"]

    def test_wave(self):
        fmt = b"fmt " + struct.pack("<I", 16) + b"\x00" * 16
        data = b"RIFF" + struct.pack("<I", 4 + len(fmt)) + b"WAVE" + fmt
        result = ContainerResolver().resolve_riff(data)
        assert result.file_type == "wav"
        assert result.category == FileCategory.AUDIO

    def test_unknown_form(self):
        data = b"RIFF" + struct.pack("<I", 4) + b"ABCD"
        result = ContainerResolver().resolve_riff(data)
        assert result.valid
        assert result.file_type == "riff_unknown"

    def test_too_short(self):
        result = ContainerResolver().resolve_riff(b"RIFF")
        assert not result.valid


class TestChunkWalkers:
    """Tests for the PNG and RIFF chunk generators."""

    def test_png_chunks(self, make_png, png_chunk):
        data = make_png(extra_chunks=[png_chunk(b"tEXt", b"Comment\x00hi")])
        types = [c.chunk_type for c in iter_png_chunks(data)]
        assert types == ["IHDR", "tEXt", "IDAT", "IEND"]

    def test_png_walk_stops_at_iend(self, make_png):
        data = make_png(trailer=b"\x00\x00\x00\x04JUNK" + b"\x00" * 8)
        assert [c.chunk_type for c in iter_png_chunks(data)][-1] == "IEND"

    def test_png_walk_stops_on_truncation(self, png_bytes):
        truncated = png_bytes[:40]
        chunks = list(iter_png_chunks(truncated))
        assert all(c.offset + 12 + c.length <= len(truncated) for c in chunks)

    def test_png_walk_rejects_huge_length(self):
        data = b"\x89PNG\r\n\x1a\n" + struct.pack(">I", MAX_PNG_CHUNK_LENGTH + 1) + b"IDAT" + b"\x00" * 8
        assert list(iter_png_chunks(data)) == []

    def test_riff_odd_size_padding(self):
        first = b"ABCD" + struct.pack("<I", 3) + b"xyz" + b"\x00"
        second = b"EFGH" + struct.pack("<I", 2) + b"ok"
        data = b"RIFF" + struct.pack("<I", 0) + b"TEST" + first + second
        chunks = list(iter_riff_chunks(data))
        assert [c.box_type for c in chunks] == ["ABCD", "EFGH"]
        assert chunks[1].offset == 24
