"""Tests for steganography detection and LSB extraction."""

import struct
import tracemalloc
import zlib

import pytest

from file_forensic.analysis.lsb import (
    bits_to_text,
    extract_lsb_lsb_first,
    extract_lsb_message,
    extract_offset_scan,
    extract_rgb_skip_alpha,
    extract_sequential_rgb,
    extract_skip_filter_byte,
    validate_message,
)
from file_forensic.analysis.steganography import (
    MAX_TEXT_INFLATE_BYTES,
    SteganographyDetector,
    bounded_inflate,
    chi_square_statistic,
    detect_appended_data,
    extract_png_text_chunks,
    inflate_idat,
    try_extract_text,
)
from file_forensic.analysis.thresholds import DetectionThresholds
from file_forensic.utils.exceptions import InvalidInputError


def _bits(data: bytes):
    return [(byte >> shift) & 1 for byte in data for shift in range(7, -1, -1)]


class TestLsbHelpers:
    """Tests for bit decoding and message validation."""

    def test_validate_message(self):
        assert validate_message("abc") == "abc"
        assert validate_message("two words") == "two words"
        assert validate_message("ab") is None
        assert validate_message("") is None
        assert validate_message("\x01\x02\x03") is None

    def test_bits_to_text_stops_at_nul(self):
        assert bits_to_text(_bits(b"secret\x00trailing")) == "secret"

    def test_bits_to_text_restarts_after_short_noise(self):
        assert bits_to_text(_bits(b"\x01abcd\x00")) == "abcd"

    def test_bits_to_text_no_message(self):
        assert bits_to_text([0] * 64) is None


class TestLsbStrategies:
    """Tests for individual LSB extraction strategies."""

    def test_msb_first(self, lsb_pixels):
        pixels = lsb_pixels(b"meet at dawn")
        assert extract_lsb_message(pixels) == "meet at dawn"

    def test_lsb_first(self):
        pixels = bytearray()
        for byte in b"low bit order\x00":
            for shift in range(8):
                pixels.append(0x20 | ((byte >> shift) & 1))
        assert extract_lsb_lsb_first(bytes(pixels), 20_000) == "low bit order"

    def test_rgb_skip_alpha(self):
        bits = _bits(b"rgb only\x00")
        pixels = bytearray()
        for i in range(0, len(bits), 3):
            for bit in bits[i:i + 3]:
                pixels.append(0x40 | bit)
            pixels.append(0xFF)
        assert extract_rgb_skip_alpha(bytes(pixels), 30_000) == "rgb only"

    def test_skip_filter_byte(self, lsb_pixels):
        pixels = b"\xff" + lsb_pixels(b"after filter")
        assert extract_skip_filter_byte(pixels, 20_000) == "after filter"

    def test_sequential_rgb(self):
        bits = _bits(b"sequential rgb\x00")
        pixels = bytearray()
        for i in range(0, len(bits), 3):
            pixels.append(0x80)
            pixels.extend(0x40 | bit for bit in bits[i:i + 3])
        assert extract_sequential_rgb(bytes(pixels), 10_000) == "sequential rgb"

    def test_offset_scan_two_bit(self):
        # Leading spaces keep the one-bit reading at NUL
        bits = _bits(b"  two bit payload\x00")
        pixels = bytes(0x10 | (bits[i] << 1) | bits[i + 1] for i in range(0, len(bits), 2))
        assert extract_offset_scan(pixels, 20_000) == "  two bit payload"

    def test_offset_scan_length_prefix(self):
        message = b"length prefix"
        prefix = [(len(message) >> (31 - i)) & 1 for i in range(32)]
        pixels = bytes(prefix) + bytes(_bits(message)) + b"\x00" * 8
        assert extract_offset_scan(pixels, 20_000) == "length prefix"

    def test_offset_scan_ignores_prefix_past_buffer(self):
        prefix = [(5000 >> (31 - i)) & 1 for i in range(32)]
        pixels = bytes(prefix) + b"\x00" * 64
        assert extract_offset_scan(pixels, 20_000) is None

    def test_no_message_in_flat_pixels(self):
        assert extract_lsb_message(b"\x00" * 4096) is None


class TestTextHelpers:
    """Tests for appended-data and text helpers."""

    def test_try_extract_text(self):
        assert try_extract_text(b"  hidden note  ") == "hidden note"
        assert try_extract_text(b"\x00\x01\x02\x03\x04\x05") is None
        assert try_extract_text(b"") is None

    def test_detect_appended_data_uses_last_marker(self):
        data = b"\xff\xd9" + b"x" * 40 + b"\xff\xd9" + b"y" * 20
        found = detect_appended_data(data, b"\xff\xd9", 16)
        assert found.offset == 44
        assert found.size == 20

    def test_small_trailer_ignored(self):
        assert detect_appended_data(b"\xff\xd9" + b"x" * 16, b"\xff\xd9", 16) is None

    def test_missing_marker(self):
        assert detect_appended_data(b"no marker", b"\xff\xd9") is None

    def test_chi_square_needs_two_pairs(self):
        assert chi_square_statistic(b"\x00" * 100) is None

    def test_chi_square_statistic_value(self):
        data = (b"\x01\x01" + b"\x00" * 6) * 6 + (b"\x02\x02" + b"\x00" * 6) * 2
        assert chi_square_statistic(data) == pytest.approx(2.0)

    def test_compressed_text_chunks(self, make_png, png_chunk):
        ztxt = png_chunk(b"zTXt", b"Note\x00\x00" + zlib.compress(b"zipped secret"))
        itxt = png_chunk(b"iTXt", b"Title\x00\x01\x00en\x00\x00" + zlib.compress(b"intl text"))
        chunks = extract_png_text_chunks(make_png(extra_chunks=[ztxt, itxt]))
        assert [(c.keyword, c.text) for c in chunks] == [
            ("Note", "zipped secret"),
            ("Title", "intl text"),
        ]


class TestPngDetection:
    """Tests for PNG steganography techniques."""

    def test_clean_png(self, png_bytes):
        result = SteganographyDetector("png").detect(png_bytes)
        assert not result.detected
        assert result.confidence == 0
        assert result.analysis == "No steganography detected."
        assert result.extracted_data is None

    def test_text_chunk_message(self, make_png, png_chunk):
        data = make_png(extra_chunks=[png_chunk(b"tEXt", b"Comment\x00hello")])
        result = SteganographyDetector("png").detect(data)
        assert result.detected
        assert [t.name for t in result.techniques] == ["PNG Text Chunks"]
        assert result.confidence == 85
        assert result.extracted_data.text_messages == ["hello"]

    def test_appended_data_exact_size_and_offset(self, make_png):
        base = make_png()
        data = make_png(trailer=bytes(range(100, 132)))
        result = SteganographyDetector("png").detect(data)
        names = [t.name for t in result.techniques]
        assert names == ["PNG Appended Data"]
        assert result.confidence == 90
        extracted = result.extracted_data
        assert extracted.total_hidden_bytes == 32
        assert extracted.data_locations == [f"After PNG IEND at offset {len(base)}"]
        assert f"Offset: {len(base)}" in result.techniques[0].evidence

    def test_lsb_message_in_pixels(self, make_png, lsb_pixels):
        data = make_png(pixels=lsb_pixels(b"the eagle has landed"))
        result = SteganographyDetector("png").detect(data)
        assert "PNG LSB Steganography" in [t.name for t in result.techniques]
        assert "the eagle has landed" in result.extracted_data.text_messages

    def test_oversized_ancillary_chunk(self, make_png, png_chunk):
        data = make_png(extra_chunks=[png_chunk(b"iCCP", b"\x00" * 12_000)])
        result = SteganographyDetector("png").detect(data)
        technique = result.techniques[0]
        assert technique.name == "PNG Suspicious Chunks"
        assert technique.evidence == ["Large iCCP chunk found: 12000 bytes"]

    def test_large_chunk_threshold_is_configurable(self, make_png, png_chunk):
        data = make_png(extra_chunks=[png_chunk(b"iCCP", b"\x00" * 12_000)])
        thresholds = DetectionThresholds(large_chunk_bytes=20_000)
        assert not SteganographyDetector("png", thresholds).detect(data).detected

    def test_report_lists_messages(self, make_png, png_chunk):
        data = make_png(extra_chunks=[png_chunk(b"tEXt", b"Comment\x00hello")])
        report = SteganographyDetector("png").detect(data).analysis
        assert report.startswith("Detected 1 potential steganography technique(s):")
        assert 'Message 1: "hello"' in report


class TestJpegDetection:
    """Tests for JPEG steganography techniques."""

    def test_clean_jpeg(self, jpeg_bytes):
        assert not SteganographyDetector("jpeg").detect(jpeg_bytes).detected

    def test_appended_data(self, make_jpeg, jpeg_bytes):
        data = make_jpeg(trailer=b"attack at midnight, bring maps")
        result = SteganographyDetector("jpeg").detect(data)
        appended = [t for t in result.techniques if t.name == "JPEG Appended Data"]
        assert len(appended) == 1
        assert appended[0].confidence == 85
        assert result.extracted_data.total_hidden_bytes == 30
        assert result.extracted_data.text_messages == ["attack at midnight, bring maps"]
        assert appended[0].evidence[0] == (
            f"30 bytes appended after EOI marker at offset {len(jpeg_bytes)}"
        )

    def test_chi_square_in_band(self):
        data = (b"\x01\x01" + b"\x00" * 6) * 6 + (b"\x02\x02" + b"\x00" * 6) * 2
        result = SteganographyDetector("jpeg").detect(data)
        assert [t.name for t in result.techniques] == ["JPEG LSB Anomaly (Chi-Square)"]
        assert result.confidence == 65
        assert result.techniques[0].evidence[0] == "Chi-square statistic: 2.00"

    def test_chi_square_out_of_band(self):
        """Counts of 10 and 2 give a statistic of 5.33, above the default band."""
        data = (b"\x01\x01" + b"\x00" * 6) * 10 + (b"\x02\x02" + b"\x00" * 6) * 2
        assert chi_square_statistic(data) == pytest.approx(16 / 3)
        assert not SteganographyDetector("jpeg").detect(data).detected

    def test_chi_square_band_is_configurable(self):
        data = (b"\x01\x01" + b"\x00" * 6) * 10 + (b"\x02\x02" + b"\x00" * 6) * 2
        thresholds = DetectionThresholds(chi_square_low=5.0, chi_square_high=6.0)
        result = SteganographyDetector("jpeg", thresholds).detect(data)
        assert [t.name for t in result.techniques] == ["JPEG LSB Anomaly (Chi-Square)"]


class TestBoundedInflation:
    """Tests that compressed PNG streams inflate no further than their caps."""

    @staticmethod
    def _zero_bomb(megabytes):
        compressor = zlib.compressobj(9)
        chunk = b"\x00" * 1_000_000
        stream = b"".join(compressor.compress(chunk) for _ in range(megabytes))
        return stream + compressor.flush()

    def _bomb_png(self, png_chunk, megabytes=64):
        ihdr = png_chunk(b"IHDR", struct.pack(">IIBBBBB", 4, 4, 8, 6, 0, 0, 0))
        idat = png_chunk(b"IDAT", self._zero_bomb(megabytes))
        return b"\x89PNG\r\n\x1a\n" + ihdr + idat + png_chunk(b"IEND", b"")

    def test_bounded_inflate_stops_at_cap(self):
        assert len(bounded_inflate(zlib.compress(b"A" * 1_000_000), 1000)) == 1000

    def test_bounded_inflate_short_stream(self):
        assert bounded_inflate(zlib.compress(b"short"), 1000) == b"short"

    def test_bounded_inflate_corrupt_stream(self):
        with pytest.raises(zlib.error):
            bounded_inflate(b"not a zlib stream", 1000)

    def test_inflate_idat_honours_cap(self, png_chunk):
        assert len(inflate_idat(self._bomb_png(png_chunk, 8), 4096)) == 4096

    def test_detect_memory_stays_bounded(self, png_chunk):
        """A 64 MB all-zero IDAT must not be inflated in full."""
        data = self._bomb_png(png_chunk)
        tracemalloc.start()
        try:
            result = SteganographyDetector("png").detect(data)
            _, peak = tracemalloc.get_traced_memory()
        finally:
            tracemalloc.stop()
        assert peak < 8 * 1024 * 1024
        assert not result.detected

    def test_lsb_inflate_cap_is_configurable(self, make_png, lsb_pixels):
        data = make_png(pixels=lsb_pixels(b"the eagle has landed"))
        thresholds = DetectionThresholds(lsb_inflate_bytes=16)
        result = SteganographyDetector("png", thresholds).detect(data)
        assert "PNG LSB Steganography" not in [t.name for t in result.techniques]

    def test_compressed_text_chunk_capped(self, make_png, png_chunk):
        stream = zlib.compress(b"A" * 1_000_000)
        data = make_png(extra_chunks=[png_chunk(b"zTXt", b"Note\x00\x00" + stream)])
        assert extract_png_text_chunks(data) == []
        assert len(bounded_inflate(stream, MAX_TEXT_INFLATE_BYTES)) == MAX_TEXT_INFLATE_BYTES


class TestDetectorContract:
    """Tests for detector inputs and purity."""

    def test_requires_file_type(self):
        with pytest.raises(InvalidInputError):
            SteganographyDetector("")

    def test_non_image_type_runs_nothing(self, make_png):
        data = make_png(trailer=b"z" * 64)
        assert not SteganographyDetector("pdf").detect(data).detected

    def test_empty_buffer(self):
        assert not SteganographyDetector("png").detect(b"").detected
        assert not SteganographyDetector("jpeg").detect(b"").detected

    def test_idempotent(self, make_png, png_chunk):
        data = make_png(extra_chunks=[png_chunk(b"tEXt", b"Comment\x00hello")], trailer=b"q" * 40)
        detector = SteganographyDetector("png")
        assert detector.detect(data) == detector.detect(data)

    def test_large_hidden_data(self):
        """Many high-entropy windows in a large BMP trigger the generic check."""
        data = b"BM" + bytes(range(256)) * 400
        result = SteganographyDetector("bmp").detect(data)
        assert [t.name for t in result.techniques] == ["Large Hidden Data Section"]
        assert result.confidence == 60
