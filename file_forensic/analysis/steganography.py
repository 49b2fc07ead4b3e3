"""
Steganography detection for image and media files.

Techniques are accumulated rather than short-circuited; every technique that
fires contributes its own entry, and the aggregate confidence is the highest
technique confidence.

JPEG:
    - Data appended after the last End-Of-Image marker (FF D9)
    - Chi-square anomaly in sampled byte-pair frequencies
PNG:
    - Text metadata chunks (tEXt, zTXt, iTXt)
    - LSB-encoded messages in the inflated IDAT pixel stream
    - Oversized ancillary chunks
    - Data appended after the IEND chunk
Any type:
    - Large runs of near-random 4 KiB windows in common media files
"""

import logging
import zlib
from collections import Counter
from typing import List, NamedTuple, Optional

from file_forensic.analysis.lsb import extract_lsb_message
from file_forensic.analysis.thresholds import DEFAULT_THRESHOLDS, DetectionThresholds, resolve_thresholds
from file_forensic.models import ExtractedHiddenData, SteganographyResult, SteganographyTechnique
from file_forensic.parsers.chunks import PngChunk, iter_png_chunks
from file_forensic.parsers.entropy import iter_block_entropy
from file_forensic.utils.buffers import BytesLike, coerce_buffer, hex_preview, require_file_type

logger = logging.getLogger(__name__)

JPEG_EOI = b"\xff\xd9"
# IEND type plus its fixed CRC
PNG_IEND = b"IEND\xaeB`\x82"

TEXT_CHUNK_TYPES = frozenset({"tEXt", "zTXt", "iTXt"})
ANCILLARY_CHUNK_TYPES = frozenset({"tEXt", "zTXt", "iTXt", "sPLT", "iCCP"})
HIDDEN_DATA_TYPES = frozenset({"jpeg", "png", "bmp"})

MAX_TEXT_LENGTH = 10_000
# UTF-8 needs at most four bytes per character
MAX_TEXT_INFLATE_BYTES = MAX_TEXT_LENGTH * 4
RAW_SAMPLE_BYTES = 128
JPEG_PREVIEW_BYTES = 32
PNG_PREVIEW_BYTES = 64

# Technique confidences
CONF_JPEG_APPENDED = 85
CONF_CHI_SQUARE = 65
CONF_PNG_TEXT = 85
CONF_PNG_LSB = 80
CONF_PNG_LARGE_CHUNK = 70
CONF_PNG_APPENDED = 90
CONF_HIDDEN_DATA = 60


class AppendedData(NamedTuple):
    """Trailing bytes found after a format's end marker."""
    offset: int
    size: int


class TextChunk(NamedTuple):
    """A decoded PNG text metadata chunk."""
    keyword: str
    text: str


def _is_printable_ascii(ch: str) -> bool:
    code = ord(ch)
    return 32 <= code <= 126 or ch in "\n\r\t"


def try_extract_text(data: bytes) -> Optional[str]:
    """Best-effort text decode of hidden bytes.

    UTF-8 (with replacement) is tried first, then Latin-1. A decode is
    accepted when more than 70% of its characters are printable and more than
    three printable characters exist. Only printable characters are kept.
    """
    if not data:
        return None

    text = data.decode("utf-8", errors="replace")
    printable = [ch for ch in text if _is_printable_ascii(ch)]
    if len(printable) / len(text) > 0.7 and len(printable) > 3:
        cleaned = "".join(printable).strip()
        if 0 < len(cleaned) < MAX_TEXT_LENGTH:
            return cleaned

    text = data.decode("latin-1")
    printable = [
        ch for ch in text
        if 32 <= ord(ch) <= 126 or 160 <= ord(ch) <= 255 or ch in "\n\r"
    ]
    if len(printable) / len(text) > 0.7 and len(printable) > 3:
        cleaned = "".join(printable).strip()
        if 0 < len(cleaned) < MAX_TEXT_LENGTH:
            return cleaned

    return None


def detect_appended_data(data: bytes, marker: bytes, min_size: int = 16) -> Optional[AppendedData]:
    """Locate data after the last occurrence of ``marker``.

    Returns None when the marker is absent or at most ``min_size`` bytes
    follow it (small trailers are usually padding).
    """
    index = data.rfind(marker)
    if index < 0:
        return None
    end = index + len(marker)
    remaining = len(data) - end
    if remaining > min_size:
        return AppendedData(offset=end, size=remaining)
    return None


def _decode_chunk_text(raw: bytes) -> Optional[str]:
    text = raw.decode("utf-8", errors="replace")
    if "\ufffd" in text:
        text = raw.decode("latin-1")
    if 0 < len(text) < MAX_TEXT_LENGTH and all(_is_printable_ascii(ch) for ch in text):
        return text
    return None


def _text_chunk_payload(chunk: PngChunk) -> Optional[TextChunk]:
    """Split a text chunk into keyword and decoded text."""
    keyword_raw, sep, body = chunk.data.partition(b"\x00")
    if not sep or not body:
        return None
    keyword = keyword_raw.decode("latin-1")

    if chunk.chunk_type == "zTXt":
        # compression method byte, then a zlib stream
        try:
            body = bounded_inflate(body[1:], MAX_TEXT_INFLATE_BYTES)
        except zlib.error:
            return None
    elif chunk.chunk_type == "iTXt":
        # flag, method, language\0, translated keyword\0, text
        if len(body) < 2:
            return None
        compressed = body[0] == 1
        rest = body[2:]
        parts = rest.split(b"\x00", 2)
        if len(parts) < 3:
            return None
        body = parts[2]
        if compressed:
            try:
                body = bounded_inflate(body, MAX_TEXT_INFLATE_BYTES)
            except zlib.error:
                return None
        if not body:
            return None

    text = _decode_chunk_text(body)
    if text is None:
        return None
    return TextChunk(keyword=keyword, text=text)


def extract_png_text_chunks(data: bytes) -> List[TextChunk]:
    """Return every readable tEXt / zTXt / iTXt payload in a PNG buffer."""
    found = []
    for chunk in iter_png_chunks(data):
        if chunk.chunk_type in TEXT_CHUNK_TYPES:
            payload = _text_chunk_payload(chunk)
            if payload is not None:
                found.append(payload)
    return found


def bounded_inflate(stream: bytes, max_length: int) -> bytes:
    """Inflate at most ``max_length`` bytes of a zlib stream.

    Output past the cap is never produced, so a highly compressed stream
    costs no more than the cap. A truncated stream yields what was decoded.

    Raises:
        zlib.error: If the stream is corrupt
    """
    return zlib.decompressobj().decompress(stream, max_length)


def inflate_idat(data: bytes, max_length: int = DEFAULT_THRESHOLDS.lsb_inflate_bytes) -> Optional[bytes]:
    """Concatenate and inflate the IDAT chunks up to ``max_length`` bytes.

    Returns None when there is no IDAT data or the stream is corrupt.
    """
    compressed = b"".join(c.data for c in iter_png_chunks(data) if c.chunk_type == "IDAT")
    if not compressed:
        return None
    try:
        return bounded_inflate(compressed, max_length)
    except zlib.error:
        logger.debug("IDAT stream could not be inflated")
        return None


def chi_square_statistic(data: bytes, stride: int = 8) -> Optional[float]:
    """Normalized chi-square of byte pairs sampled every ``stride`` bytes.

    Returns None when fewer than two distinct pairs were sampled.
    """
    pairs = Counter(
        (data[i], data[i + 1]) for i in range(0, len(data) - 1, stride)
    )
    unique = len(pairs)
    if unique < 2:
        return None
    total = sum(pairs.values())
    expected = total / unique
    chi = sum((count - expected) ** 2 / expected for count in pairs.values())
    return chi / (unique - 1)


class _Findings:
    """Per-call accumulator for fired techniques and recovered data."""

    def __init__(self):
        self.techniques: List[SteganographyTechnique] = []
        self.messages: List[str] = []
        self.samples: List[str] = []
        self.locations: List[str] = []
        self.hidden_bytes = 0

    def add(self, name, confidence, description, evidence):
        logger.debug("Steganography technique fired: %s (%d%%)", name, confidence)
        self.techniques.append(
            SteganographyTechnique(
                name=name,
                confidence=confidence,
                description=description,
                evidence=evidence,
            )
        )

    def record_hidden(self, hidden, found, location, text):
        self.hidden_bytes += found.size
        self.locations.append(location)
        self.samples.append(hex_preview(hidden, RAW_SAMPLE_BYTES))
        if text:
            self.messages.append(text)

    def extracted(self) -> Optional[ExtractedHiddenData]:
        if not (self.messages or self.samples or self.hidden_bytes):
            return None
        return ExtractedHiddenData(
            text_messages=self.messages,
            raw_data_samples=self.samples,
            total_hidden_bytes=self.hidden_bytes,
            data_locations=self.locations,
        )


class SteganographyDetector:
    """Detects hidden data in image and media buffers.

    The detector holds only its configuration, so one instance can be reused
    across buffers and threads.

    Args:
        file_type: Identified type of the buffer (required)
        thresholds: Optional detection threshold overrides
    """

    def __init__(self, file_type: str, thresholds: Optional[DetectionThresholds] = None):
        self.file_type = require_file_type(file_type)
        self.thresholds = resolve_thresholds(thresholds)

    def detect(self, data: BytesLike) -> SteganographyResult:
        """Run every technique applicable to the file type."""
        data = coerce_buffer(data)
        findings = _Findings()

        if self.file_type == "jpeg":
            self._check_jpeg_appended(data, findings)
            self._check_chi_square(data, findings)
        elif self.file_type == "png":
            self._check_png_text(data, findings)
            self._check_png_lsb(data, findings)
            self._check_png_large_chunks(data, findings)
            self._check_png_appended(data, findings)

        self._check_large_hidden_data(data, findings)

        techniques = findings.techniques
        extracted = findings.extracted()
        return SteganographyResult(
            detected=bool(techniques),
            confidence=max((t.confidence for t in techniques), default=0),
            techniques=techniques,
            analysis=build_report(techniques, extracted),
            extracted_data=extracted,
        )

    # -- JPEG -------------------------------------------------------------

    def _check_jpeg_appended(self, data: bytes, findings: _Findings) -> None:
        found = detect_appended_data(data, JPEG_EOI, self.thresholds.appended_min_bytes)
        if found is None:
            return
        hidden = data[found.offset:]
        text = try_extract_text(hidden)
        evidence = [
            f"{found.size} bytes appended after EOI marker at offset {found.offset}",
            f"First {JPEG_PREVIEW_BYTES} bytes (hex): {hex_preview(hidden, JPEG_PREVIEW_BYTES)}",
        ]
        if text:
            evidence.append(f'Extracted text: "{text}"')

        findings.add(
            "JPEG Appended Data",
            CONF_JPEG_APPENDED,
            "Data found after JPEG End-Of-Image (EOI) marker",
            evidence,
        )
        findings.record_hidden(hidden, found, f"After JPEG EOI marker at offset {found.offset}", text)

    def _check_chi_square(self, data: bytes, findings: _Findings) -> None:
        t = self.thresholds
        statistic = chi_square_statistic(data, t.chi_square_stride)
        if statistic is None or not t.chi_square_low < statistic < t.chi_square_high:
            return
        findings.add(
            "JPEG LSB Anomaly (Chi-Square)",
            CONF_CHI_SQUARE,
            "Statistical anomaly detected in sampled byte-pair distribution",
            [
                f"Chi-square statistic: {statistic:.2f}",
                "Unusual byte pair distribution may indicate LSB modification",
            ],
        )
        findings.locations.append("LSB modifications detected in image data")

    # -- PNG --------------------------------------------------------------

    def _check_png_text(self, data: bytes, findings: _Findings) -> None:
        chunks = extract_png_text_chunks(data)
        if not chunks:
            return
        evidence = [f"Found {len(chunks)} text chunk(s):"]
        evidence.extend(f'  "{c.keyword}: {c.text}"' for c in chunks)
        findings.add(
            "PNG Text Chunks",
            CONF_PNG_TEXT,
            "PNG contains embedded text metadata with hidden message",
            evidence,
        )
        findings.messages.extend(c.text.strip() for c in chunks)
        findings.locations.append("PNG tEXt/iTXt/zTXt metadata chunks")

    def _check_png_lsb(self, data: bytes, findings: _Findings) -> None:
        pixels = inflate_idat(data, self.thresholds.lsb_inflate_bytes)
        if not pixels:
            return
        message = extract_lsb_message(pixels, self.thresholds)
        if message is None:
            return
        findings.add(
            "PNG LSB Steganography",
            CONF_PNG_LSB,
            "Hidden message found in least significant bits of pixel data",
            [f'Extracted message: "{message}"'],
        )
        findings.messages.append(message)
        findings.locations.append("LSB of PNG pixel data")

    def _check_png_large_chunks(self, data: bytes, findings: _Findings) -> None:
        limit = self.thresholds.large_chunk_bytes
        evidence = [
            f"Large {c.chunk_type} chunk found: {c.length} bytes"
            for c in iter_png_chunks(data)
            if c.chunk_type in ANCILLARY_CHUNK_TYPES and c.length > limit
        ]
        if evidence:
            findings.add(
                "PNG Suspicious Chunks",
                CONF_PNG_LARGE_CHUNK,
                "Unusual ancillary chunks detected",
                evidence,
            )

    def _check_png_appended(self, data: bytes, findings: _Findings) -> None:
        found = detect_appended_data(data, PNG_IEND, self.thresholds.appended_min_bytes)
        if found is None:
            return
        hidden = data[found.offset:]
        text = try_extract_text(hidden)
        evidence = [
            f"{found.size} bytes appended after IEND",
            f"Offset: {found.offset}",
            f"First {PNG_PREVIEW_BYTES} bytes (hex): {hex_preview(hidden, PNG_PREVIEW_BYTES)}",
        ]
        if text:
            evidence.append(f'Extracted text: "{text}"')

        findings.add(
            "PNG Appended Data",
            CONF_PNG_APPENDED,
            "Data found after PNG IEND chunk",
            evidence,
        )
        findings.record_hidden(hidden, found, f"After PNG IEND at offset {found.offset}", text)

    # -- Generic ----------------------------------------------------------

    def _check_large_hidden_data(self, data: bytes, findings: _Findings) -> None:
        t = self.thresholds
        if len(data) < t.hidden_data_min_size:
            logger.debug("Hidden data scan skipped: %d bytes below floor", len(data))
            return
        if self.file_type not in HIDDEN_DATA_TYPES:
            return
        hot = [
            offset
            for offset, _, entropy in iter_block_entropy(data, t.hidden_window_size)
            if entropy > t.hidden_window_entropy
        ]
        if len(hot) > t.hidden_window_count:
            findings.add(
                "Large Hidden Data Section",
                CONF_HIDDEN_DATA,
                "Unusually large region with anomalous characteristics",
                [
                    f"Found {len(hot)} blocks with entropy > {t.hidden_window_entropy}",
                    "May indicate encrypted or compressed hidden data",
                ],
            )
            findings.locations.append("High entropy blocks throughout file")


def build_report(
    techniques: List[SteganographyTechnique],
    extracted: Optional[ExtractedHiddenData],
) -> str:
    """Plain-text summary of the fired techniques and recovered data."""
    if not techniques:
        return "No steganography detected."

    lines = [f"Detected {len(techniques)} potential steganography technique(s):", ""]
    for i, tech in enumerate(techniques, 1):
        lines.append(f"{i}. {tech.name} ({tech.confidence}% confidence)")
        lines.append(f"   {tech.description}")
        lines.extend(f"   - {item}" for item in tech.evidence)
        lines.append("")

    if extracted is not None and extracted.text_messages:
        lines.append("=== EXTRACTED HIDDEN MESSAGES ===")
        lines.extend(f'Message {i}: "{msg}"' for i, msg in enumerate(extracted.text_messages, 1))

    if extracted is not None and extracted.total_hidden_bytes > 0:
        lines.append(f"Total hidden data: {extracted.total_hidden_bytes} bytes")
        lines.append(f"Locations: {', '.join(extracted.data_locations)}")

    return "\n".join(lines)
