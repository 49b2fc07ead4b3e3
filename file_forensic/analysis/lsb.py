"""Least-significant-bit message extraction from decoded pixel data.

The embedding convention used by a given tool is unknown up front, so a
fixed menu of extraction strategies is tried in order and the first one
that yields plausible text wins. A strategy that finds nothing returns None;
the module never guesses.
"""

import logging
import re
from typing import Callable, Iterable, List, Optional, Tuple

from file_forensic.analysis.thresholds import DEFAULT_THRESHOLDS, DetectionThresholds

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 10_000
MAX_LENGTH_PREFIX = 100_000

_TEXTLIKE = re.compile(r"^[a-zA-Z0-9\s.,!?'\"()\-:;@#$%&*+=\[\]{}|\\/<>~`]+$")


def validate_message(message: str) -> Optional[str]:
    """Accept a candidate only if it reads like real text."""
    if not message or len(message) < 3 or len(message) > MAX_MESSAGE_LENGTH:
        return None
    if " " in message or _TEXTLIKE.match(message):
        return message
    return None


def bits_to_text(bits: List[int]) -> Optional[str]:
    """Group bits MSB-first into bytes and decode a printable run.

    Decoding stops at a NUL byte. A non-printable byte ends the message if
    more than three characters were collected, otherwise the run restarts.
    """
    chars = []
    for i in range(0, len(bits) - 7, 8):
        byte = 0
        for bit in bits[i:i + 8]:
            byte = (byte << 1) | bit
        if byte == 0:
            break
        if 32 <= byte <= 126:
            chars.append(chr(byte))
        elif len(chars) > 3:
            break
        else:
            chars = []
    return validate_message("".join(chars))


def _low_bits(pixels: Iterable[int]) -> List[int]:
    return [p & 1 for p in pixels]


def extract_lsb_msb_first(pixels: bytes, limit: int) -> Optional[str]:
    """LSB of every byte, packed most-significant bit first."""
    return bits_to_text(_low_bits(pixels[:limit]))


def extract_lsb_lsb_first(pixels: bytes, limit: int) -> Optional[str]:
    """LSB of every byte, packed least-significant bit first."""
    window = pixels[:limit]
    chars = []
    for start in range(0, len(window), 8):
        byte = 0
        for bit, value in enumerate(window[start:start + 8]):
            byte |= (value & 1) << bit
        if byte == 0:
            break
        if 32 <= byte <= 126:
            chars.append(chr(byte))
        elif len(chars) > 3:
            break
        else:
            chars = []
    return validate_message("".join(chars))


def extract_rgb_skip_alpha(pixels: bytes, limit: int) -> Optional[str]:
    """LSB of every byte except each fourth (the alpha channel of RGBA)."""
    window = pixels[:limit]
    return bits_to_text([b & 1 for i, b in enumerate(window) if i % 4 != 3])


def extract_skip_filter_byte(pixels: bytes, limit: int) -> Optional[str]:
    """LSB of every byte after the leading scanline filter byte."""
    return bits_to_text(_low_bits(pixels[1:limit]))


def extract_sequential_rgb(pixels: bytes, max_pixels: int) -> Optional[str]:
    """LSB of R, G and B read in order from 4-byte pixels starting at offset 1."""
    count = min(len(pixels) // 4, max_pixels)
    bits = []
    for pixel in range(count):
        base = pixel * 4 + 1
        if base + 2 >= len(pixels):
            break
        bits.extend((pixels[base] & 1, pixels[base + 1] & 1, pixels[base + 2] & 1))
    return bits_to_text(bits)


def extract_offset_scan(pixels: bytes, limit: int) -> Optional[str]:
    """Try start offsets 0-10 with 1-bit and 2-bit extraction, then a length prefix."""
    for start in range(11):
        window = pixels[start:start + limit]

        found = bits_to_text(_low_bits(window))
        if found and len(found) >= 5:
            return found

        two_bit = []
        for value in window:
            two_bit.append((value >> 1) & 1)
            two_bit.append(value & 1)
        found = bits_to_text(two_bit)
        if found and len(found) >= 5:
            return found

    # First 32 bits as a big-endian message length
    if len(pixels) > 40:
        length = 0
        for value in pixels[:32]:
            length = (length << 1) | (value & 1)
        if 0 < length < MAX_LENGTH_PREFIX and length * 8 + 32 < len(pixels):
            found = bits_to_text(_low_bits(pixels[32:32 + length * 8]))
            if found:
                logger.debug("LSB message found behind %d-byte length prefix", length)
                return found

    return None


def lsb_strategies(thresholds: DetectionThresholds) -> Tuple[Tuple[str, Callable[[bytes], Optional[str]]], ...]:
    """Ordered (name, extractor) pairs, bound to the configured scan limits."""
    scan = thresholds.lsb_scan_bytes
    return (
        ("lsb-msb-first", lambda px: extract_lsb_msb_first(px, scan)),
        ("lsb-lsb-first", lambda px: extract_lsb_lsb_first(px, scan)),
        ("rgb-skip-alpha", lambda px: extract_rgb_skip_alpha(px, thresholds.lsb_rgb_scan_bytes)),
        ("skip-filter-byte", lambda px: extract_skip_filter_byte(px, scan)),
        ("sequential-rgb", lambda px: extract_sequential_rgb(px, thresholds.lsb_max_pixels)),
        ("offset-scan", lambda px: extract_offset_scan(px, scan)),
    )


def extract_lsb_message(
    pixels: bytes,
    thresholds: DetectionThresholds = DEFAULT_THRESHOLDS,
) -> Optional[str]:
    """Run every strategy in order and return the first accepted message."""
    for name, extractor in lsb_strategies(thresholds):
        message = extractor(pixels)
        if message and len(message) >= 3:
            logger.debug("LSB strategy %s recovered %d chars", name, len(message))
            return message
    return None
