"""
Polyglot file detection.

A polyglot is a buffer that is simultaneously valid as two or more formats,
for example a JPEG whose bytes also parse as a PE executable. Each format has
an independent predicate; risk is graded by the first matching pair in an
ordered critical / high table.
"""

import logging
import re
from typing import Callable, List, Tuple

from file_forensic.models import PolyglotResult, PolyglotRisk
from file_forensic.utils.buffers import BytesLike, coerce_buffer, read_u32_le

logger = logging.getLogger(__name__)

POLYGLOT_CONFIDENCE = 95
TEXT_SNIFF_BYTES = 1024
SHEBANG_SNIFF_BYTES = 128

PDF = "PDF"
ZIP = "ZIP"
JPEG = "JPEG"
PNG = "PNG"
HTML = "HTML"
JAVASCRIPT = "JavaScript"
PE = "PE Executable"
SHELL = "Shell Script"

CRITICAL_PAIRS = (
    (PE, JPEG),
    (PE, PNG),
    (PE, PDF),
    (JAVASCRIPT, PDF),
    (SHELL, JPEG),
    (SHELL, PNG),
)

HIGH_RISK_PAIRS = (
    (HTML, JPEG),
    (HTML, PNG),
    (ZIP, PE),
    (PDF, HTML),
)

EXECUTABLE_FORMATS = frozenset({PE, JAVASCRIPT, SHELL})

_HTML_STRONG = (
    re.compile(r"<html", re.IGNORECASE),
    re.compile(r"<!doctype\s+html", re.IGNORECASE),
)
_HTML_WEAK = (
    re.compile(r"<head", re.IGNORECASE),
    re.compile(r"<body", re.IGNORECASE),
    re.compile(r"<script", re.IGNORECASE),
)
_JS_PATTERNS = (
    re.compile(r"function\s+\w+\s*\("),
    re.compile(r"const\s+\w+\s*="),
    re.compile(r"let\s+\w+\s*="),
    re.compile(r"var\s+\w+\s*="),
    re.compile(r"=>\s*{"),
    re.compile(r"console\.log\("),
)
_SHEBANG = re.compile(r"^#!.*/(bash|sh|zsh|python|perl|ruby|node)")


def _head_text(data: bytes, limit: int = TEXT_SNIFF_BYTES) -> str:
    return data[:limit].decode("utf-8", errors="replace")


def is_pdf(data: bytes) -> bool:
    return len(data) >= 8 and data.startswith(b"%PDF-")


def is_zip(data: bytes) -> bool:
    return (
        len(data) >= 4
        and data[:2] == b"PK"
        and data[2] in (0x03, 0x05, 0x07)
        and data[3] in (0x04, 0x06, 0x08)
    )


def is_jpeg(data: bytes) -> bool:
    return data[:3] == b"\xff\xd8\xff"


def is_png(data: bytes) -> bool:
    return data[:8] == b"\x89PNG\r\n\x1a\n"


def is_html(data: bytes) -> bool:
    """One strong marker, or two independent weak markers."""
    text = _head_text(data)
    if any(p.search(text) for p in _HTML_STRONG):
        return True
    return sum(1 for p in _HTML_WEAK if p.search(text)) >= 2


def is_javascript(data: bytes) -> bool:
    """At least two independent JavaScript constructs."""
    text = _head_text(data)
    return sum(1 for p in _JS_PATTERNS if p.search(text)) >= 2


def is_pe(data: bytes) -> bool:
    """MZ header whose e_lfanew field points at a PE signature."""
    if len(data) < 64 or data[:2] != b"MZ":
        return False
    pe_offset = read_u32_le(data, 0x3C)
    if pe_offset + 4 > len(data):
        return False
    return data[pe_offset:pe_offset + 4] == b"PE\x00\x00"


def is_shell_script(data: bytes) -> bool:
    if len(data) < 3 or data[:2] != b"#!":
        return False
    first_line = _head_text(data, SHEBANG_SNIFF_BYTES).split("\n", 1)[0]
    return bool(_SHEBANG.match(first_line))


FORMAT_PREDICATES: Tuple[Tuple[str, Callable[[bytes], bool]], ...] = (
    (PDF, is_pdf),
    (ZIP, is_zip),
    (JPEG, is_jpeg),
    (PNG, is_png),
    (HTML, is_html),
    (JAVASCRIPT, is_javascript),
    (PE, is_pe),
    (SHELL, is_shell_script),
)


def assess_polyglot_risk(formats: List[str]) -> Tuple[PolyglotRisk, List[str]]:
    """Grade a set of co-valid formats; the first matching pair wins."""
    present = set(formats)
    for first, second in CRITICAL_PAIRS:
        if first in present and second in present:
            return PolyglotRisk.CRITICAL, [f"{first} + {second}"]
    for first, second in HIGH_RISK_PAIRS:
        if first in present and second in present:
            return PolyglotRisk.HIGH, [f"{first} + {second}"]
    if present & EXECUTABLE_FORMATS:
        return PolyglotRisk.MEDIUM, ["Contains executable component"]
    return PolyglotRisk.LOW, []


class PolyglotDetector:
    """Checks whether a buffer is valid as more than one format."""

    def detect(self, data: BytesLike) -> PolyglotResult:
        data = coerce_buffer(data)
        formats = [name for name, predicate in FORMAT_PREDICATES if predicate(data)]

        if len(formats) < 2:
            return PolyglotResult(
                is_polyglot=False,
                valid_formats=formats,
                confidence=0,
                security_risk=PolyglotRisk.LOW,
                description="File is not a polyglot.",
            )

        risk, combinations = assess_polyglot_risk(formats)
        logger.debug("Polyglot formats %s graded %s", formats, risk.value)
        return PolyglotResult(
            is_polyglot=True,
            valid_formats=formats,
            confidence=POLYGLOT_CONFIDENCE,
            security_risk=risk,
            description=(
                f"File is valid as multiple formats: {', '.join(formats)}. "
                "This is often used in sophisticated attacks to bypass security filters."
            ),
            dangerous_combinations=combinations,
        )


def detect_polyglot(data: BytesLike) -> PolyglotResult:
    """Module-level convenience wrapper around PolyglotDetector."""
    return PolyglotDetector().detect(data)
