"""
Embedded payload hunting.

Five independent scans, each capped so a hostile buffer cannot flood the
report:

1. Shellcode byte patterns (NOP sled, x86 / x64 prologues)
2. Long base64 runs that decode to executables or high-entropy data
3. PE executables embedded inside non-PE buffers
4. High-entropy blocks in formats that are normally low-entropy
5. Script fragments (script tags, eval calls, encoded PowerShell)
"""

import base64
import binascii
import logging
import re
from typing import Iterator, List, Optional, Tuple

from file_forensic.analysis.baselines import FORMAT_BASELINES
from file_forensic.analysis.thresholds import DetectionThresholds, resolve_thresholds
from file_forensic.models import EmbeddedPayload, PayloadAnalysis, PayloadType
from file_forensic.parsers.entropy import iter_block_entropy, shannon_entropy
from file_forensic.utils.buffers import BytesLike, coerce_buffer, hex_preview, read_u32_le, require_file_type

logger = logging.getLogger(__name__)

SHELLCODE_PATTERNS = (
    (b"\x90" * 8, "NOP sled", 75),
    (b"\xeb\x1e\x5e\x89\x76", "x86 shellcode prologue", 85),
    (b"\x48\x31\xc0\x48\x31\xdb", "x64 shellcode pattern", 80),
)

# Openers are bounded; bodies are found by str.find against a cached closer
_SCRIPT_TAG = re.compile(r"<script[^>]{0,256}>", re.IGNORECASE)
_EVAL_CALL = re.compile(r"eval\s*\(", re.IGNORECASE)
_POWERSHELL_ENCODED = re.compile(
    r"powershell\s+-e(?:nc?)?\s+[A-Za-z0-9+/=]{50,}", re.IGNORECASE
)
MIN_SCRIPT_BODY = 50


def iter_script_tags(text: str) -> Iterator[Tuple[int, int]]:
    """Spans from ``<script ...>`` to the first ``</script>`` at least
    MIN_SCRIPT_BODY characters into the body.

    Each closer search resumes where the previous one ended, so the scan is
    linear in the text length even when tags are never closed.
    """
    lowered = text.lower()
    close = -1
    resume = 0
    for match in _SCRIPT_TAG.finditer(text):
        if match.start() < resume:
            continue
        earliest = match.end() + MIN_SCRIPT_BODY
        if close < earliest:
            close = lowered.find("</script>", earliest)
            if close == -1:
                return
        resume = close + len("</script>")
        yield match.start(), resume


def iter_eval_calls(text: str) -> Iterator[Tuple[int, int]]:
    """Spans of ``eval(`` calls whose argument runs MIN_SCRIPT_BODY or more
    characters before the first closing parenthesis."""
    close = -1
    resume = 0
    for match in _EVAL_CALL.finditer(text):
        if match.start() < resume:
            continue
        args = match.end()
        if close < args:
            close = text.find(")", args)
            if close == -1:
                return
        if close - args >= MIN_SCRIPT_BODY:
            resume = close + 1
            yield match.start(), resume


def iter_powershell_encoded(text: str) -> Iterator[Tuple[int, int]]:
    for match in _POWERSHELL_ENCODED.finditer(text):
        yield match.span()


SCRIPT_SCANNERS = (
    (iter_script_tags, "HTML script tag", 85),
    (iter_eval_calls, "JavaScript eval()", 90),
    (iter_powershell_encoded, "PowerShell encoded command", 95),
)

# Types whose normal content is already near-random
_HIGH_ENTROPY_TYPES = frozenset(
    name for name, baseline in FORMAT_BASELINES.items() if baseline.typical_entropy >= 7.0
)
BLOB_SKIP_TYPES = _HIGH_ENTROPY_TYPES | {"7z", "gzip", "bzip2", "m4v", "m4a", "cr3"}
SCRIPT_SKIP_TYPES = frozenset({"script", "html", "xml"})

CONF_EMBEDDED_PE = 95
CONF_BASE64_EXECUTABLE = 95
CONF_BASE64_HIGH_ENTROPY = 70
CONF_BASE64_UNKNOWN = 50
CONF_ENCRYPTED_BLOB = 65

EMBEDDED_PE_REPORT_BYTES = 1024
PE_PREVIEW_BYTES = 64
SHELLCODE_PREVIEW_BYTES = 32
BLOB_PREVIEW_BYTES = 32
BASE64_PREVIEW_CHARS = 50
SCRIPT_PREVIEW_CHARS = 100


def decode_base64_lenient(candidate: str) -> Optional[bytes]:
    """Decode a base64 run, tolerating missing or excess padding."""
    body = candidate.rstrip("=")
    if len(body) % 4 == 1:
        body = body[:-1]
    body += "=" * (-len(body) % 4)
    try:
        return base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError):
        return None


def classify_decoded(decoded: bytes):
    """Return (confidence, description) for decoded base64 content."""
    if decoded[:2] == b"MZ":
        return CONF_BASE64_EXECUTABLE, "Contains PE executable"
    if decoded[:4] == b"\x7fELF":
        return CONF_BASE64_EXECUTABLE, "Contains ELF executable"
    if shannon_entropy(decoded) > 7.5:
        return CONF_BASE64_HIGH_ENTROPY, "High entropy (likely encrypted/compressed)"
    return CONF_BASE64_UNKNOWN, "Encoded data of unknown type"


def payload_risk(payloads: List[EmbeddedPayload]) -> float:
    """Average confidence scaled by how many independent payloads were found."""
    if not payloads:
        return 0.0
    average = sum(p.confidence for p in payloads) / len(payloads)
    count_factor = min(len(payloads) / 3, 1.0)
    return min(average * (0.7 + count_factor * 0.3), 100.0)


def summarize_payloads(payloads: List[EmbeddedPayload], risk: float) -> str:
    if not payloads:
        return "No embedded payloads detected."
    types = list(dict.fromkeys(p.payload_type.value for p in payloads))
    return (
        f"Found {len(payloads)} embedded payload(s): {', '.join(types)}. "
        f"Overall risk: {risk:.0f}/100"
    )


class PayloadHunter:
    """Searches a buffer for embedded executable or encoded content.

    Args:
        file_type: Identified type of the buffer (required)
        thresholds: Optional detection threshold overrides
    """

    def __init__(self, file_type: str, thresholds: Optional[DetectionThresholds] = None):
        self.file_type = require_file_type(file_type)
        self.thresholds = resolve_thresholds(thresholds)

    def hunt(self, data: BytesLike) -> PayloadAnalysis:
        data = coerce_buffer(data)
        payloads: List[EmbeddedPayload] = []
        payloads.extend(self.find_shellcode(data))
        payloads.extend(self.find_base64_blobs(data))
        if self.file_type != "pe":
            payloads.extend(self.find_embedded_pe(data))
        payloads.extend(self.find_encrypted_blobs(data))
        payloads.extend(self.find_scripts(data))

        risk = payload_risk(payloads)
        return PayloadAnalysis(
            found_payloads=payloads,
            overall_risk=risk,
            summary=summarize_payloads(payloads, risk),
        )

    def find_shellcode(self, data: bytes) -> List[EmbeddedPayload]:
        """Byte-pattern search; the cap applies across all patterns."""
        cap = self.thresholds.max_shellcode_hits
        found: List[EmbeddedPayload] = []
        for pattern, name, confidence in SHELLCODE_PATTERNS:
            offset = data.find(pattern)
            while offset != -1 and len(found) < cap:
                found.append(EmbeddedPayload(
                    payload_type=PayloadType.SHELLCODE,
                    offset=offset,
                    size=len(pattern),
                    confidence=confidence,
                    preview=hex_preview(data[offset:], SHELLCODE_PREVIEW_BYTES),
                    analysis=f"Detected {name} at offset {offset}",
                ))
                offset = data.find(pattern, offset + len(pattern))
            if len(found) >= cap:
                break
        return found

    def find_base64_blobs(self, data: bytes) -> List[EmbeddedPayload]:
        t = self.thresholds
        # Latin-1 keeps character offsets equal to byte offsets
        text = data.decode("latin-1")
        run = re.compile(r"[A-Za-z0-9+/]{%d,}={0,2}" % t.base64_min_run)

        found: List[EmbeddedPayload] = []
        for match in run.finditer(text):
            candidate = match.group(0)
            decoded = decode_base64_lenient(candidate)
            if decoded is None or len(decoded) <= t.base64_min_decoded:
                continue
            confidence, description = classify_decoded(decoded)
            found.append(EmbeddedPayload(
                payload_type=PayloadType.BASE64_ENCODED,
                offset=match.start(),
                size=len(candidate),
                confidence=confidence,
                preview=candidate[:BASE64_PREVIEW_CHARS] + "...",
                analysis=f"Base64 encoded data ({len(decoded)} bytes decoded). {description}",
            ))
            if len(found) >= t.max_base64_hits:
                break
        return found

    def find_embedded_pe(self, data: bytes) -> List[EmbeddedPayload]:
        """MZ headers whose e_lfanew field points at a PE signature."""
        found: List[EmbeddedPayload] = []
        index = data.find(b"MZ")
        while index != -1 and index + 0x40 <= len(data):
            pe_offset = read_u32_le(data, index + 0x3C)
            if pe_offset is not None:
                target = index + pe_offset
                if data[target:target + 4] == b"PE\x00\x00":
                    found.append(EmbeddedPayload(
                        payload_type=PayloadType.EXECUTABLE,
                        offset=index,
                        size=min(EMBEDDED_PE_REPORT_BYTES, len(data) - index),
                        confidence=CONF_EMBEDDED_PE,
                        preview=hex_preview(data[index:], PE_PREVIEW_BYTES),
                        analysis=f"Embedded PE executable found at offset {index}",
                    ))
                    if len(found) >= self.thresholds.max_embedded_pe_hits:
                        break
            index = data.find(b"MZ", index + 1)
        return found

    def find_encrypted_blobs(self, data: bytes) -> List[EmbeddedPayload]:
        t = self.thresholds
        if self.file_type in BLOB_SKIP_TYPES:
            logger.debug("Encrypted blob scan skipped for %s", self.file_type)
            return []

        found: List[EmbeddedPayload] = []
        for offset, block, entropy in iter_block_entropy(data, t.blob_block_size, t.blob_min_block):
            if entropy <= t.blob_entropy_threshold:
                continue
            found.append(EmbeddedPayload(
                payload_type=PayloadType.ENCRYPTED_BLOB,
                offset=offset,
                size=len(block),
                confidence=CONF_ENCRYPTED_BLOB,
                preview=hex_preview(block, BLOB_PREVIEW_BYTES),
                analysis=(
                    f"High entropy region ({entropy:.2f}) in {self.file_type} file "
                    "suggests encrypted/compressed data"
                ),
            ))
            if len(found) >= t.max_blob_hits:
                break
        return found

    def find_scripts(self, data: bytes) -> List[EmbeddedPayload]:
        t = self.thresholds
        if self.file_type in SCRIPT_SKIP_TYPES:
            return []

        text = data[:t.script_scan_chars].decode("latin-1")
        found: List[EmbeddedPayload] = []
        for scanner, name, confidence in SCRIPT_SCANNERS:
            for start, end in scanner(text):
                found.append(EmbeddedPayload(
                    payload_type=PayloadType.SCRIPT,
                    offset=start,
                    size=end - start,
                    confidence=confidence,
                    preview=text[start:min(end, start + SCRIPT_PREVIEW_CHARS)],
                    analysis=f"Embedded {name} detected in {self.file_type} file",
                ))
                if len(found) >= t.max_script_hits:
                    return found
        return found
