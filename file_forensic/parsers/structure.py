"""Raw structural scan: printable strings, suspicious API names, section markers.

The findings feed the threat scorer. Nothing here interprets the file type;
the scorer decides whether an API reference is expected for the format.
"""

import logging
from typing import List

from file_forensic.models import StructureFindings
from file_forensic.utils.buffers import BytesLike, coerce_buffer

logger = logging.getLogger(__name__)

MIN_STRING_LENGTH = 4
PREVIEW_LENGTH = 1024
PREVIEW_HEX_CHARS = 200

SUSPICIOUS_PATTERNS = (
    # Windows APIs
    "CreateRemoteThread",
    "VirtualAllocEx",
    "WriteProcessMemory",
    "LoadLibrary",
    "GetProcAddress",
    "ShellExecute",
    "WinExec",
    "CreateProcess",
    # PowerShell
    "Invoke-Expression",
    "iex",
    "DownloadString",
    "DownloadFile",
    "Net.WebClient",
    "Start-Process",
    "-EncodedCommand",
    "-enc",
    "bypass",
    # Unix shells
    "/bin/sh",
    "/bin/bash",
    "chmod +x",
    "curl",
    "wget",
    "nc -",
    # Generic
    "eval(",
    "exec(",
    "system(",
    "base64",
    "FromBase64String",
    "ToBase64String",
)

PE_SECTION_MARKERS = (".text", ".data", ".rdata")


def extract_strings(data: bytes, min_length: int = MIN_STRING_LENGTH) -> List[str]:
    """Return printable ASCII runs of at least ``min_length`` characters."""
    strings = []
    current = bytearray()
    for byte in data:
        if 32 <= byte <= 126:
            current.append(byte)
            continue
        if len(current) >= min_length:
            strings.append(current.decode("ascii"))
        current.clear()
    if len(current) >= min_length:
        strings.append(current.decode("ascii"))
    return strings


def find_suspicious_apis(content: str) -> List[str]:
    """Case-insensitive search for the suspicious pattern list."""
    lowered = content.lower()
    return [pattern for pattern in SUSPICIOUS_PATTERNS if pattern.lower() in lowered]


def build_preview(data: bytes) -> str:
    """Text preview of the first KiB, or a hex summary for binary content."""
    head = data[:PREVIEW_LENGTH]
    text = head.decode("utf-8", errors="replace")
    control = sum(1 for ch in text if ord(ch) < 32 and ch not in "\n\r\t")
    if control > len(text) * 0.3:
        return (
            f"[Binary data - {len(data)} bytes]\n"
            f"Hex dump: {head.hex()[:PREVIEW_HEX_CHARS]}..."
        )
    return text


def scan_structure(data: BytesLike) -> StructureFindings:
    """Scan a buffer for strings, suspicious API references and PE sections.

    Args:
        data: Raw buffer

    Returns:
        StructureFindings with the preview, string count, APIs and sections
    """
    data = coerce_buffer(data)
    strings = extract_strings(data)
    apis = find_suspicious_apis(" ".join(strings))

    sections = []
    if any(marker in s for s in strings for marker in PE_SECTION_MARKERS):
        sections.append("PE sections detected")

    if apis:
        logger.debug("Suspicious patterns found: %s", apis)

    return StructureFindings(
        preview=build_preview(data),
        strings_count=len(strings),
        apis=apis,
        sections=sections,
    )
