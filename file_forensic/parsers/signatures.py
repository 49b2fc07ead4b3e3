"""Magic-byte signature matching with offset and mask support.

The signature table is a static fact base built once at import time. Every
entry names the byte pattern, the offset the pattern must appear at, an
optional bitmask, and the type it implies. Container families (ISOBMFF and
RIFF) only identify a wrapper; the container resolver turns them into a
concrete type.
"""

import logging
from typing import List, Tuple

from file_forensic.models import FileCategory, MagicMatch, SignatureEntry
from file_forensic.utils.buffers import BytesLike, coerce_buffer

logger = logging.getLogger(__name__)

# Type identifiers that name a container family rather than a concrete type
ISOBMFF_FAMILY = "isobmff"
RIFF_FAMILY = "riff_container"
CONTAINER_FAMILIES = frozenset({ISOBMFF_FAMILY, RIFF_FAMILY})


def _sig(signature, file_type, mime_type, confidence, description, category, offset=0, mask=None):
    return SignatureEntry(
        signature=signature,
        offset=offset,
        mask=mask,
        file_type=file_type,
        mime_type=mime_type,
        confidence=confidence,
        description=description,
        category=category,
    )


SIGNATURES: Tuple[SignatureEntry, ...] = (
    # Images
    _sig("FFD8FF", "jpeg", "image/jpeg", 95, "JPEG Image", FileCategory.IMAGE),
    _sig("89504E47", "png", "image/png", 95, "PNG Image", FileCategory.IMAGE),
    _sig("474946383761", "gif", "image/gif", 95, "GIF87a Image", FileCategory.IMAGE),
    _sig("474946383961", "gif", "image/gif", 95, "GIF89a Image", FileCategory.IMAGE),
    _sig("424D", "bmp", "image/bmp", 90, "BMP Image", FileCategory.IMAGE),
    _sig("49492A00", "tiff", "image/tiff", 95, "TIFF (Little Endian)", FileCategory.IMAGE),
    _sig("4D4D002A", "tiff", "image/tiff", 95, "TIFF (Big Endian)", FileCategory.IMAGE),

    # Container families (resolved by ContainerResolver)
    _sig("52494646", RIFF_FAMILY, "application/octet-stream", 60,
         "RIFF Container (WebP/WAV/AVI)", FileCategory.UNKNOWN),
    # ftyp sits at offset 4, after the box size
    _sig("66747970", ISOBMFF_FAMILY, "application/octet-stream", 70,
         "ISO Base Media Container (requires brand check)", FileCategory.UNKNOWN, offset=4),

    # Executables
    _sig("4D5A", "pe", "application/x-msdownload", 95, "PE Executable (EXE/DLL)", FileCategory.EXECUTABLE),
    _sig("7F454C46", "elf", "application/x-executable", 95, "ELF Executable", FileCategory.EXECUTABLE),
    _sig("CAFEBABE", "macho", "application/x-mach-binary", 95, "Mach-O Binary (32-bit)", FileCategory.EXECUTABLE),
    _sig("CFFAEDFE", "macho", "application/x-mach-binary", 95, "Mach-O Binary (64-bit)", FileCategory.EXECUTABLE),

    # Archives
    _sig("504B0304", "zip", "application/zip", 90, "ZIP Archive", FileCategory.ARCHIVE),
    _sig("504B0506", "zip", "application/zip", 90, "ZIP Archive (empty)", FileCategory.ARCHIVE),
    _sig("526172211A07", "rar", "application/x-rar-compressed", 95, "RAR Archive v4+", FileCategory.ARCHIVE),
    _sig("526172211A0700", "rar", "application/x-rar-compressed", 95, "RAR Archive v5+", FileCategory.ARCHIVE),
    _sig("377ABCAF271C", "7z", "application/x-7z-compressed", 95, "7-Zip Archive", FileCategory.ARCHIVE),
    _sig("1F8B", "gzip", "application/gzip", 95, "GZIP Archive", FileCategory.ARCHIVE),
    _sig("425A68", "bzip2", "application/x-bzip2", 95, "BZIP2 Archive", FileCategory.ARCHIVE),

    # Documents
    _sig("25504446", "pdf", "application/pdf", 95, "PDF Document", FileCategory.DOCUMENT),
    _sig("D0CF11E0A1B11AE1", "ole", "application/x-ole-storage", 90,
         "OLE Document (DOC/XLS/PPT)", FileCategory.DOCUMENT),

    # Audio
    _sig("494433", "mp3", "audio/mpeg", 90, "MP3 with ID3v2 Tag", FileCategory.AUDIO),
    # MPEG-1 Layer III frame sync; the low bit is the CRC-protection flag
    _sig("FFFB", "mp3", "audio/mpeg", 70, "MP3 Frame Sync", FileCategory.AUDIO, mask="FFFE"),
    _sig("664C6143", "flac", "audio/flac", 95, "FLAC Audio", FileCategory.AUDIO),

    # Scripts and markup
    _sig("23212F", "script", "text/plain", 80, "Shell Script (#!)", FileCategory.SCRIPT),
    _sig("3C3F786D6C", "xml", "application/xml", 85, "XML Document", FileCategory.DOCUMENT),
    _sig("3C68746D6C", "html", "text/html", 85, "HTML Document", FileCategory.DOCUMENT),
)

# Largest offset + pattern length in the table; shorter buffers may miss entries
MAX_SIGNATURE_SPAN = max(entry.offset + len(entry.pattern) for entry in SIGNATURES)

EXECUTABLE_EXTENSIONS = frozenset({
    "exe", "dll", "com", "bat", "cmd", "ps1", "sh", "bash",
    "run", "app", "dmg", "pkg", "deb", "rpm",
})


class SignatureMatcher:
    """Matches a buffer against the static magic-byte table.

    Every entry whose pattern fits inside the buffer at its declared offset is
    compared byte by byte (through the mask when one is present). Matches are
    returned sorted by base confidence, highest first. Entries that would read
    past the end of the buffer are skipped, so empty and truncated buffers
    simply produce fewer (or no) matches.
    """

    def __init__(self, signatures: Tuple[SignatureEntry, ...] = SIGNATURES):
        self.signatures = signatures

    def match(self, data: BytesLike) -> List[MagicMatch]:
        """Return all matching signatures, ranked by confidence.

        Args:
            data: Raw buffer to inspect

        Returns:
            List of MagicMatch, possibly empty
        """
        data = coerce_buffer(data)
        matches: List[MagicMatch] = []

        for entry in self.signatures:
            pattern = entry.pattern
            end = entry.offset + len(pattern)
            if end > len(data):
                continue

            window = data[entry.offset:end]
            mask = entry.mask_bytes
            if mask is not None:
                hit = all(
                    (actual & m) == (expected & m)
                    for actual, expected, m in zip(window, pattern, mask)
                )
            else:
                hit = window == pattern

            if hit:
                matches.append(MagicMatch(entry=entry, matched_at=entry.offset))

        # sorted() is stable, so table order breaks confidence ties
        matches = sorted(matches, key=lambda m: m.confidence, reverse=True)
        logger.debug("Signature matches: %s", [m.file_type for m in matches])
        return matches


def detect_magic_bytes(data: BytesLike) -> List[MagicMatch]:
    """Match ``data`` against the default signature table."""
    return SignatureMatcher().match(data)


def get_file_extension(filename: str) -> str:
    """Return the lower-cased final extension of a filename ('' if none)."""
    if not filename:
        return ""
    parts = filename.lower().split(".")
    return parts[-1] if len(parts) > 1 else ""


def is_executable_extension(filename: str) -> bool:
    """Check whether a filename's extension suggests executable content."""
    return get_file_extension(filename) in EXECUTABLE_EXTENSIONS
