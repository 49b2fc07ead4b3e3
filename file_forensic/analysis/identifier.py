"""
Multi-layer file type identification.

Identification runs three layers over the buffer:

1. Magic bytes: the highest-confidence signature match picks the candidate.
2. Container parsing: ISOBMFF and RIFF hits are resolved to a concrete
   format and the confidences are blended (30% signature, 70% container).
3. Extension correlation: the caller's filename is compared against the
   extensions expected for the detected type. A mismatch is graded by
   severity; executables and scripts disguised as documents or images are
   critical.
"""

import logging
from types import MappingProxyType
from typing import Optional

from file_forensic.models import (
    ConfidenceBreakdown,
    ContainerResult,
    FileCategory,
    FileIdentificationResult,
    MismatchSeverity,
)
from file_forensic.parsers.containers import ContainerResolver
from file_forensic.parsers.signatures import (
    CONTAINER_FAMILIES,
    ISOBMFF_FAMILY,
    SignatureMatcher,
    get_file_extension,
)
from file_forensic.utils.buffers import BytesLike, coerce_buffer

logger = logging.getLogger(__name__)

SIGNATURE_WEIGHT = 0.3
CONTAINER_WEIGHT = 0.7
EXTENSION_MATCH_BONUS = 5
EXTENSION_MATCH_BREAKDOWN = 10

EXTENSION_MAP = MappingProxyType({
    "jpeg": ("jpg", "jpeg", "jpe", "jfif"),
    "png": ("png",),
    "gif": ("gif",),
    "bmp": ("bmp", "dib"),
    "tiff": ("tif", "tiff"),
    "webp": ("webp",),
    "heic": ("heic", "heif"),
    "heif": ("heic", "heif"),
    "avif": ("avif",),
    "cr3": ("cr3",),
    "mp4": ("mp4", "m4v"),
    "m4v": ("m4v", "mp4"),
    "m4a": ("m4a",),
    "mov": ("mov", "qt"),
    "wav": ("wav", "wave"),
    "avi": ("avi",),
    "pe": ("exe", "dll", "sys"),
    "elf": ("elf", "so", ""),
    "macho": ("dylib", "bundle", ""),
    "zip": ("zip", "jar", "apk", "docx", "xlsx", "pptx"),
    "rar": ("rar",),
    "7z": ("7z",),
    "gzip": ("gz", "tgz"),
    "bzip2": ("bz2",),
    "pdf": ("pdf",),
    "ole": ("doc", "xls", "ppt", "msg"),
    "mp3": ("mp3",),
    "flac": ("flac",),
    "script": ("sh", "bash", "zsh"),
    "html": ("html", "htm"),
    "xml": ("xml",),
})

DESCRIPTIONS = MappingProxyType({
    "heic": "HEIC image file (High Efficiency Image Container)",
    "heif": "HEIF image file (High Efficiency Image Format)",
    "avif": "AVIF image file (AV1 Image File Format)",
    "jpeg": "JPEG image file",
    "png": "PNG image file",
    "gif": "GIF animated image",
    "webp": "WebP image file",
    "mp4": "MP4 video file",
    "mov": "QuickTime video file",
    "pdf": "PDF document",
    "zip": "ZIP archive",
    "pe": "Windows executable",
    "elf": "Linux/Unix executable",
    "unknown": "Unknown file type (no recognized signature)",
})

NATIVE_EXECUTABLE_TYPES = frozenset({"pe", "elf", "macho"})
NATIVE_EXECUTABLE_EXTENSIONS = frozenset({"exe", "dll", "com", "app", "dylib"})
SCRIPT_TYPES = frozenset({"script", "html"})
DOCUMENT_LURE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "pdf", "doc", "docx"})
EXECUTABLE_CATEGORY_EXTENSIONS = frozenset({"exe", "dll", "com", "app"})
IMAGE_EXTENSIONS = frozenset({
    "jpg", "jpeg", "png", "gif", "bmp", "tiff", "webp", "heic", "heif", "avif",
})


def extension_matches(extension: str, detected_type: str) -> bool:
    """Check whether ``extension`` is expected for ``detected_type``."""
    return extension in EXTENSION_MAP.get(detected_type, ())


def mismatch_severity(extension: str, detected_type: str, category: FileCategory) -> MismatchSeverity:
    """Grade an extension / content mismatch.

    Rules are checked in order; the first that applies wins.
    """
    if detected_type in NATIVE_EXECUTABLE_TYPES and extension not in NATIVE_EXECUTABLE_EXTENSIONS:
        return MismatchSeverity.CRITICAL
    if detected_type in SCRIPT_TYPES and extension in DOCUMENT_LURE_EXTENSIONS:
        return MismatchSeverity.CRITICAL
    if category == FileCategory.EXECUTABLE and extension not in EXECUTABLE_CATEGORY_EXTENSIONS:
        return MismatchSeverity.CRITICAL
    if category == FileCategory.IMAGE and extension not in IMAGE_EXTENSIONS:
        return MismatchSeverity.SUSPICIOUS
    if detected_type == "unknown":
        return MismatchSeverity.NONE
    return MismatchSeverity.MINOR


def describe_type(file_type: str) -> str:
    """One-line human description of a type identifier."""
    return DESCRIPTIONS.get(file_type, f"{file_type} file")


class FileIdentifier:
    """Identifies the true type of a buffer.

    Combines signature matching, container resolution and extension
    correlation into a single FileIdentificationResult. The filename is only
    used for its extension; the buffer is never modified.
    """

    def __init__(
        self,
        matcher: Optional[SignatureMatcher] = None,
        resolver: Optional[ContainerResolver] = None,
    ):
        self.matcher = matcher or SignatureMatcher()
        self.resolver = resolver or ContainerResolver()

    def identify(self, data: BytesLike, filename: str = "") -> FileIdentificationResult:
        """Identify a buffer's type.

        Args:
            data: Raw file content
            filename: Caller-supplied filename (only the extension is used)

        Returns:
            FileIdentificationResult
        """
        data = coerce_buffer(data)
        claimed_extension = get_file_extension(filename)
        matches = self.matcher.match(data)

        identified_type = "unknown"
        mime_type = "application/octet-stream"
        category = FileCategory.UNKNOWN
        confidence = 0.0
        magic_confidence = 0.0
        container_confidence = 0.0
        container_info: Optional[ContainerResult] = None
        notes = []

        if matches:
            top = matches[0]
            magic_confidence = float(top.confidence)

            if top.file_type in CONTAINER_FAMILIES:
                container_info = self.resolver.resolve(data, top.file_type)
                if container_info.valid:
                    identified_type = container_info.file_type
                    mime_type = container_info.mime_type
                    category = container_info.category
                    container_confidence = container_info.confidence
                    confidence = min(
                        magic_confidence * SIGNATURE_WEIGHT + container_confidence * CONTAINER_WEIGHT,
                        100.0,
                    )
                else:
                    isobmff = top.file_type == ISOBMFF_FAMILY
                    identified_type = "unknown_isobmff" if isobmff else "riff_unknown"
                    confidence = magic_confidence * 0.5
                    family = "ISOBMFF" if isobmff else "RIFF"
                    notes.append(f"{family} signature detected but container parsing failed")
            else:
                identified_type = top.file_type
                mime_type = top.entry.mime_type
                category = top.entry.category
                confidence = magic_confidence
        else:
            notes.append("No recognized file signature found")

        extension_match = 0.0
        if extension_matches(claimed_extension, identified_type):
            extension_mismatch = False
            severity = MismatchSeverity.NONE
            extension_match = float(EXTENSION_MATCH_BREAKDOWN)
            confidence = min(confidence + EXTENSION_MATCH_BONUS, 100.0)
        else:
            extension_mismatch = True
            severity = mismatch_severity(claimed_extension, identified_type, category)
            if severity == MismatchSeverity.CRITICAL:
                notes.append(
                    f"CRITICAL: File claims to be .{claimed_extension} but content is {identified_type}"
                )
            elif severity == MismatchSeverity.SUSPICIOUS:
                notes.append(
                    f"SUSPICIOUS: Extension .{claimed_extension} doesn't match detected type {identified_type}"
                )

        logger.debug(
            "Identified %r as %s (confidence %.1f, mismatch %s)",
            filename, identified_type, confidence, severity.value,
        )

        return FileIdentificationResult(
            identified_type=identified_type,
            mime_type=mime_type,
            category=category,
            confidence=confidence,
            confidence_breakdown=ConfidenceBreakdown(
                magic_bytes=magic_confidence,
                container_parsing=container_confidence,
                extension_match=extension_match,
            ),
            magic_matches=matches,
            container_info=container_info,
            claimed_extension=claimed_extension,
            extension_mismatch=extension_mismatch,
            mismatch_severity=severity,
            human_description=describe_type(identified_type),
            security_notes=notes,
        )


def identify_file(data: BytesLike, filename: str = "") -> FileIdentificationResult:
    """Identify a buffer with the default matcher and resolver."""
    return FileIdentifier().identify(data, filename)
