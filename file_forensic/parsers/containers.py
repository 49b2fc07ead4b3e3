"""Container resolution for ISOBMFF and RIFF wrapped formats.

A signature match on ``ftyp`` (offset 4) or ``RIFF`` (offset 0) only proves the
buffer uses a container family. This module reads the family's own header to
resolve the concrete format:

ISOBMFF (HEIC, HEIF, AVIF, MP4, MOV, CR3):
    [0-3]   box size (uint32 BE)
    [4-7]   'ftyp'
    [8-11]  major brand
    [12-15] minor version (uint32 BE)
    [16+]   compatible brands, 4 bytes each

RIFF (WebP, WAV, AVI):
    [0-3]   'RIFF'
    [4-7]   payload size (uint32 LE)
    [8-11]  form type
    [12+]   chunks: 4-char tag, uint32 LE size, data padded to even length
"""

import logging
from types import MappingProxyType
from typing import List, NamedTuple, Optional

from file_forensic.models import ContainerBox, ContainerResult, FileCategory, FtypBox
from file_forensic.parsers.chunks import iter_riff_chunks
from file_forensic.parsers.signatures import ISOBMFF_FAMILY, RIFF_FAMILY
from file_forensic.utils.buffers import BytesLike, coerce_buffer, read_tag, read_u32_be, read_u32_le

logger = logging.getLogger(__name__)


class ContainerFormat(NamedTuple):
    """Concrete format a brand or RIFF form type resolves to."""
    file_type: str
    mime_type: str
    category: FileCategory
    description: str


_IMG = FileCategory.IMAGE
_VID = FileCategory.VIDEO
_AUD = FileCategory.AUDIO

ISOBMFF_BRANDS = MappingProxyType({
    # HEIC / HEIF
    "heic": ContainerFormat("heic", "image/heic", _IMG, "HEIC Image"),
    "heix": ContainerFormat("heic", "image/heic", _IMG, "HEIC Image (extended)"),
    "hevc": ContainerFormat("heic", "image/heic", _IMG, "HEVC Image"),
    "hevx": ContainerFormat("heic", "image/heic", _IMG, "HEVC Image (extended)"),
    "heim": ContainerFormat("heic", "image/heic-sequence", _IMG, "HEIC Image Sequence"),
    "heis": ContainerFormat("heic", "image/heic-sequence", _IMG, "HEIC Image Sequence"),
    "mif1": ContainerFormat("heif", "image/heif", _IMG, "HEIF Image"),
    "msf1": ContainerFormat("heif", "image/heif-sequence", _IMG, "HEIF Sequence"),
    # AVIF
    "avif": ContainerFormat("avif", "image/avif", _IMG, "AVIF Image"),
    "avis": ContainerFormat("avif", "image/avif-sequence", _IMG, "AVIF Sequence"),
    "MA1A": ContainerFormat("avif", "image/avif", _IMG, "AVIF (AV1)"),
    "MA1B": ContainerFormat("avif", "image/avif", _IMG, "AVIF (AV1)"),
    # MP4 / MOV
    "isom": ContainerFormat("mp4", "video/mp4", _VID, "ISO Base Media"),
    "iso2": ContainerFormat("mp4", "video/mp4", _VID, "ISO Base Media v2"),
    "mp41": ContainerFormat("mp4", "video/mp4", _VID, "MP4 v1"),
    "mp42": ContainerFormat("mp4", "video/mp4", _VID, "MP4 v2"),
    "M4V ": ContainerFormat("m4v", "video/x-m4v", _VID, "Apple M4V"),
    "M4A ": ContainerFormat("m4a", "audio/mp4", _AUD, "Apple M4A"),
    "qt  ": ContainerFormat("mov", "video/quicktime", _VID, "QuickTime"),
    "avc1": ContainerFormat("mp4", "video/mp4", _VID, "H.264/AVC"),
    "hvc1": ContainerFormat("mp4", "video/mp4", _VID, "H.265/HEVC"),
    # Camera RAW
    "crx ": ContainerFormat("cr3", "image/x-canon-cr3", _IMG, "Canon CR3 RAW"),
})

RIFF_FORMS = MappingProxyType({
    "WEBP": ContainerFormat("webp", "image/webp", _IMG, "WebP Image"),
    "WAVE": ContainerFormat("wav", "audio/wav", _AUD, "WAV Audio"),
    "AVI ": ContainerFormat("avi", "video/x-msvideo", _VID, "AVI Video"),
})

# Boxes / chunks that raise container confidence when present
ISOBMFF_METADATA_BOXES = frozenset({"meta", "moov"})
ISOBMFF_MEDIA_BOXES = frozenset({"mdat"})
RIFF_METADATA_CHUNKS = frozenset({"VP8X", "EXIF", "XMP ", "ICCP", "fmt ", "LIST", "hdrl"})
RIFF_MEDIA_CHUNKS = frozenset({"VP8 ", "VP8L", "ALPH", "ANIM", "data", "idx1"})

MAX_TOP_LEVEL_BOXES = 10

# Confidence contributions
CONFIDENCE_WRAPPER = 50
CONFIDENCE_WELL_FORMED = 20
CONFIDENCE_KNOWN_BRAND = 15
CONFIDENCE_METADATA = 10
CONFIDENCE_MEDIA = 5


def parse_ftyp_box(data: BytesLike) -> Optional[FtypBox]:
    """Parse the File Type box at the start of an ISOBMFF buffer.

    Returns None when the buffer is shorter than 16 bytes, the first box is
    not ``ftyp``, or the declared size is below 16 or beyond the buffer end.
    """
    data = coerce_buffer(data)
    if len(data) < 16:
        return None

    size = read_u32_be(data, 0)
    if read_tag(data, 4) != "ftyp":
        return None
    if size < 16 or size > len(data):
        return None

    major_brand = read_tag(data, 8)
    minor_version = read_u32_be(data, 12)

    compatible_brands = []
    for offset in range(16, min(size, len(data)) - 3, 4):
        compatible_brands.append(read_tag(data, offset))

    return FtypBox(
        major_brand=major_brand,
        minor_version=minor_version,
        compatible_brands=compatible_brands,
        size=size,
    )


def parse_top_level_boxes(data: BytesLike, limit: int = MAX_TOP_LEVEL_BOXES) -> List[ContainerBox]:
    """Walk size-prefixed top-level boxes from offset 0.

    Stops after ``limit`` boxes, on a size below 8, on a box that overruns the
    buffer, or after the media data box (nothing structural follows it).
    """
    data = coerce_buffer(data)
    boxes: List[ContainerBox] = []
    offset = 0

    while offset + 8 <= len(data) and len(boxes) < limit:
        size = read_u32_be(data, offset)
        box_type = read_tag(data, offset + 4)

        if size < 8 or size > len(data) - offset:
            break

        boxes.append(ContainerBox(size=size, box_type=box_type, offset=offset))
        offset += size

        if box_type in ISOBMFF_MEDIA_BOXES:
            break

    return boxes


def is_likely_isobmff(data: BytesLike) -> bool:
    """Quick check for the ``ftyp`` tag at offset 4."""
    data = coerce_buffer(data)
    return len(data) >= 12 and read_tag(data, 4) == "ftyp"


class ContainerResolver:
    """Resolves container-family signature hits into concrete formats.

    Resolution never raises for malformed buffers: a wrapper that cannot be
    parsed returns ``valid=False`` with confidence 0 and an ``error`` string.
    """

    def resolve(self, data: BytesLike, family: str) -> ContainerResult:
        """Dispatch on the signature family identifier."""
        if family == ISOBMFF_FAMILY:
            return self.resolve_isobmff(data)
        if family == RIFF_FAMILY:
            return self.resolve_riff(data)
        return ContainerResult(
            valid=False,
            container=family,
            error=f"Unsupported container family: {family}",
        )

    def resolve_isobmff(self, data: BytesLike) -> ContainerResult:
        """Resolve an ISOBMFF buffer through its ftyp brands."""
        data = coerce_buffer(data)
        ftyp = parse_ftyp_box(data)
        if ftyp is None:
            logger.debug("ISOBMFF resolution failed: no valid ftyp box")
            return ContainerResult(
                valid=False,
                container="isobmff",
                error="No ftyp box found or invalid structure",
            )

        fmt = ISOBMFF_BRANDS.get(ftyp.major_brand)
        if fmt is None:
            for brand in ftyp.compatible_brands:
                fmt = ISOBMFF_BRANDS.get(brand)
                if fmt is not None:
                    break

        boxes = parse_top_level_boxes(data)
        box_types = {box.box_type for box in boxes}

        confidence = CONFIDENCE_WRAPPER + CONFIDENCE_WELL_FORMED
        if fmt is not None:
            confidence += CONFIDENCE_KNOWN_BRAND
        if box_types & ISOBMFF_METADATA_BOXES:
            confidence += CONFIDENCE_METADATA
        if box_types & ISOBMFF_MEDIA_BOXES:
            confidence += CONFIDENCE_MEDIA

        if fmt is None:
            fmt = ContainerFormat(
                "unknown_isobmff",
                "application/octet-stream",
                FileCategory.UNKNOWN,
                f"Unknown ISOBMFF (brand: {ftyp.major_brand})",
            )

        logger.debug(
            "ISOBMFF brand %r resolved to %s (boxes: %s)",
            ftyp.major_brand, fmt.file_type, [b.box_type for b in boxes],
        )
        return ContainerResult(
            valid=True,
            container="isobmff",
            major_brand=ftyp.major_brand,
            compatible_brands=ftyp.compatible_brands,
            file_type=fmt.file_type,
            mime_type=fmt.mime_type,
            category=fmt.category,
            description=fmt.description,
            boxes=boxes,
            confidence=min(confidence, 100),
        )

    def resolve_riff(self, data: BytesLike) -> ContainerResult:
        """Resolve a RIFF buffer through its form type at offset 8."""
        data = coerce_buffer(data)
        if len(data) < 12 or read_tag(data, 0) != "RIFF":
            return ContainerResult(
                valid=False,
                container="riff",
                error="No RIFF header found or buffer too short",
            )

        form_type = read_tag(data, 8)
        declared = read_u32_le(data, 4)
        chunks = list(iter_riff_chunks(data, limit=MAX_TOP_LEVEL_BOXES))
        chunk_types = {chunk.box_type for chunk in chunks}

        confidence = CONFIDENCE_WRAPPER
        if declared >= 4 and declared + 8 <= len(data):
            confidence += CONFIDENCE_WELL_FORMED

        fmt = RIFF_FORMS.get(form_type)
        if fmt is not None:
            confidence += CONFIDENCE_KNOWN_BRAND
        if chunk_types & RIFF_METADATA_CHUNKS:
            confidence += CONFIDENCE_METADATA
        if chunk_types & RIFF_MEDIA_CHUNKS:
            confidence += CONFIDENCE_MEDIA

        if fmt is None:
            fmt = ContainerFormat(
                "riff_unknown",
                "application/octet-stream",
                FileCategory.UNKNOWN,
                f"Unknown RIFF (form type: {form_type!r})",
            )

        return ContainerResult(
            valid=True,
            container="riff",
            major_brand=form_type,
            file_type=fmt.file_type,
            mime_type=fmt.mime_type,
            category=fmt.category,
            description=fmt.description,
            boxes=chunks,
            confidence=min(confidence, 100),
        )
