"""Byte-level parsers for static file forensics.

This package provides the low-level readers every analysis layer builds on:

- Magic-byte signature matching
- ISOBMFF / RIFF container resolution
- PNG and RIFF chunk walking
- Shannon entropy
- Raw structural scanning (strings, API references, section markers)
"""

from file_forensic.parsers.signatures import (
    CONTAINER_FAMILIES,
    SIGNATURES,
    SignatureMatcher,
    detect_magic_bytes,
    get_file_extension,
    is_executable_extension,
)
from file_forensic.parsers.containers import (
    ISOBMFF_BRANDS,
    RIFF_FORMS,
    ContainerResolver,
    is_likely_isobmff,
    parse_ftyp_box,
    parse_top_level_boxes,
)
from file_forensic.parsers.chunks import PngChunk, iter_png_chunks, iter_riff_chunks
from file_forensic.parsers.entropy import iter_block_entropy, shannon_entropy
from file_forensic.parsers.structure import extract_strings, scan_structure

__all__ = [
    # Signatures
    "SIGNATURES",
    "CONTAINER_FAMILIES",
    "SignatureMatcher",
    "detect_magic_bytes",
    "get_file_extension",
    "is_executable_extension",
    # Containers
    "ISOBMFF_BRANDS",
    "RIFF_FORMS",
    "ContainerResolver",
    "parse_ftyp_box",
    "parse_top_level_boxes",
    "is_likely_isobmff",
    # Chunks
    "PngChunk",
    "iter_png_chunks",
    "iter_riff_chunks",
    # Entropy
    "shannon_entropy",
    "iter_block_entropy",
    # Structure
    "extract_strings",
    "scan_structure",
]
