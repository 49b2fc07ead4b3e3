"""
Utility modules for file forensic analysis.

This package contains shared utilities including custom exceptions and the
bounds-checked buffer readers used by every parser.
"""

from file_forensic.utils.buffers import (
    coerce_buffer,
    hex_preview,
    read_tag,
    read_u32_be,
    read_u32_le,
    require_file_type,
)
from file_forensic.utils.exceptions import (
    FileForensicError,
    FileReadError,
    InvalidInputError,
    ThresholdConfigError,
)

__all__ = [
    # Exceptions
    "FileForensicError",
    "InvalidInputError",
    "FileReadError",
    "ThresholdConfigError",
    # Buffer helpers
    "coerce_buffer",
    "require_file_type",
    "hex_preview",
    "read_u32_be",
    "read_u32_le",
    "read_tag",
]
