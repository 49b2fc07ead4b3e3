"""Helpers shared by the byte-level scanners."""

import struct
from typing import Optional, Union

from file_forensic.utils.exceptions import InvalidInputError

BytesLike = Union[bytes, bytearray, memoryview]


def coerce_buffer(data: BytesLike, parameter: str = "data") -> bytes:
    """Return an immutable ``bytes`` view of the input buffer.

    Raises:
        InvalidInputError: If ``data`` is not a bytes-like object
    """
    if isinstance(data, bytes):
        return data
    if isinstance(data, (bytearray, memoryview)):
        return bytes(data)
    raise InvalidInputError(parameter, "expected a bytes-like buffer", data)


def require_file_type(file_type: str) -> str:
    """Validate the identified type handed to a content inspector."""
    if not isinstance(file_type, str) or not file_type:
        raise InvalidInputError(
            "file_type",
            "content inspectors require the identified file type",
            file_type,
        )
    return file_type


def hex_preview(data: bytes, limit: int) -> str:
    """Lower-case hex of at most ``limit`` leading bytes."""
    return data[:limit].hex()


def read_u32_be(data: bytes, offset: int) -> Optional[int]:
    """Read a big-endian uint32, or None when it would overrun the buffer."""
    if offset < 0 or offset + 4 > len(data):
        return None
    return struct.unpack_from(">I", data, offset)[0]


def read_u32_le(data: bytes, offset: int) -> Optional[int]:
    """Read a little-endian uint32, or None when it would overrun the buffer."""
    if offset < 0 or offset + 4 > len(data):
        return None
    return struct.unpack_from("<I", data, offset)[0]


def read_tag(data: bytes, offset: int) -> Optional[str]:
    """Read a 4-character ASCII tag (non-ASCII bytes map through Latin-1)."""
    if offset < 0 or offset + 4 > len(data):
        return None
    return data[offset:offset + 4].decode("latin-1")
