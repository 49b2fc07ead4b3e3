"""Length-prefixed chunk walkers for PNG and RIFF buffers.

PNG chunk layout (all integers big-endian):
    [length:4][type:4][data:length][crc:4]

RIFF chunk layout (integers little-endian):
    [tag:4][size:4][data:size][pad byte if size is odd]

Both walkers are generators that stop cleanly on truncated or implausible
records instead of raising.
"""

import logging
from typing import Iterator, NamedTuple

from file_forensic.models import ContainerBox
from file_forensic.utils.buffers import read_tag, read_u32_be, read_u32_le

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

# Chunk lengths above this are treated as corruption, not data
MAX_PNG_CHUNK_LENGTH = 50_000_000


class PngChunk(NamedTuple):
    """One PNG chunk located inside a buffer."""
    offset: int
    length: int
    chunk_type: str
    data: bytes


def iter_png_chunks(data: bytes, start: int = 8) -> Iterator[PngChunk]:
    """Yield PNG chunks starting after the 8-byte signature.

    Walking stops after ``IEND``, on a length above the sanity cap, or when a
    chunk (including its CRC) would run past the end of the buffer.
    """
    offset = start
    while offset + 12 <= len(data):
        length = read_u32_be(data, offset)
        if length > MAX_PNG_CHUNK_LENGTH or offset + 12 + length > len(data):
            logger.debug("PNG chunk walk stopped at offset %d (length %d)", offset, length)
            break

        chunk_type = read_tag(data, offset + 4)
        yield PngChunk(
            offset=offset,
            length=length,
            chunk_type=chunk_type,
            data=data[offset + 8:offset + 8 + length],
        )

        offset += 12 + length
        if chunk_type == "IEND":
            break


def iter_riff_chunks(data: bytes, start: int = 12, limit: int = 10) -> Iterator[ContainerBox]:
    """Yield up to ``limit`` RIFF chunks as ContainerBox records."""
    offset = start
    count = 0
    while offset + 8 <= len(data) and count < limit:
        tag = read_tag(data, offset)
        size = read_u32_le(data, offset + 4)
        if offset + 8 + size > len(data):
            break

        yield ContainerBox(size=size, box_type=tag, offset=offset)
        count += 1
        offset += 8 + size + (size & 1)
