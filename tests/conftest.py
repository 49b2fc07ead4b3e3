"""Pytest configuration and shared fixtures for file forensic tests.

Fixtures build minimal in-memory buffers for each format the analyzers
understand. Factory fixtures return callables so tests can vary the content.
"""

import struct
import zlib

import pytest


def _png_chunk(chunk_type: bytes, data: bytes) -> bytes:
    crc = zlib.crc32(chunk_type + data) & 0xFFFFFFFF
    return struct.pack(">I", len(data)) + chunk_type + data + struct.pack(">I", crc)


def _embed_lsb_msb_first(message: bytes, carrier: int = 0x10) -> bytes:
    """Pixel bytes whose low bits spell ``message`` plus a NUL, MSB first."""
    pixels = bytearray()
    for byte in message + b"\x00":
        for shift in range(7, -1, -1):
            pixels.append(carrier | ((byte >> shift) & 1))
    return bytes(pixels)


@pytest.fixture
def png_chunk():
    """Factory for a single PNG chunk with a valid CRC."""
    return _png_chunk


@pytest.fixture
def lsb_pixels():
    """Factory for pixel data carrying an MSB-first LSB message."""
    return _embed_lsb_msb_first


@pytest.fixture
def make_png():
    """Factory for a minimal PNG.

    Args:
        extra_chunks: Chunks inserted between IHDR and IDAT
        pixels: Raw (uncompressed) pixel bytes for the IDAT stream
        trailer: Bytes appended after IEND
    """
    def build(extra_chunks=(), pixels=b"\x00" * 64, trailer=b""):
        ihdr = struct.pack(">IIBBBBB", 4, 4, 8, 6, 0, 0, 0)
        body = b"\x89PNG\r\n\x1a\n" + _png_chunk(b"IHDR", ihdr)
        for chunk in extra_chunks:
            body += chunk
        body += _png_chunk(b"IDAT", zlib.compress(pixels))
        body += _png_chunk(b"IEND", b"")
        return body + trailer

    return build


@pytest.fixture
def png_bytes(make_png):
    """A clean PNG with all-zero pixels."""
    return make_png()


@pytest.fixture
def make_jpeg():
    """Factory for a minimal JPEG ending in an EOI marker plus an optional trailer."""
    def build(trailer=b""):
        return b"\xff\xd8\xff\xe0" + b"\x00\x10JFIF\x00" + b"\x00" * 200 + b"\xff\xd9" + trailer

    return build


@pytest.fixture
def jpeg_bytes(make_jpeg):
    """A clean JPEG."""
    return make_jpeg()


@pytest.fixture
def heic_bytes():
    """ISOBMFF buffer with a heic major brand, a meta box and an mdat box."""
    ftyp = struct.pack(">I", 24) + b"ftyp" + b"heic" + struct.pack(">I", 0) + b"mif1heic"
    meta = struct.pack(">I", 16) + b"meta" + b"\x00" * 8
    mdat = struct.pack(">I", 40) + b"mdat" + b"\x00" * 32
    return ftyp + meta + mdat


@pytest.fixture
def webp_bytes():
    """RIFF/WEBP buffer with a single VP8L chunk."""
    payload = b"\x2f" + b"\x00" * 9
    chunk = b"VP8L" + struct.pack("<I", len(payload)) + payload
    return b"RIFF" + struct.pack("<I", 4 + len(chunk)) + b"WEBP" + chunk


@pytest.fixture
def pe_bytes():
    """Minimal PE image: MZ header whose e_lfanew points at a PE signature."""
    image = bytearray(128)
    image[0:2] = b"MZ"
    struct.pack_into("<I", image, 0x3C, 64)
    image[64:68] = b"PE\x00\x00"
    return bytes(image)


@pytest.fixture
def write_file(tmp_path):
    """Factory writing bytes to a named file under tmp_path."""
    def write(name, data):
        path = tmp_path / name
        path.write_bytes(data)
        return path

    return write
