"""
Hex dump formatting for buffer regions.

Used by the CLI to show file headers and the neighborhood of embedded
payloads and appended data.
"""

from typing import Iterable, Optional

from file_forensic.utils.buffers import BytesLike, coerce_buffer


class HexDumpFormatter:
    """
    Formats binary data as offset / hex / ASCII lines.

    Offsets listed in ``highlight`` are bracketed in the hex column.
    """

    def __init__(self, bytes_per_line: int = 16, uppercase: bool = True):
        self.bytes_per_line = bytes_per_line
        self._hex = "{:02X}" if uppercase else "{:02x}"

    def format_bytes(
        self,
        data: BytesLike,
        start_offset: int = 0,
        highlight: Optional[Iterable[int]] = None,
    ) -> str:
        """
        Format bytes as a hex dump string.

        Args:
            data: Binary data to format
            start_offset: Offset printed for the first byte
            highlight: Absolute offsets to mark

        Returns:
            Formatted hex dump, or "(empty)" for an empty buffer
        """
        data = coerce_buffer(data)
        if not data:
            return "(empty)"

        marked = set(highlight or ())
        width = self.bytes_per_line
        lines = []
        for i in range(0, len(data), width):
            chunk = data[i:i + width]
            cells = []
            for j, b in enumerate(chunk):
                cell = self._hex.format(b)
                cells.append(f"[{cell}]" if start_offset + i + j in marked else f" {cell} ")
            hex_values = "".join(cells) + " " * ((width - len(chunk)) * 4)
            ascii_repr = "".join(chr(b) if 32 <= b < 127 else "." for b in chunk)
            lines.append(f"{start_offset + i:08X}: {hex_values} |{ascii_repr}|")

        return "\n".join(lines)

    def format_region(self, data: BytesLike, offset: int, length: int, context: int = 0) -> str:
        """Format ``length`` bytes at ``offset`` plus ``context`` bytes either side.

        The requested region is highlighted; the window is clamped to the buffer.
        """
        data = coerce_buffer(data)
        start = max(0, offset - context)
        end = min(len(data), offset + length + context)
        if start >= end:
            return "(empty)"
        region = range(offset, min(offset + length, end))
        return self.format_bytes(data[start:end], start_offset=start, highlight=region)


def format_hex_dump(data: BytesLike, start_offset: int = 0, bytes_per_line: int = 16) -> str:
    """Convenience function to format a hex dump."""
    return HexDumpFormatter(bytes_per_line=bytes_per_line).format_bytes(data, start_offset)
