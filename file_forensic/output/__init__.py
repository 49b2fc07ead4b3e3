"""Output generation for forensic reports.

This package provides exporters and formatters for analysis results.
"""

from file_forensic.output.json_export import ForensicJSONEncoder, JSONExporter, export_to_json
from file_forensic.output.hex_dump import HexDumpFormatter, format_hex_dump

__all__ = [
    # JSON Export
    "ForensicJSONEncoder",
    "JSONExporter",
    "export_to_json",
    # Hex Dump
    "HexDumpFormatter",
    "format_hex_dump",
]
