"""JSON export for forensic reports.

Serializes ForensicReport snapshots, handling pydantic models, datetimes,
paths, enums and raw bytes.
"""

import json
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from file_forensic.models import ForensicReport


class ForensicJSONEncoder(json.JSONEncoder):
    """JSON encoder for forensic report data types.

    Handles serialization of:
    - datetime objects (ISO 8601 format)
    - Path objects (string representation)
    - Enum values (value extraction)
    - bytes (lowercase hex)
    - Pydantic models (dict conversion)
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Path):
            return str(obj)
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, (bytes, bytearray)):
            return bytes(obj).hex()
        if hasattr(obj, "model_dump"):
            return obj.model_dump()
        return super().default(obj)


class JSONExporter:
    """Exporter for forensic reports to JSON.

    Converts ForensicReport models to JSON strings or writes them to files.
    """

    def __init__(self, indent: int = 2, sort_keys: bool = False, include_indicators: bool = True):
        """Initialize the JSON exporter.

        Args:
            indent: Number of spaces for indentation (default: 2)
            sort_keys: Whether to sort keys alphabetically (default: False)
            include_indicators: Keep per-indicator detail in the score sections
        """
        self.indent = indent
        self.sort_keys = sort_keys
        self.include_indicators = include_indicators

    def to_dict(self, report: ForensicReport) -> dict:
        """Convert a ForensicReport to a dictionary.

        Values keep their Python types (datetime, enums); ForensicJSONEncoder
        serializes them in to_json.
        """
        data = report.model_dump()
        if not self.include_indicators:
            for key in ("threat_score", "combined_score"):
                data[key].pop("indicators", None)
            data.pop("content_indicators", None)
        return data

    def to_json(self, report: ForensicReport) -> str:
        """Convert a ForensicReport to a JSON string."""
        return json.dumps(
            self.to_dict(report),
            cls=ForensicJSONEncoder,
            indent=self.indent,
            sort_keys=self.sort_keys,
        )

    def to_file(
        self,
        report: ForensicReport,
        file_path: Union[str, Path],
        encoding: str = "utf-8",
    ) -> None:
        """Save a ForensicReport to a JSON file, creating parent directories."""
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "w", encoding=encoding) as f:
            f.write(self.to_json(report))


def export_to_json(
    report: ForensicReport,
    output_path: Optional[Union[str, Path]] = None,
    indent: int = 2,
) -> str:
    """Convenience function to export a forensic report to JSON.

    Args:
        report: ForensicReport to export
        output_path: Optional path to save the JSON file
        indent: Number of spaces for indentation (default: 2)

    Returns:
        JSON string representation of the report
    """
    exporter = JSONExporter(indent=indent)
    json_str = exporter.to_json(report)

    if output_path:
        exporter.to_file(report, output_path)

    return json_str
