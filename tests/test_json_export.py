"""Tests for JSON export and hex dump formatting."""

import json
from datetime import datetime
from pathlib import Path

import pytest

from file_forensic.core.analyzer import ForensicAnalyzer
from file_forensic.models import ThreatLevel
from file_forensic.output.hex_dump import HexDumpFormatter, format_hex_dump
from file_forensic.output.json_export import ForensicJSONEncoder, JSONExporter, export_to_json


@pytest.fixture
def report(png_bytes):
    """Forensic report for the minimal PNG fixture."""
    return ForensicAnalyzer().analyze_bytes(png_bytes, "image.png")


class TestForensicJSONEncoder:
    """Tests for the custom encoder."""

    def test_datetime(self):
        value = datetime(2024, 1, 15, 10, 30, 0)
        assert json.dumps(value, cls=ForensicJSONEncoder) == '"2024-01-15T10:30:00"'

    def test_path(self):
        assert json.loads(json.dumps(Path("a") / "b.bin", cls=ForensicJSONEncoder)) == str(Path("a") / "b.bin")

    def test_enum(self):
        assert json.dumps(ThreatLevel.HIGH, cls=ForensicJSONEncoder) == '"high"'

    def test_bytes(self):
        assert json.dumps(b"\x4d\x5a", cls=ForensicJSONEncoder) == '"4d5a"'
        assert json.dumps(bytearray(b"\xff"), cls=ForensicJSONEncoder) == '"ff"'

    def test_model(self, report):
        data = json.loads(json.dumps({"info": report.file_info}, cls=ForensicJSONEncoder))
        assert data["info"]["filename"] == "image.png"

    def test_unsupported(self):
        with pytest.raises(TypeError):
            json.dumps(object(), cls=ForensicJSONEncoder)


class TestJSONExporter:
    """Tests for the report exporter."""

    def test_to_json_sections(self, report):
        data = json.loads(JSONExporter().to_json(report))
        for key in (
            "file_info", "identification", "entropy", "structure", "steganography",
            "polyglot", "payloads", "threat_score", "combined_score", "recommendations",
            "analysis_errors", "analysis_timestamp", "analyzer_version",
        ):
            assert key in data
        assert data["identification"]["identified_type"] == "png"
        assert data["threat_score"]["risk_level"] in {level.value for level in ThreatLevel}

    def test_to_dict_keeps_native_types(self, report):
        data = JSONExporter().to_dict(report)
        assert isinstance(data["analysis_timestamp"], datetime)
        assert isinstance(data["threat_score"]["risk_level"], ThreatLevel)
        assert data["threat_score"]["risk_level"] == report.threat_score.risk_level

    def test_encoder_serializes_native_types(self, report):
        data = json.loads(JSONExporter().to_json(report))
        assert data["analysis_timestamp"] == report.analysis_timestamp.isoformat()
        assert data["threat_score"]["risk_level"] == report.threat_score.risk_level.value

    def test_sort_keys(self, report):
        text = JSONExporter(sort_keys=True).to_json(report)
        keys = list(json.loads(text).keys())
        assert keys == sorted(keys)

    def test_without_indicators(self, report):
        data = JSONExporter(include_indicators=False).to_dict(report)
        assert "indicators" not in data["threat_score"]
        assert "indicators" not in data["combined_score"]
        assert "content_indicators" not in data
        assert "risk_level" in data["threat_score"]

    def test_to_file_creates_parents(self, report, tmp_path):
        target = tmp_path / "nested" / "dir" / "report.json"
        JSONExporter().to_file(report, target)
        assert json.loads(target.read_text(encoding="utf-8"))["file_info"]["filename"] == "image.png"

    def test_export_to_json(self, report, tmp_path):
        target = tmp_path / "report.json"
        text = export_to_json(report, target)
        assert json.loads(text) == json.loads(target.read_text(encoding="utf-8"))

    def test_export_to_json_string_only(self, report):
        assert json.loads(export_to_json(report, indent=4))["analyzer_version"]


class TestHexDump:
    """Tests for hex dump formatting."""

    def test_single_line(self):
        dump = format_hex_dump(b"MZ\x90\x00")
        assert dump.startswith("00000000:  4D  5A  90  00 ")
        assert dump.endswith("|MZ..|")

    def test_lowercase(self):
        dump = HexDumpFormatter(uppercase=False).format_bytes(b"\xab")
        assert " ab " in dump

    def test_multiple_lines(self):
        dump = format_hex_dump(bytes(range(32)), start_offset=0x100)
        lines = dump.splitlines()
        assert len(lines) == 2
        assert lines[0].startswith("00000100:")
        assert lines[1].startswith("00000110:")

    def test_custom_width(self):
        dump = format_hex_dump(b"ABCDEFGH", bytes_per_line=4)
        assert dump.splitlines()[1].endswith("|EFGH|")

    def test_empty(self):
        assert format_hex_dump(b"") == "(empty)"

    def test_highlight(self):
        dump = HexDumpFormatter().format_bytes(b"\x00\x01\x02", highlight=[1])
        assert "[01]" in dump
        assert "[00]" not in dump

    def test_region_with_context(self):
        data = bytes(range(64))
        dump = HexDumpFormatter().format_region(data, offset=20, length=2, context=4)
        assert dump.startswith("00000010:")
        assert "[14][15]" in dump
        assert "|" + "".join(chr(b) if 32 <= b < 127 else "." for b in data[16:26]) + "|" in dump

    def test_region_clamped(self):
        dump = HexDumpFormatter().format_region(b"\x01\x02", offset=1, length=10, context=5)
        assert dump.startswith("00000000:")
        assert "[02]" in dump

    def test_region_out_of_range(self):
        assert HexDumpFormatter().format_region(b"\x01\x02", offset=10, length=2) == "(empty)"
