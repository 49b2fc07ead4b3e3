"""Tests for embedded payload hunting."""

import base64
import struct
import time

import pytest

from file_forensic.analysis.payloads import (
    BLOB_SKIP_TYPES,
    PayloadHunter,
    classify_decoded,
    decode_base64_lenient,
    payload_risk,
)
from file_forensic.analysis.thresholds import DetectionThresholds
from file_forensic.models import EmbeddedPayload, PayloadType
from file_forensic.utils.exceptions import InvalidInputError


def _of_type(analysis, payload_type):
    return [p for p in analysis.found_payloads if p.payload_type == payload_type]


class TestShellcode:
    """Tests for shellcode pattern search."""

    def test_nop_sled(self):
        data = b"\x00" * 100 + b"\x90" * 8 + b"\x00" * 100
        result = PayloadHunter("jpeg").hunt(data)
        found = _of_type(result, PayloadType.SHELLCODE)
        assert len(found) == 1
        assert found[0].offset == 100
        assert found[0].confidence == 75
        assert found[0].analysis == "Detected NOP sled at offset 100"

    def test_x86_prologue(self):
        data = b"\x00" * 50 + b"\xeb\x1e\x5e\x89\x76" + b"\x00" * 50
        found = PayloadHunter("jpeg").find_shellcode(data)
        assert len(found) == 1
        assert found[0].offset == 50
        assert found[0].size == 5
        assert found[0].confidence == 85
        assert found[0].analysis == "Detected x86 shellcode prologue at offset 50"

    def test_x64_pattern(self):
        data = b"\x00" * 30 + b"\x48\x31\xc0\x48\x31\xdb" + b"\x00" * 30
        found = PayloadHunter("jpeg").find_shellcode(data)
        assert len(found) == 1
        assert found[0].offset == 30
        assert found[0].size == 6
        assert found[0].confidence == 80
        assert found[0].analysis == "Detected x64 shellcode pattern at offset 30"

    def test_hits_are_capped(self):
        data = (b"\x90" * 8 + b"\x00" * 8) * 20
        found = PayloadHunter("jpeg").find_shellcode(data)
        assert len(found) == 5

    def test_cap_is_configurable(self):
        data = (b"\x90" * 8 + b"\x00" * 8) * 20
        hunter = PayloadHunter("jpeg", DetectionThresholds(max_shellcode_hits=2))
        assert len(hunter.find_shellcode(data)) == 2


class TestBase64:
    """Tests for base64 run detection."""

    def test_encoded_executable(self, pe_bytes):
        encoded = base64.b64encode(pe_bytes)
        data = b"\x00" * 10 + encoded + b"\x00" * 10
        found = PayloadHunter("png").find_base64_blobs(data)
        assert len(found) == 1
        assert found[0].offset == 10
        assert found[0].size == len(encoded)
        assert found[0].confidence == 95
        assert "Contains PE executable" in found[0].analysis

    def test_short_runs_ignored(self):
        data = b"\x00" + base64.b64encode(b"short text") + b"\x00"
        assert PayloadHunter("png").find_base64_blobs(data) == []

    def test_lenient_decoding(self):
        assert decode_base64_lenient("aGVsbG8") == b"hello"
        assert decode_base64_lenient("aGVsbG8====") == b"hello"

    def test_classify_decoded(self):
        assert classify_decoded(b"\x7fELF" + b"\x00" * 60)[0] == 95
        assert classify_decoded(bytes(range(256)))[0] == 70
        assert classify_decoded(b"a" * 60)[0] == 50


class TestEmbeddedPe:
    """Tests for embedded PE detection."""

    def test_pe_inside_image(self, pe_bytes):
        data = b"\x00" * 100 + pe_bytes
        found = _of_type(PayloadHunter("jpeg").hunt(data), PayloadType.EXECUTABLE)
        assert len(found) == 1
        assert found[0].offset == 100
        assert found[0].size == len(pe_bytes)
        assert found[0].confidence == 95

    def test_pe_files_skip_embedded_scan(self, pe_bytes):
        data = pe_bytes + b"\x00" * 100 + pe_bytes
        result = PayloadHunter("pe").hunt(data)
        assert _of_type(result, PayloadType.EXECUTABLE) == []

    def test_mz_without_pe_signature(self):
        data = b"\x00" * 10 + b"MZ" + b"\x00" * 200
        assert PayloadHunter("jpeg").find_embedded_pe(data) == []

    def test_header_ending_at_buffer_end(self):
        """A 64-byte MZ header flush with the end of the buffer is still read."""
        header = bytearray(64)
        header[0:2] = b"MZ"
        header[4:8] = b"PE\x00\x00"
        struct.pack_into("<I", header, 0x3C, 4)
        data = b"\x00" * 10 + bytes(header)
        found = PayloadHunter("jpeg").find_embedded_pe(data)
        assert len(found) == 1
        assert found[0].offset == 10
        assert found[0].size == 64

    def test_truncated_header_ignored(self):
        data = b"\x00" * 10 + b"MZ" + b"\x00" * 61
        assert PayloadHunter("jpeg").find_embedded_pe(data) == []


class TestEncryptedBlobs:
    """Tests for high-entropy block detection."""

    def test_blocks_in_low_entropy_format(self):
        data = bytes(range(256)) * 16
        found = PayloadHunter("bmp").find_encrypted_blobs(data)
        # four uniform blocks, capped at three
        assert len(found) == 3
        assert [p.offset for p in found] == [0, 1024, 2048]
        assert all(p.confidence == 65 for p in found)

    @pytest.mark.parametrize("file_type", ["jpeg", "zip", "7z", "heic"])
    def test_high_entropy_formats_skipped(self, file_type):
        assert file_type in BLOB_SKIP_TYPES
        data = bytes(range(256)) * 16
        assert PayloadHunter(file_type).find_encrypted_blobs(data) == []


class TestScripts:
    """Tests for embedded script detection."""

    def test_script_tag(self):
        data = b"\x00" * 20 + b"<script>" + b"x" * 60 + b"</script>"
        found = PayloadHunter("jpeg").find_scripts(data)
        assert len(found) == 1
        assert found[0].offset == 20
        assert found[0].confidence == 85

    def test_eval_call(self):
        data = b"eval(" + b"a" * 60 + b")"
        found = PayloadHunter("pdf").find_scripts(data)
        assert found[0].analysis == "Embedded JavaScript eval() detected in pdf file"

    def test_markup_types_skipped(self):
        data = b"<script>" + b"x" * 60 + b"</script>"
        assert PayloadHunter("html").find_scripts(data) == []

    def test_uppercase_script_tag(self):
        data = b"<SCRIPT type='x'>" + b"x" * 60 + b"</SCRIPT>"
        found = PayloadHunter("jpeg").find_scripts(data)
        assert len(found) == 1
        assert found[0].size == len(data)

    def test_short_body_extends_to_next_closer(self):
        data = b"<script>" + b"x" * 10 + b"</script>" + b"y" * 60 + b"</script>"
        found = PayloadHunter("jpeg").find_scripts(data)
        assert len(found) == 1
        assert found[0].offset == 0
        assert found[0].size == len(data)

    def test_short_eval_skipped(self):
        data = b"eval(a);" + b"eval(" + b"b" * 60 + b")"
        found = PayloadHunter("pdf").find_scripts(data)
        assert len(found) == 1
        assert found[0].offset == 8
        assert found[0].size == len(data) - 8
        assert found[0].confidence == 90

    @pytest.mark.parametrize("flag", [b"-e", b"-en", b"-enc"])
    def test_powershell_encoded_command(self, flag):
        data = b"cmd /c powershell " + flag + b" " + b"A" * 60
        found = PayloadHunter("jpeg").find_scripts(data)
        assert len(found) == 1
        assert found[0].offset == 7
        assert found[0].size == len(data) - 7
        assert found[0].confidence == 95
        assert found[0].analysis == "Embedded PowerShell encoded command detected in jpeg file"

    def test_powershell_short_argument_ignored(self):
        data = b"powershell -enc " + b"A" * 20
        assert PayloadHunter("jpeg").find_scripts(data) == []


class TestScriptScanCost:
    """Script scanning stays linear on adversarial input."""

    @staticmethod
    def _timed_scan(data):
        start = time.perf_counter()
        found = PayloadHunter("jpeg").find_scripts(data)
        return found, time.perf_counter() - start

    def test_unclosed_script_tags(self):
        found, elapsed = self._timed_scan(b"<script>" * 12_500)
        assert found == []
        assert elapsed < 2.0

    def test_unclosed_eval_calls(self):
        found, elapsed = self._timed_scan(b"eval(" * 20_000)
        assert found == []
        assert elapsed < 2.0

    def test_repeated_tags_with_one_closer(self):
        data = b"<script>" * 12_000 + b"</script>"
        found, elapsed = self._timed_scan(data)
        assert len(found) == 1
        assert found[0].offset == 0
        assert found[0].size == len(data)
        assert elapsed < 2.0

    def test_repeated_evals_with_one_closer(self):
        data = b"eval(" * 19_000 + b")"
        found, elapsed = self._timed_scan(data)
        assert len(found) == 1
        assert found[0].size == len(data)
        assert elapsed < 2.0


class TestHunt:
    """Tests for the aggregate hunt result."""

    def test_clean_buffer(self, png_bytes):
        result = PayloadHunter("png").hunt(png_bytes)
        assert result.found_payloads == []
        assert result.overall_risk == 0
        assert result.summary == "No embedded payloads detected."

    def test_summary_and_risk(self):
        data = b"\x00" * 100 + b"\x90" * 8 + b"\x00" * 100
        result = PayloadHunter("jpeg").hunt(data)
        # one payload: 75 * (0.7 + 0.3 / 3)
        assert result.overall_risk == pytest.approx(60.0)
        assert result.summary == "Found 1 embedded payload(s): shellcode. Overall risk: 60/100"

    def test_payload_risk_saturates(self):
        payloads = [
            EmbeddedPayload(payload_type=PayloadType.SCRIPT, offset=i, size=1, confidence=90)
            for i in range(4)
        ]
        assert payload_risk(payloads) == pytest.approx(90.0)

    def test_requires_file_type(self):
        with pytest.raises(InvalidInputError):
            PayloadHunter(None)

    def test_empty_buffer(self):
        assert PayloadHunter("unknown").hunt(b"").found_payloads == []

    def test_idempotent(self, pe_bytes):
        data = b"\x00" * 100 + pe_bytes + b"\x90" * 8
        hunter = PayloadHunter("jpeg")
        assert hunter.hunt(data) == hunter.hunt(data)
