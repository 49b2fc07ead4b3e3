"""Detection thresholds for the content inspectors.

Every empirically chosen constant used by the steganography detector and the
payload hunter lives in :class:`DetectionThresholds`. The defaults reproduce
the stock detection behavior; a YAML or JSON file can override individual
values::

    thresholds:
      chi_square_low: 1.4
      blob_entropy_threshold: 7.8

The file path may also be supplied through the ``FILE_FORENSIC_THRESHOLDS``
environment variable.
"""

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from file_forensic.utils.exceptions import ThresholdConfigError

logger = logging.getLogger(__name__)

ENV_VAR_THRESHOLDS = "FILE_FORENSIC_THRESHOLDS"


@dataclass(frozen=True)
class DetectionThresholds:
    """Tunable constants shared by the content inspectors."""

    # Steganography: chi-square byte-pair test (open interval)
    chi_square_low: float = 1.5
    chi_square_high: float = 2.5
    chi_square_stride: int = 8

    # Steganography: data after the format's end marker
    appended_min_bytes: int = 16

    # Steganography: large high-entropy regions in media files
    hidden_data_min_size: int = 100_000
    hidden_window_size: int = 4096
    hidden_window_entropy: float = 7.8
    hidden_window_count: int = 5

    # Steganography: PNG ancillary chunks considered oversized
    large_chunk_bytes: int = 10_000

    # Steganography: LSB scan limits
    lsb_scan_bytes: int = 20_000
    lsb_rgb_scan_bytes: int = 30_000
    lsb_max_pixels: int = 10_000
    # Inflated IDAT bytes kept for the LSB scan (covers the largest window)
    lsb_inflate_bytes: int = 65_536

    # Payloads: encrypted blob scan
    blob_block_size: int = 1024
    blob_min_block: int = 512
    blob_entropy_threshold: float = 7.7

    # Payloads: base64 runs
    base64_min_run: int = 100
    base64_min_decoded: int = 50

    # Payloads: script scan window
    script_scan_chars: int = 100_000

    # Payloads: per-category hit caps
    max_shellcode_hits: int = 5
    max_base64_hits: int = 5
    max_embedded_pe_hits: int = 3
    max_blob_hits: int = 3
    max_script_hits: int = 5

    def __post_init__(self):
        if not self.chi_square_low < self.chi_square_high:
            raise ThresholdConfigError("chi_square_low must be below chi_square_high")
        for name in ("chi_square_stride", "hidden_window_size", "blob_block_size", "lsb_inflate_bytes"):
            if getattr(self, name) <= 0:
                raise ThresholdConfigError(f"{name} must be positive")


DEFAULT_THRESHOLDS = DetectionThresholds()


def thresholds_from_mapping(values: Dict[str, Any]) -> DetectionThresholds:
    """Build thresholds from a mapping of field overrides.

    Raises:
        ThresholdConfigError: If a key is unknown or a value has the wrong type
    """
    known = {f.name: f.type for f in fields(DetectionThresholds)}
    unknown = sorted(set(values) - set(known))
    if unknown:
        raise ThresholdConfigError(f"Unknown threshold keys: {', '.join(unknown)}")

    overrides = {}
    for key, value in values.items():
        expected = known[key]
        if expected in (int, "int"):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ThresholdConfigError(f"{key} must be an integer, got {value!r}")
        elif isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ThresholdConfigError(f"{key} must be a number, got {value!r}")
        else:
            value = float(value)
        overrides[key] = value

    return replace(DEFAULT_THRESHOLDS, **overrides)


def load_thresholds(path) -> DetectionThresholds:
    """Load threshold overrides from a YAML or JSON file.

    Args:
        path: Path to a ``.yaml``, ``.yml`` or ``.json`` file with a top-level
            ``thresholds`` mapping

    Returns:
        DetectionThresholds with the overrides applied

    Raises:
        ThresholdConfigError: If the file is missing, unreadable or malformed
    """
    path = Path(path)
    if not path.exists():
        raise ThresholdConfigError("Thresholds file not found", str(path))

    suffix = path.suffix.lower()
    try:
        with open(path, "r", encoding="utf-8") as f:
            if suffix in [".yaml", ".yml"]:
                config = yaml.safe_load(f)
            elif suffix == ".json":
                config = json.load(f)
            else:
                raise ThresholdConfigError(f"Unsupported format: {suffix}", str(path))
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ThresholdConfigError(f"Could not parse thresholds file: {e}", str(path)) from e

    if not isinstance(config, dict) or not isinstance(config.get("thresholds"), dict):
        raise ThresholdConfigError("Thresholds file must contain a 'thresholds' mapping", str(path))

    thresholds = thresholds_from_mapping(config["thresholds"])
    logger.info("Loaded detection thresholds from %s", path)
    return thresholds


def thresholds_from_env() -> DetectionThresholds:
    """Load thresholds from the file named by FILE_FORENSIC_THRESHOLDS, if set."""
    path = os.environ.get(ENV_VAR_THRESHOLDS)
    if not path:
        return DEFAULT_THRESHOLDS
    return load_thresholds(path)


def resolve_thresholds(thresholds: Optional[DetectionThresholds] = None) -> DetectionThresholds:
    """Return the given thresholds, or the defaults when None."""
    return thresholds if thresholds is not None else DEFAULT_THRESHOLDS
