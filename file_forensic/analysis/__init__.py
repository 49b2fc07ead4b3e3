"""
Analysis layers for static file forensics.

This package provides:
- File type identification with container resolution and extension checks
- Entropy classification against per-format baselines
- Steganography, polyglot and embedded-payload inspectors
- Evidence-weighted threat scoring
- Tunable detection thresholds
"""

from file_forensic.analysis.thresholds import (
    DEFAULT_THRESHOLDS,
    DetectionThresholds,
    load_thresholds,
    thresholds_from_env,
)
from file_forensic.analysis.identifier import FileIdentifier, identify_file
from file_forensic.analysis.baselines import (
    FORMAT_BASELINES,
    EntropyBaselineAnalyzer,
    analyze_entropy_against_baseline,
    get_baseline,
    interpret_entropy,
)
from file_forensic.analysis.lsb import extract_lsb_message
from file_forensic.analysis.steganography import SteganographyDetector, try_extract_text
from file_forensic.analysis.polyglot import PolyglotDetector, detect_polyglot
from file_forensic.analysis.payloads import PayloadHunter
from file_forensic.analysis.threat import (
    ThreatScorer,
    build_recommendations,
    score_indicators,
)

__all__ = [
    # Thresholds
    "DetectionThresholds",
    "DEFAULT_THRESHOLDS",
    "load_thresholds",
    "thresholds_from_env",
    # Identification
    "FileIdentifier",
    "identify_file",
    # Entropy
    "FORMAT_BASELINES",
    "EntropyBaselineAnalyzer",
    "get_baseline",
    "analyze_entropy_against_baseline",
    "interpret_entropy",
    # Inspectors
    "extract_lsb_message",
    "SteganographyDetector",
    "try_extract_text",
    "PolyglotDetector",
    "detect_polyglot",
    "PayloadHunter",
    # Scoring
    "ThreatScorer",
    "score_indicators",
    "build_recommendations",
]
