"""
Format-aware entropy baselines.

Raw entropy is a poor malware signal on its own: JPEG, HEIC and ZIP data are
compressed and sit close to 8.0 bits per byte. This module compares
a measured entropy against the range expected for the identified type so
that only entropy *above* the format's normal ceiling is flagged.

Classification rules:
    - inside [min, max]  -> normal, deviation = |entropy - typical|
    - above max          -> high, suspicious, deviation = entropy - max
    - below min          -> low, never suspicious, deviation = min - entropy
    - no baseline        -> unknown, not suspicious
"""

import logging
from types import MappingProxyType
from typing import Optional

from file_forensic.models import (
    EntropyBaseline,
    EntropyClassification,
    EntropyInterpretation,
    EntropyStatus,
    RiskProfile,
    SteganographyRisk,
)

logger = logging.getLogger(__name__)

_STEGO_HIGH = SteganographyRisk.HIGH
_STEGO_MEDIUM = SteganographyRisk.MEDIUM
_STEGO_LOW = SteganographyRisk.LOW


def _baseline(file_type, min_entropy, max_entropy, typical, explanation, sections, risk):
    return EntropyBaseline(
        file_type=file_type,
        min_entropy=min_entropy,
        max_entropy=max_entropy,
        typical_entropy=typical,
        explanation=explanation,
        known_sections=list(sections),
        risk_profile=risk,
    )


_INERT_HIGH_STEGO = RiskProfile(steganography_risk=_STEGO_HIGH)
_INERT_MEDIUM_STEGO = RiskProfile(steganography_risk=_STEGO_MEDIUM)
_INERT = RiskProfile()
_MEDIA_WITH_SCRIPTS = RiskProfile(can_contain_scripts=True)
_ATTACK_VECTOR = RiskProfile(
    can_contain_executable=True,
    can_contain_scripts=True,
    common_attack_vector=True,
)

FORMAT_BASELINES = MappingProxyType({
    # Compressed images
    "jpeg": _baseline(
        "jpeg", 7.0, 7.99, 7.5,
        "JPEG uses DCT compression which produces high entropy. "
        "Values of 7-8 are completely normal and expected.",
        ("SOI", "APP0", "DQT", "SOF", "DHT", "SOS", "EOI"),
        _INERT_HIGH_STEGO,
    ),
    "png": _baseline(
        "png", 6.5, 7.95, 7.2,
        "PNG uses DEFLATE compression resulting in high entropy. Values of 6.5-8 are normal.",
        ("IHDR", "PLTE", "IDAT", "IEND"),
        _INERT_HIGH_STEGO,
    ),
    "heic": _baseline(
        "heic", 7.2, 7.99, 7.7,
        "HEIC uses HEVC (H.265) compression which is extremely efficient and produces "
        "very high entropy. Values of 7.2-8 are completely normal and expected for this "
        "modern format.",
        ("ftyp", "meta", "mdat", "moov"),
        _INERT_MEDIUM_STEGO,
    ),
    "heif": _baseline(
        "heif", 7.2, 7.99, 7.7,
        "HEIF uses advanced compression producing very high entropy. "
        "Values of 7.2-8 are completely normal.",
        ("ftyp", "meta", "mdat"),
        _INERT_MEDIUM_STEGO,
    ),
    "avif": _baseline(
        "avif", 7.3, 7.99, 7.8,
        "AVIF uses AV1 compression which is state-of-the-art and produces extremely "
        "high entropy. Values of 7.3-8 are completely normal and expected.",
        ("ftyp", "meta", "mdat"),
        _INERT_MEDIUM_STEGO,
    ),
    "webp": _baseline(
        "webp", 7.0, 7.95, 7.4,
        "WebP uses VP8/VP8L compression producing high entropy. Values of 7-8 are normal.",
        ("RIFF", "WEBP", "VP8", "VP8L", "VP8X"),
        _INERT_MEDIUM_STEGO,
    ),
    "gif": _baseline(
        "gif", 5.0, 7.5, 6.0,
        "GIF uses LZW compression which is less efficient than modern formats. "
        "Entropy of 5-7.5 is normal.",
        (),
        _INERT_MEDIUM_STEGO,
    ),
    "bmp": _baseline(
        "bmp", 3.0, 7.0, 5.0,
        "BMP is typically uncompressed or lightly compressed. "
        "Entropy of 3-7 is normal, higher if compressed.",
        (),
        _INERT,
    ),
    # Video
    "mp4": _baseline(
        "mp4", 7.0, 7.99, 7.6,
        "MP4 uses H.264/H.265 compression producing high entropy. Values of 7-8 are normal.",
        ("ftyp", "moov", "mdat"),
        _MEDIA_WITH_SCRIPTS,
    ),
    "mov": _baseline(
        "mov", 7.0, 7.99, 7.5,
        "QuickTime MOV uses compression producing high entropy. Values of 7-8 are normal.",
        ("ftyp", "moov", "mdat"),
        _MEDIA_WITH_SCRIPTS,
    ),
    # Audio
    "mp3": _baseline(
        "mp3", 6.8, 7.95, 7.3,
        "MP3 uses lossy compression producing high entropy. Values of 6.8-8 are normal.",
        (),
        _INERT,
    ),
    "flac": _baseline(
        "flac", 6.5, 7.8, 7.0,
        "FLAC uses lossless compression. Entropy of 6.5-7.8 is normal.",
        (),
        _INERT,
    ),
    # Archives
    "zip": _baseline(
        "zip", 7.0, 7.99, 7.5,
        "ZIP compression results in high entropy. Values of 7-8 are normal for compressed archives.",
        ("Local Header", "Central Directory", "EOCD"),
        _ATTACK_VECTOR,
    ),
    "rar": _baseline(
        "rar", 7.0, 7.99, 7.6,
        "RAR compression produces high entropy. Values of 7-8 are normal.",
        (),
        _ATTACK_VECTOR,
    ),
    # Executables
    "pe": _baseline(
        "pe", 4.0, 7.8, 5.5,
        "PE executables vary widely. Unpacked: 4-6, Packed/encrypted: 7+. "
        "High entropy MAY indicate packing/encryption.",
        ("DOS Header", "PE Header", ".text", ".data", ".rdata", ".rsrc"),
        _ATTACK_VECTOR,
    ),
    "elf": _baseline(
        "elf", 4.0, 7.8, 5.0,
        "ELF executables vary. Unpacked: 4-6, Packed/encrypted: 7+. "
        "High entropy MAY indicate packing.",
        (".text", ".data", ".bss", ".rodata"),
        _ATTACK_VECTOR,
    ),
    # Documents
    "pdf": _baseline(
        "pdf", 3.0, 7.8, 5.0,
        "PDF entropy varies with content. Text-heavy: 3-5, Image-heavy/compressed: 6-7.8.",
        ("%PDF", "obj", "endobj", "xref", "%%EOF"),
        RiskProfile(
            can_contain_executable=True,
            can_contain_scripts=True,
            common_attack_vector=True,
            steganography_risk=_STEGO_MEDIUM,
        ),
    ),
})


def get_baseline(file_type: str) -> Optional[EntropyBaseline]:
    """Return the entropy baseline for a type, or None if there is none."""
    return FORMAT_BASELINES.get(file_type)


def analyze_entropy_against_baseline(file_type: str, entropy: float) -> EntropyClassification:
    """Classify a measured entropy against the type's expected range.

    Args:
        file_type: Identified type identifier
        entropy: Measured Shannon entropy (bits per byte)

    Returns:
        EntropyClassification
    """
    baseline = get_baseline(file_type)
    if baseline is None:
        return EntropyClassification(
            has_baseline=False,
            status=EntropyStatus.UNKNOWN,
            entropy=entropy,
            deviation=0.0,
            explanation=(
                f'No baseline available for file type "{file_type}". '
                "Unable to determine if entropy is normal."
            ),
            suspicious=False,
        )

    low, high = baseline.min_entropy, baseline.max_entropy

    if low <= entropy <= high:
        return EntropyClassification(
            has_baseline=True,
            status=EntropyStatus.NORMAL,
            entropy=entropy,
            deviation=abs(entropy - baseline.typical_entropy),
            explanation=(
                f"Entropy {entropy:.2f} is within expected range ({low:.2f}-{high:.2f}) "
                f"for {file_type}. {baseline.explanation}"
            ),
            suspicious=False,
        )

    if entropy > high:
        logger.debug("Entropy %.3f above %s maximum %.2f", entropy, file_type, high)
        return EntropyClassification(
            has_baseline=True,
            status=EntropyStatus.HIGH,
            entropy=entropy,
            deviation=entropy - high,
            explanation=(
                f"Entropy {entropy:.2f} is ABOVE expected maximum ({high:.2f}) for {file_type}. "
                "This may indicate additional encryption, obfuscation, or embedded "
                "encrypted data beyond normal compression."
            ),
            suspicious=True,
        )

    # Low entropy is not treated as a security concern
    return EntropyClassification(
        has_baseline=True,
        status=EntropyStatus.LOW,
        entropy=entropy,
        deviation=low - entropy,
        explanation=(
            f"Entropy {entropy:.2f} is BELOW expected minimum ({low:.2f}) for {file_type}. "
            "This may indicate incomplete compression, corrupted data, or unusual content."
        ),
        suspicious=False,
    )


def interpret_entropy(entropy: float) -> EntropyInterpretation:
    """Baseline-free interpretation of a raw entropy value."""
    if entropy >= 7.5:
        return EntropyInterpretation(
            score=entropy,
            interpretation="Very high entropy - likely encrypted, compressed, or obfuscated",
            suspicious=True,
        )
    if entropy >= 6.5:
        return EntropyInterpretation(
            score=entropy,
            interpretation="High entropy - possible compression or binary data",
        )
    if entropy >= 4.5:
        return EntropyInterpretation(
            score=entropy,
            interpretation="Medium entropy - mixed content or structured data",
        )
    return EntropyInterpretation(
        score=entropy,
        interpretation="Low entropy - likely text or simple structured data",
    )


class EntropyBaselineAnalyzer:
    """Classifies entropy against the static per-format baseline table."""

    def classify(self, file_type: str, entropy: float) -> EntropyClassification:
        return analyze_entropy_against_baseline(file_type, entropy)

    def baseline_for(self, file_type: str) -> Optional[EntropyBaseline]:
        return get_baseline(file_type)
