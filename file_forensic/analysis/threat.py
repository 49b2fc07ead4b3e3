"""
Evidence-weighted threat scoring.

Every piece of evidence becomes a ThreatIndicator with a signed weight
(negative = benign, positive = threat) and a confidence. The raw score is
the confidence-scaled sum of weights; it is centered at 50 and clamped to
the 0-100 range:

    raw        = sum(weight * confidence / 100)
    normalized = clamp(50 + raw * 0.5, 0, 100)

Risk level thresholds on the normalized score:
    SAFE < 20 <= LOW < 35 <= MEDIUM < 55 <= HIGH < 75 <= CRITICAL
"""

import logging
from typing import Iterable, List, Optional, Sequence

from file_forensic.models import (
    EntropyClassification,
    EntropyStatus,
    FileCategory,
    FileIdentificationResult,
    IndicatorCategory,
    MismatchSeverity,
    PayloadAnalysis,
    PayloadType,
    PolyglotResult,
    PolyglotRisk,
    SteganographyResult,
    StructureFindings,
    ThreatIndicator,
    ThreatLevel,
    ThreatScore,
)

logger = logging.getLogger(__name__)

SAFE_MEDIA_TYPES = frozenset({
    "jpeg", "png", "gif", "bmp", "heic", "heif", "avif", "webp", "mp3", "flac", "wav",
})
# Types for which API / command references are expected content
CODE_BEARING_TYPES = frozenset({"pe", "elf", "macho", "script", "html", "pdf"})
DOUBLE_EXTENSION_EXECUTABLES = frozenset({"exe", "dll", "com", "bat", "cmd", "ps1", "sh", "scr"})


def score_to_level(normalized: float) -> ThreatLevel:
    """Map a normalized 0-100 score to a ThreatLevel."""
    if normalized < ThreatScorer.LEVEL_THRESHOLDS[ThreatLevel.LOW]:
        return ThreatLevel.SAFE
    elif normalized < ThreatScorer.LEVEL_THRESHOLDS[ThreatLevel.MEDIUM]:
        return ThreatLevel.LOW
    elif normalized < ThreatScorer.LEVEL_THRESHOLDS[ThreatLevel.HIGH]:
        return ThreatLevel.MEDIUM
    elif normalized < ThreatScorer.LEVEL_THRESHOLDS[ThreatLevel.CRITICAL]:
        return ThreatLevel.HIGH
    return ThreatLevel.CRITICAL


def explain_score(indicators: Sequence[ThreatIndicator], level: ThreatLevel, normalized: float) -> str:
    """List benign and risk indicators behind a score."""
    benign = [i for i in indicators if i.weight < 0]
    risky = [i for i in indicators if i.weight > 0]

    lines = [f"Threat Level: {level.value.upper()} (score: {normalized:.0f}/100)", ""]
    if benign:
        lines.append(f"Benign Indicators ({len(benign)}):")
        lines.extend(f"  - {i.name}" for i in benign)
        lines.append("")
    if risky:
        lines.append(f"Risk Indicators ({len(risky)}):")
        lines.extend(f"  - {i.name} (weight: +{i.weight:g})" for i in risky)
        lines.append("")
    else:
        lines.append("No significant risk indicators detected. File appears to be legitimate.")
    return "\n".join(lines).rstrip()


def score_indicators(indicators: Iterable[ThreatIndicator]) -> ThreatScore:
    """Compute a ThreatScore from an arbitrary indicator list."""
    indicators = list(indicators)
    raw = sum(i.weight * i.confidence / 100 for i in indicators)
    normalized = max(0.0, min(100.0, 50 + raw * 0.5))
    level = score_to_level(normalized)
    return ThreatScore(
        raw_score=raw,
        normalized_score=normalized,
        risk_level=level,
        indicators=indicators,
        explanation=explain_score(indicators, level, normalized),
    )


class ThreatScorer:
    """
    Builds threat indicators from identification, entropy and structure
    findings, and scores them.

    Weights are class-level so subclasses can tune them.
    """

    MISMATCH_WEIGHTS = {
        MismatchSeverity.NONE: 0,
        MismatchSeverity.MINOR: 10,
        MismatchSeverity.SUSPICIOUS: 40,
        MismatchSeverity.CRITICAL: 80,
    }

    POLYGLOT_WEIGHTS = {
        PolyglotRisk.LOW: 10,
        PolyglotRisk.MEDIUM: 30,
        PolyglotRisk.HIGH: 55,
        PolyglotRisk.CRITICAL: 80,
    }

    LEVEL_THRESHOLDS = {
        ThreatLevel.LOW: 20,
        ThreatLevel.MEDIUM: 35,
        ThreatLevel.HIGH: 55,
        ThreatLevel.CRITICAL: 75,
    }

    STEGANOGRAPHY_WEIGHT = 40
    EXECUTABLE_PAYLOAD_WEIGHT = 60
    OTHER_PAYLOAD_WEIGHT = 35

    def score(
        self,
        identification: FileIdentificationResult,
        entropy: EntropyClassification,
        structure: StructureFindings,
        filename: str = "",
        extra_indicators: Sequence[ThreatIndicator] = (),
    ) -> ThreatScore:
        """
        Score the core evidence for one buffer.

        Args:
            identification: File identification result
            entropy: Entropy classification against the type baseline
            structure: Raw structural findings
            filename: Caller-supplied filename (for double extensions)
            extra_indicators: Additional indicators appended after the core set

        Returns:
            ThreatScore
        """
        indicators = self.core_indicators(identification, entropy, structure, filename)
        indicators.extend(extra_indicators)
        result = score_indicators(indicators)
        logger.debug(
            "Threat score %.1f (%s) from %d indicators",
            result.normalized_score, result.risk_level.value, len(indicators),
        )
        return result

    def core_indicators(
        self,
        identification: FileIdentificationResult,
        entropy: EntropyClassification,
        structure: StructureFindings,
        filename: str = "",
    ) -> List[ThreatIndicator]:
        """Evaluate the fixed rule set; benign rules first, then risk rules."""
        ident = identification
        file_type = ident.identified_type
        indicators: List[ThreatIndicator] = []

        # Benign evidence
        if ident.confidence > 90:
            indicators.append(ThreatIndicator(
                id="high_confidence_format",
                name="High Confidence Format Match",
                category=IndicatorCategory.HEADER,
                weight=-20,
                confidence=ident.confidence,
                description=f'File type "{file_type}" identified with {ident.confidence:.0f}% confidence',
            ))

        if entropy.has_baseline and entropy.status == EntropyStatus.NORMAL:
            indicators.append(ThreatIndicator(
                id="normal_entropy",
                name="Normal Entropy for Format",
                category=IndicatorCategory.ENTROPY,
                weight=-15,
                confidence=95,
                description=entropy.explanation,
            ))

        if not ident.extension_mismatch:
            indicators.append(ThreatIndicator(
                id="extension_match",
                name="Extension Matches Content",
                category=IndicatorCategory.HEADER,
                weight=-10,
                confidence=100,
                description="File extension is consistent with detected content type",
            ))

        if file_type in SAFE_MEDIA_TYPES and ident.confidence > 85:
            indicators.append(ThreatIndicator(
                id="known_safe_format",
                name="Known Safe Media Format",
                category=IndicatorCategory.HEADER,
                weight=-15,
                confidence=90,
                description=f"{file_type.upper()} is a standard media format that cannot execute code",
            ))

        # Risk evidence
        if ident.extension_mismatch:
            indicators.append(ThreatIndicator(
                id="extension_mismatch",
                name="Extension/Content Mismatch",
                category=IndicatorCategory.HEADER,
                weight=self.MISMATCH_WEIGHTS.get(ident.mismatch_severity, 10),
                confidence=95,
                description=(
                    f'File claims to be "{ident.claimed_extension}" but content is '
                    f'"{file_type}" (severity: {ident.mismatch_severity.value})'
                ),
            ))

        if structure.apis:
            shown = ", ".join(structure.apis[:3])
            if file_type not in CODE_BEARING_TYPES:
                indicators.append(ThreatIndicator(
                    id="unexpected_apis",
                    name="Unexpected API/Code Patterns",
                    category=IndicatorCategory.CONTENT,
                    weight=60,
                    confidence=80,
                    description=(
                        f"Found {len(structure.apis)} suspicious code pattern(s) in "
                        f"{ident.category.value} file: {shown}"
                    ),
                ))
            elif file_type == "pdf":
                indicators.append(ThreatIndicator(
                    id="pdf_with_scripts",
                    name="PDF Contains Scripts/APIs",
                    category=IndicatorCategory.CONTENT,
                    weight=35,
                    confidence=75,
                    description=f"PDF contains: {shown}",
                ))

        if entropy.has_baseline and entropy.status == EntropyStatus.HIGH:
            indicators.append(ThreatIndicator(
                id="abnormal_high_entropy",
                name="Abnormally High Entropy",
                category=IndicatorCategory.ENTROPY,
                weight=25,
                confidence=70,
                description=entropy.explanation,
            ))

        if file_type == "unknown":
            indicators.append(ThreatIndicator(
                id="unknown_type",
                name="Unknown File Type",
                category=IndicatorCategory.HEADER,
                weight=5,
                confidence=50,
                description=(
                    "File type could not be identified from signature. This may be a "
                    "legitimate rare format or corrupted file."
                ),
            ))

        if ident.category == FileCategory.EXECUTABLE:
            indicators.append(ThreatIndicator(
                id="executable_file",
                name="Executable File Type",
                category=IndicatorCategory.HEADER,
                weight=30,
                confidence=100,
                description=f"File is an executable ({file_type}). Requires scrutiny.",
            ))

        parts = filename.split(".") if filename else []
        if len(parts) > 2 and parts[-2].lower() in DOUBLE_EXTENSION_EXECUTABLES:
            indicators.append(ThreatIndicator(
                id="double_extension",
                name="Double Extension Attack Pattern",
                category=IndicatorCategory.HEADER,
                weight=70,
                confidence=90,
                description=(
                    f"File uses double extension pattern ({'.'.join(parts[-2:])}) "
                    "commonly used to disguise executables"
                ),
            ))

        if structure.sections and file_type != "pe":
            indicators.append(ThreatIndicator(
                id="unexpected_pe_sections",
                name="PE Sections in Non-Executable",
                category=IndicatorCategory.STRUCTURE,
                weight=65,
                confidence=85,
                description=(
                    "File contains PE executable sections but is not identified as a PE "
                    "file. Possible polyglot or embedded executable."
                ),
            ))

        return indicators

    def content_indicators(
        self,
        steganography: Optional[SteganographyResult] = None,
        polyglot: Optional[PolyglotResult] = None,
        payloads: Optional[PayloadAnalysis] = None,
    ) -> List[ThreatIndicator]:
        """Convert content inspector results into indicators."""
        indicators: List[ThreatIndicator] = []

        if steganography is not None and steganography.detected:
            names = ", ".join(t.name for t in steganography.techniques)
            indicators.append(ThreatIndicator(
                id="steganography_detected",
                name="Hidden Data Detected",
                category=IndicatorCategory.CONTENT,
                weight=self.STEGANOGRAPHY_WEIGHT,
                confidence=steganography.confidence,
                description=f"Steganography techniques fired: {names}",
            ))

        if polyglot is not None and polyglot.is_polyglot:
            indicators.append(ThreatIndicator(
                id="polyglot_file",
                name="Polyglot File",
                category=IndicatorCategory.STRUCTURE,
                weight=self.POLYGLOT_WEIGHTS[polyglot.security_risk],
                confidence=polyglot.confidence,
                description=(
                    f"Valid as {', '.join(polyglot.valid_formats)} "
                    f"(risk: {polyglot.security_risk.value})"
                ),
            ))

        if payloads is not None and payloads.found_payloads:
            executable = any(
                p.payload_type in (PayloadType.EXECUTABLE, PayloadType.SHELLCODE)
                for p in payloads.found_payloads
            )
            indicators.append(ThreatIndicator(
                id="embedded_payloads",
                name="Embedded Payloads",
                category=IndicatorCategory.BEHAVIOR,
                weight=self.EXECUTABLE_PAYLOAD_WEIGHT if executable else self.OTHER_PAYLOAD_WEIGHT,
                confidence=payloads.overall_risk,
                description=payloads.summary,
            ))

        return indicators


RECOMMENDATIONS = {
    ThreatLevel.SAFE: [
        "[OK] No action required. File content matches its declared type.",
    ],
    ThreatLevel.LOW: [
        "[INFO] File appears benign. Standard handling procedures apply.",
    ],
    ThreatLevel.MEDIUM: [
        "[WARN] Review the listed risk indicators before opening the file.",
        "[WARN] Open only in an isolated environment if the source is untrusted.",
    ],
    ThreatLevel.HIGH: [
        "[HIGH] Do not open the file on a production system.",
        "[HIGH] Submit the file for sandbox analysis before further handling.",
    ],
    ThreatLevel.CRITICAL: [
        "[CRITICAL] Quarantine the file immediately.",
        "[CRITICAL] Treat the file as malicious until proven otherwise.",
        "[CRITICAL] Preserve the original bytes and hashes for incident response.",
    ],
}

LOW_CONFIDENCE_THRESHOLD = 70


def build_recommendations(
    level: ThreatLevel,
    identification: Optional[FileIdentificationResult] = None,
) -> List[str]:
    """Fixed per-level recommendations plus identification caveats."""
    recommendations = list(RECOMMENDATIONS[level])
    if identification is not None and identification.confidence < LOW_CONFIDENCE_THRESHOLD:
        recommendations.append(
            f"[INFO] File type identification confidence is low "
            f"({identification.confidence:.0f}%); verify the format manually."
        )
    return recommendations
