"""
Pydantic data models for static file forensic analysis.

This module defines all data structures produced by the forensic engine:
signature matches, container parsing results, file identification, entropy
classification, steganography, polyglot and payload findings, and the
evidence-weighted threat score.

Result models are frozen snapshots. They are created fresh for every analysis
call and never hold a reference to the analyzed buffer.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FileCategory(str, Enum):
    """Broad content category of an identified file type."""
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"
    ARCHIVE = "archive"
    EXECUTABLE = "executable"
    SCRIPT = "script"
    UNKNOWN = "unknown"


class MismatchSeverity(str, Enum):
    """Severity of a claimed-extension / detected-content mismatch."""
    NONE = "none"
    MINOR = "minor"
    SUSPICIOUS = "suspicious"
    CRITICAL = "critical"


class SteganographyRisk(str, Enum):
    """How commonly a format is used as a steganography carrier."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EntropyStatus(str, Enum):
    """Entropy classification against a per-type baseline."""
    NORMAL = "normal"
    HIGH = "high"
    LOW = "low"
    UNKNOWN = "unknown"


class PolyglotRisk(str, Enum):
    """Risk tier of a polyglot format combination."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PayloadType(str, Enum):
    """Kinds of embedded payload the payload hunter reports."""
    SHELLCODE = "shellcode"
    EXECUTABLE = "executable"
    BASE64_ENCODED = "base64_encoded"
    ENCRYPTED_BLOB = "encrypted_blob"
    SCRIPT = "script"


class IndicatorCategory(str, Enum):
    """Evidence category of a threat indicator."""
    HEADER = "header"
    ENTROPY = "entropy"
    STRUCTURE = "structure"
    CONTENT = "content"
    BEHAVIOR = "behavior"


class ThreatLevel(str, Enum):
    """Risk level derived from the normalized threat score."""
    SAFE = "safe"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FrozenModel(BaseModel):
    """Base for immutable analysis snapshots."""
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Signature matching and container parsing
# ---------------------------------------------------------------------------


class SignatureEntry(FrozenModel):
    """One entry of the static magic-byte table."""
    signature: str = Field(..., description="Hex byte pattern (e.g., 'FFD8FF')")
    offset: int = Field(0, description="Byte offset the pattern must appear at", ge=0)
    mask: Optional[str] = Field(None, description="Optional hex bitmask applied to both sides")
    file_type: str = Field(..., description="Detected type identifier")
    mime_type: str = Field(..., description="Canonical MIME type")
    confidence: int = Field(..., description="Base confidence (0-100)", ge=0, le=100)
    description: str = Field(..., description="Human-readable description")
    category: FileCategory = Field(..., description="Content category")

    @property
    def pattern(self) -> bytes:
        """Signature pattern as raw bytes."""
        return bytes.fromhex(self.signature)

    @property
    def mask_bytes(self) -> Optional[bytes]:
        """Bitmask as raw bytes, if the entry has one."""
        return bytes.fromhex(self.mask) if self.mask else None


class MagicMatch(FrozenModel):
    """A signature entry together with the offset at which it matched."""
    entry: SignatureEntry = Field(..., description="Matching signature entry")
    matched_at: int = Field(..., description="Offset where the pattern matched", ge=0)

    @property
    def file_type(self) -> str:
        return self.entry.file_type

    @property
    def confidence(self) -> int:
        return self.entry.confidence


class ContainerBox(FrozenModel):
    """A size-prefixed record of a box- or chunk-structured container."""
    size: int = Field(..., description="Declared record size in bytes", ge=0)
    box_type: str = Field(..., description="4-character type tag")
    offset: int = Field(..., description="Byte offset of the record", ge=0)


class FtypBox(FrozenModel):
    """Parsed ISOBMFF File Type box."""
    major_brand: str = Field(..., description="Major brand 4CC")
    minor_version: int = Field(..., description="Minor version number", ge=0)
    compatible_brands: List[str] = Field(default_factory=list, description="Compatible brand 4CCs")
    size: int = Field(..., description="Declared box size", ge=0)


class ContainerResult(FrozenModel):
    """Outcome of resolving a container family into a concrete type."""
    valid: bool = Field(..., description="Whether the container wrapper was parsed")
    container: str = Field(..., description="Container family ('isobmff' or 'riff')")
    major_brand: Optional[str] = Field(None, description="ISOBMFF major brand or RIFF sub-type")
    compatible_brands: List[str] = Field(default_factory=list, description="ISOBMFF compatible brands")
    file_type: Optional[str] = Field(None, description="Resolved type identifier")
    mime_type: Optional[str] = Field(None, description="Resolved MIME type")
    category: FileCategory = Field(FileCategory.UNKNOWN, description="Resolved category")
    description: Optional[str] = Field(None, description="Resolved human description")
    boxes: List[ContainerBox] = Field(default_factory=list, description="Top-level records walked")
    confidence: float = Field(0.0, description="Container parsing confidence (0-100)", ge=0.0, le=100.0)
    error: Optional[str] = Field(None, description="Why resolution failed")


# ---------------------------------------------------------------------------
# File identification
# ---------------------------------------------------------------------------


class ConfidenceBreakdown(FrozenModel):
    """Contribution of each identification layer to the final confidence."""
    magic_bytes: float = Field(0.0, description="Signature match contribution")
    container_parsing: float = Field(0.0, description="Container resolution contribution")
    extension_match: float = Field(0.0, description="Extension correlation contribution")


class FileIdentificationResult(FrozenModel):
    """Single typed identification result for a buffer."""
    identified_type: str = Field(..., description="Identified type identifier")
    mime_type: str = Field(..., description="Canonical MIME type")
    category: FileCategory = Field(..., description="Content category")
    confidence: float = Field(..., description="Identification confidence (0-100)", ge=0.0, le=100.0)
    confidence_breakdown: ConfidenceBreakdown = Field(default_factory=ConfidenceBreakdown)
    magic_matches: List[MagicMatch] = Field(default_factory=list, description="All signature matches")
    container_info: Optional[ContainerResult] = Field(None, description="Container resolution result")
    claimed_extension: str = Field("", description="Extension taken from the caller's filename")
    extension_mismatch: bool = Field(False, description="Whether the extension contradicts the content")
    mismatch_severity: MismatchSeverity = Field(MismatchSeverity.NONE)
    human_description: str = Field("", description="One-line description of the type")
    security_notes: List[str] = Field(default_factory=list, description="Identification security notes")


# ---------------------------------------------------------------------------
# Entropy baselines
# ---------------------------------------------------------------------------


class RiskProfile(FrozenModel):
    """What a format is able to carry."""
    can_contain_executable: bool = False
    can_contain_scripts: bool = False
    common_attack_vector: bool = False
    steganography_risk: SteganographyRisk = SteganographyRisk.LOW


class EntropyBaseline(FrozenModel):
    """Expected entropy range for one file type."""
    file_type: str = Field(..., description="Type identifier this baseline covers")
    min_entropy: float = Field(..., description="Lowest expected entropy", ge=0.0, le=8.0)
    max_entropy: float = Field(..., description="Highest expected entropy", ge=0.0, le=8.0)
    typical_entropy: float = Field(..., description="Typical entropy", ge=0.0, le=8.0)
    explanation: str = Field(..., description="Why this range is expected")
    known_sections: List[str] = Field(default_factory=list, description="Structural sections of the format")
    risk_profile: RiskProfile = Field(default_factory=RiskProfile)


class EntropyClassification(FrozenModel):
    """Entropy judged against the identified type's baseline."""
    has_baseline: bool = Field(..., description="Whether a baseline existed for the type")
    status: EntropyStatus = Field(..., description="normal / high / low / unknown")
    entropy: float = Field(0.0, description="Measured Shannon entropy", ge=0.0)
    deviation: float = Field(0.0, description="Distance from typical (normal) or from the violated bound", ge=0.0)
    explanation: str = Field("", description="Human-readable explanation")
    suspicious: bool = Field(False, description="Only true for entropy above the baseline maximum")


class EntropyInterpretation(FrozenModel):
    """Baseline-free interpretation of a raw entropy value."""
    score: float = Field(..., ge=0.0)
    interpretation: str
    suspicious: bool = False


# ---------------------------------------------------------------------------
# Content inspectors
# ---------------------------------------------------------------------------


class SteganographyTechnique(FrozenModel):
    """One steganography technique that fired."""
    name: str
    confidence: int = Field(..., ge=0, le=100)
    description: str
    evidence: List[str] = Field(default_factory=list)


class ExtractedHiddenData(FrozenModel):
    """Data recovered by the steganography detector."""
    text_messages: List[str] = Field(default_factory=list, description="Recovered text messages")
    raw_data_samples: List[str] = Field(default_factory=list, description="Bounded hex previews of hidden bytes")
    total_hidden_bytes: int = Field(0, ge=0)
    data_locations: List[str] = Field(default_factory=list, description="Where hidden data was found")


class SteganographyResult(FrozenModel):
    """Aggregate steganography detection result."""
    detected: bool
    confidence: int = Field(0, ge=0, le=100, description="Maximum technique confidence")
    techniques: List[SteganographyTechnique] = Field(default_factory=list)
    analysis: str = Field("", description="Summary report")
    extracted_data: Optional[ExtractedHiddenData] = None


class PolyglotResult(FrozenModel):
    """Whether a buffer is simultaneously valid as several formats."""
    is_polyglot: bool
    valid_formats: List[str] = Field(default_factory=list)
    confidence: int = Field(0, ge=0, le=100)
    security_risk: PolyglotRisk = PolyglotRisk.LOW
    description: str = ""
    dangerous_combinations: List[str] = Field(default_factory=list)


class EmbeddedPayload(FrozenModel):
    """A payload found inside the buffer."""
    payload_type: PayloadType
    offset: int = Field(..., ge=0)
    size: int = Field(..., ge=0)
    confidence: int = Field(..., ge=0, le=100)
    preview: str = Field("", description="Bounded preview (hex or text)")
    analysis: str = ""


class PayloadAnalysis(FrozenModel):
    """All payloads found plus an aggregate risk number."""
    found_payloads: List[EmbeddedPayload] = Field(default_factory=list)
    overall_risk: float = Field(0.0, ge=0.0, le=100.0)
    summary: str = ""


# ---------------------------------------------------------------------------
# Structure scan and scoring
# ---------------------------------------------------------------------------


class StructureFindings(FrozenModel):
    """Raw structural findings: strings, code-like patterns, section markers."""
    preview: str = Field("", description="Text preview or hex summary of the first KiB")
    strings_count: int = Field(0, ge=0, description="Number of printable strings extracted")
    apis: List[str] = Field(default_factory=list, description="Suspicious API / command patterns found")
    sections: List[str] = Field(default_factory=list, description="Executable section markers found")


class ThreatIndicator(FrozenModel):
    """One weighted piece of evidence. Negative weight means benign."""
    id: str = Field(..., description="Stable indicator identifier")
    name: str
    category: IndicatorCategory
    weight: float = Field(..., ge=-100.0, le=100.0)
    confidence: float = Field(..., ge=0.0, le=100.0)
    description: str = ""


class ThreatScore(FrozenModel):
    """Evidence-weighted threat score."""
    raw_score: float = Field(..., description="Sum of weight * confidence / 100")
    normalized_score: float = Field(..., ge=0.0, le=100.0)
    risk_level: ThreatLevel
    indicators: List[ThreatIndicator] = Field(default_factory=list)
    explanation: str = ""


class FileInfo(FrozenModel):
    """Basic facts about the analyzed buffer."""
    filename: str = Field(..., description="Caller-supplied filename")
    sha256: str = Field(..., min_length=64, max_length=64)
    md5: str = Field(..., min_length=32, max_length=32)
    file_size_bytes: int = Field(..., ge=0)
    entropy: float = Field(..., ge=0.0, le=8.0, description="Shannon entropy of the whole buffer")


class ForensicReport(FrozenModel):
    """Complete output of one static forensic analysis."""
    file_info: FileInfo
    identification: FileIdentificationResult
    entropy: EntropyClassification
    structure: StructureFindings
    steganography: SteganographyResult
    polyglot: PolyglotResult
    payloads: PayloadAnalysis
    threat_score: ThreatScore = Field(..., description="Score from identification, entropy and structure")
    content_indicators: List[ThreatIndicator] = Field(
        default_factory=list,
        description="Indicators derived from the content inspectors",
    )
    combined_score: ThreatScore = Field(..., description="Score over core and content indicators")
    recommendations: List[str] = Field(default_factory=list)
    analysis_errors: List[Dict[str, str]] = Field(
        default_factory=list,
        description="Inspector failures recorded while the analysis degraded",
    )
    analysis_timestamp: datetime = Field(default_factory=datetime.now)
    analyzer_version: str = Field(..., description="Version of the forensic analyzer")
