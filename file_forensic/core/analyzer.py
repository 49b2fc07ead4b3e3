"""Main forensic analyzer for arbitrary file buffers.

This module runs the complete static pipeline over one immutable buffer:

1. File identification (signatures, containers, extension correlation)
2. Entropy classification against the identified type's baseline
3. Raw structure scan (strings, API references, section markers)
4. Content inspectors (steganography, polyglot, embedded payloads)
5. Threat scoring and recommendations

Identification always runs first; every later stage depends on the
identified type.
"""

import hashlib
import logging
import traceback
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from file_forensic import __version__
from file_forensic.analysis.baselines import EntropyBaselineAnalyzer
from file_forensic.analysis.identifier import FileIdentifier
from file_forensic.analysis.payloads import PayloadHunter
from file_forensic.analysis.polyglot import PolyglotDetector
from file_forensic.analysis.steganography import SteganographyDetector
from file_forensic.analysis.threat import ThreatScorer, build_recommendations, score_indicators
from file_forensic.analysis.thresholds import DetectionThresholds, resolve_thresholds
from file_forensic.models import (
    FileInfo,
    ForensicReport,
    PayloadAnalysis,
    PolyglotResult,
    SteganographyResult,
)
from file_forensic.parsers.entropy import shannon_entropy
from file_forensic.parsers.structure import scan_structure
from file_forensic.utils.buffers import BytesLike, coerce_buffer
from file_forensic.utils.exceptions import FileReadError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, str, str], None]


class ForensicAnalyzer:
    """Runs every analysis layer over a buffer and builds a ForensicReport.

    The analyzer holds only configuration; each call builds fresh results, so
    one instance may be shared across threads.
    """

    def __init__(
        self,
        thresholds: Optional[DetectionThresholds] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        """Initialize the analyzer.

        Args:
            thresholds: Optional detection threshold overrides
            progress_callback: Optional callback for progress updates.
                Signature: callback(step: str, status: str, message: str)
                step: Current analysis step name
                status: "start", "complete", "error"
                message: Human-readable description
        """
        self.thresholds = resolve_thresholds(thresholds)
        self._progress_callback = progress_callback

        self.identifier = FileIdentifier()
        self.baseline_analyzer = EntropyBaselineAnalyzer()
        self.polyglot_detector = PolyglotDetector()
        self.scorer = ThreatScorer()

    def _report_progress(self, step: str, status: str, message: str) -> None:
        if self._progress_callback:
            try:
                self._progress_callback(step, status, message)
            except Exception as e:
                logger.warning("Progress callback failed at %s: %s", step, e)

    def analyze(self, file_path) -> ForensicReport:
        """Read a file from disk and analyze its content.

        Args:
            file_path: Path to the file to analyze

        Returns:
            ForensicReport

        Raises:
            FileReadError: If the file does not exist or cannot be read
        """
        file_path = Path(file_path)
        if not file_path.is_file():
            raise FileReadError(str(file_path), "not a regular file or does not exist")
        try:
            data = file_path.read_bytes()
        except OSError as e:
            raise FileReadError(str(file_path), str(e)) from e
        return self.analyze_bytes(data, file_path.name)

    def analyze_bytes(self, data: BytesLike, filename: str = "") -> ForensicReport:
        """Analyze an in-memory buffer.

        Args:
            data: Raw file content
            filename: Caller-supplied filename (only its extension and
                double-extension pattern are used)

        Returns:
            ForensicReport
        """
        data = coerce_buffer(data)
        errors: List[Dict[str, str]] = []

        self._report_progress("file_info", "start", "Hashing buffer")
        entropy_value = shannon_entropy(data)
        file_info = FileInfo(
            filename=filename,
            sha256=hashlib.sha256(data).hexdigest(),
            md5=hashlib.md5(data).hexdigest(),
            file_size_bytes=len(data),
            entropy=entropy_value,
        )
        self._report_progress("file_info", "complete", f"SHA-256: {file_info.sha256[:16]}...")

        self._report_progress("identify", "start", "Identifying file type")
        identification = self.identifier.identify(data, filename)
        file_type = identification.identified_type
        self._report_progress(
            "identify", "complete",
            f"{file_type} ({identification.confidence:.0f}% confidence)",
        )

        self._report_progress("entropy", "start", "Classifying entropy against baseline")
        entropy = self.baseline_analyzer.classify(file_type, entropy_value)
        self._report_progress("entropy", "complete", f"{entropy_value:.2f} ({entropy.status.value})")

        self._report_progress("structure", "start", "Scanning structure")
        structure = scan_structure(data)
        self._report_progress(
            "structure", "complete",
            f"{structure.strings_count} strings, {len(structure.apis)} suspicious patterns",
        )

        steganography = self._run_inspector(
            "steganography",
            lambda: SteganographyDetector(file_type, self.thresholds).detect(data),
            lambda: SteganographyResult(detected=False, analysis="No steganography detected."),
            errors,
        )
        polyglot = self._run_inspector(
            "polyglot",
            lambda: self.polyglot_detector.detect(data),
            lambda: PolyglotResult(is_polyglot=False, description="File is not a polyglot."),
            errors,
        )
        payloads = self._run_inspector(
            "payloads",
            lambda: PayloadHunter(file_type, self.thresholds).hunt(data),
            lambda: PayloadAnalysis(summary="No embedded payloads detected."),
            errors,
        )

        self._report_progress("score", "start", "Scoring threat indicators")
        core_indicators = self.scorer.core_indicators(identification, entropy, structure, filename)
        threat_score = score_indicators(core_indicators)
        content = self.scorer.content_indicators(steganography, polyglot, payloads)
        combined = score_indicators(core_indicators + content)
        self._report_progress(
            "score", "complete",
            f"{combined.risk_level.value.upper()} ({combined.normalized_score:.0f}/100)",
        )

        return ForensicReport(
            file_info=file_info,
            identification=identification,
            entropy=entropy,
            structure=structure,
            steganography=steganography,
            polyglot=polyglot,
            payloads=payloads,
            threat_score=threat_score,
            content_indicators=content,
            combined_score=combined,
            recommendations=build_recommendations(combined.risk_level, identification),
            analysis_errors=errors,
            analyzer_version=__version__,
        )

    def _run_inspector(
        self,
        step: str,
        run: Callable[[], Any],
        empty: Callable[[], Any],
        errors: List[Dict[str, str]],
    ):
        """Run one content inspector; on failure record the error and degrade."""
        self._report_progress(step, "start", f"Running {step} inspector")
        try:
            result = run()
        except Exception as e:
            logger.warning("%s inspector failed: %s", step, e)
            errors.append({
                "operation": step,
                "error_type": type(e).__name__,
                "error_message": str(e),
                "traceback": traceback.format_exc(),
            })
            self._report_progress(step, "error", f"{step} inspector failed: {e}")
            return empty()
        self._report_progress(step, "complete", f"{step} inspector finished")
        return result


def analyze_file(file_path, thresholds: Optional[DetectionThresholds] = None) -> ForensicReport:
    """Convenience function to analyze a file on disk.

    Args:
        file_path: Path to the file to analyze
        thresholds: Optional detection threshold overrides

    Returns:
        ForensicReport
    """
    return ForensicAnalyzer(thresholds=thresholds).analyze(file_path)
