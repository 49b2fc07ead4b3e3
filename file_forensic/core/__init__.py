"""Core orchestration for static file forensics.

This package provides the forensic analyzer that runs every parsing and
analysis layer over a buffer and assembles the final report.
"""

from file_forensic.core.analyzer import ForensicAnalyzer, analyze_file

__all__ = [
    "ForensicAnalyzer",
    "analyze_file",
]
