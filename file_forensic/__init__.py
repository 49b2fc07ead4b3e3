"""Static file forensics: true-type identification, hidden data and payload detection."""

__version__ = "0.1.0"
