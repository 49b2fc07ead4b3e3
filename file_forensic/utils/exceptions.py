"""
Custom exception classes for static file forensic analysis.

The analysis core degrades instead of raising: malformed headers, bad offsets
and undecodable text all resolve to "unknown" or empty results. The classes
below cover the remaining failure modes, which are caller errors (bad
arguments, unreadable paths, broken threshold files) rather than properties of
the analyzed content.
"""


class FileForensicError(Exception):
    """
    Base exception class for all file forensic tool errors.

    Attributes:
        message: Human-readable error description
        details: Optional dictionary containing additional error context
    """

    def __init__(self, message: str, details: dict = None):
        """
        Initialize the base exception.

        Args:
            message: Error message describing what went wrong
            details: Optional dictionary with additional context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return a string representation of the exception."""
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


class InvalidInputError(FileForensicError):
    """
    Raised when a caller violates an analysis precondition.

    Examples are passing a non-bytes object as the buffer, or constructing a
    content inspector without the identified file type.

    Attributes:
        parameter: Name of the offending argument
        reason: Why the value was rejected
    """

    def __init__(self, parameter: str, reason: str, value=None):
        self.parameter = parameter
        self.reason = reason

        details = {"parameter": parameter}
        if value is not None:
            details["type"] = type(value).__name__

        super().__init__(f"Invalid argument '{parameter}': {reason}", details)


class FileReadError(FileForensicError):
    """
    Raised when the path-based entry point cannot read a file.

    Attributes:
        file_path: Path that could not be read
        reason: Underlying error description
    """

    def __init__(self, file_path: str, reason: str):
        self.file_path = file_path
        self.reason = reason
        super().__init__(
            f"Cannot read file: {reason}",
            {"file_path": file_path},
        )


class ThresholdConfigError(FileForensicError):
    """
    Raised when a detection threshold configuration file is malformed.

    Attributes:
        config_path: Path of the configuration file (if any)
        reason: What was wrong with it
    """

    def __init__(self, reason: str, config_path: str = None):
        self.config_path = config_path
        self.reason = reason

        details = {}
        if config_path:
            details["config_path"] = config_path

        super().__init__(f"Invalid threshold configuration: {reason}", details)
