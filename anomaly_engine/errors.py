"""
Error hierarchy for the anomaly detection engine.

Errors fall into two groups:

Non-fatal (caught per sub-method, recorded as a skipped method):
    InsufficientDataError: Too few points/documents for a sub-method.
    DegenerateInputError: Zero variance, empty vocabulary or empty bucket.

Fatal or run-level:
    InvalidParameterError: Configuration outside documented ranges.
    DetectionTimeoutError: Run budget exceeded or run cancelled.
    ConfigLoadError: Configuration file could not be loaded.
"""

from pathlib import Path
from typing import Optional


class AnomalyEngineError(Exception):
    """
    Base class for all engine errors.

    Attributes:
        message: Error message describing what went wrong.
        method: Detection sub-method the error relates to, if any.
        cause: Original exception that caused the error, if any.
    """

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message
        self.method = method
        self.cause = cause
        super().__init__(message)


class InsufficientDataError(AnomalyEngineError):
    """Raised when a sub-method has fewer points or documents than it needs."""


class DegenerateInputError(AnomalyEngineError):
    """Raised when input is structurally valid but no anomaly is possible."""


class InvalidParameterError(AnomalyEngineError, ValueError):
    """Raised when detection parameters fall outside their documented ranges."""


class DetectionTimeoutError(AnomalyEngineError):
    """Raised at a cancellation checkpoint once a run is cancelled or out of time."""


class ConfigLoadError(AnomalyEngineError):
    """
    Raised when configuration loading fails.

    Attributes:
        file_path: Path to the file that caused the error, if applicable.
    """

    def __init__(
        self,
        message: str,
        file_path: Optional[Path] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, cause=cause)
        self.file_path = file_path
