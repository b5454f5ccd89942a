"""
Exception classes for docintake.

All docintake exceptions inherit from DocIntakeError,
making it easy to catch all library errors.

Example:
    >>> try:
    ...     await intake.process(file, classifier, persistence)
    ... except docintake.ProcessingError as e:
    ...     print(f"{e.stage} failed: {e}")
    ... except docintake.DocIntakeError as e:
    ...     print(f"docintake error: {e}")
"""

from __future__ import annotations

from typing import Any


class DocIntakeError(Exception):
    """
    Base exception for all docintake errors.

    Catch this to handle any docintake-specific error.
    """

    pass


class UnsupportedFormatError(DocIntakeError):
    """
    Raised when a document's MIME type cannot be routed.

    Example:
        >>> intake.process(DocumentFile("notes.txt", "text/plain", b"..."), ...)
        UnsupportedFormatError: Unsupported file type: text/plain
    """

    pass


class ConfigurationError(DocIntakeError):
    """Raised for invalid configuration or unknown provider names."""

    pass


class ImageProcessingError(DocIntakeError):
    """
    Raised when an input image is rejected before OCR.

    These are input errors: they are never retried.

    Attributes:
        code: One of UNSUPPORTED_TYPE, FILE_TOO_LARGE, IMAGE_TOO_SMALL,
            DECODE_FAILED.
    """

    UNSUPPORTED_TYPE = "UNSUPPORTED_TYPE"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    IMAGE_TOO_SMALL = "IMAGE_TOO_SMALL"
    DECODE_FAILED = "DECODE_FAILED"

    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.code = code


class EngineInitializationError(DocIntakeError):
    """
    Raised when the OCR engine cannot be brought to the ready state.

    Once raised by an OcrEngineManager, the same error is raised on every
    request until the manager is disposed.
    """

    pass


class RecognitionError(DocIntakeError):
    """Raised when recognition fails after all attempts or returns malformed output."""

    pass


class ProcessingError(DocIntakeError):
    """
    Pipeline-level failure for a single document.

    The message is the human-readable text surfaced to the caller; the
    original exception is chained as ``__cause__``.

    Attributes:
        stage: OCR, EXTRACTION, CLASSIFICATION, STORAGE or UNKNOWN.
        code: Error code for programmatic handling.
        details: Optional extra context.
    """

    STAGES = ("OCR", "EXTRACTION", "CLASSIFICATION", "STORAGE", "UNKNOWN")

    def __init__(
        self,
        message: str,
        stage: str = "UNKNOWN",
        code: str = "PROCESSING_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        if stage not in self.STAGES:
            stage = "UNKNOWN"
        self.stage = stage
        self.code = code
        self.details = details or {}

    @classmethod
    def for_stage(cls, stage: str, error: BaseException) -> ProcessingError:
        """Wrap ``error`` for ``stage``, keeping an existing ProcessingError as-is."""
        if isinstance(error, ProcessingError):
            return error
        return cls(str(error) or type(error).__name__, stage, f"{stage}_ERROR")
