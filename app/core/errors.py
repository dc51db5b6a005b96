"""Error taxonomy for the contract processing pipeline.

Format, extraction and insufficient-text errors are raised before any
billable AI call is made. AnalysisError is the single failure surfaced
once the model fallback chain gives up.
"""

from __future__ import annotations

from typing import Any, Sequence


class HeliosError(Exception):
    """Base class for pipeline errors."""

    pass


class FormatMismatchError(HeliosError):
    """Declared extension contradicts the sniffed file signature."""

    def __init__(self, filename: str, message: str):
        self.filename = filename
        super().__init__(message)


class ExtractionError(HeliosError):
    """A file could not be turned into usable text.

    ``retryable`` is set when the cause was a transient provider failure
    during image transcription rather than the file itself.
    """

    def __init__(self, message: str, filename: str | None = None, *, retryable: bool = False):
        self.filename = filename
        self.retryable = retryable
        super().__init__(message)


class InsufficientTextError(HeliosError):
    """Combined extracted text is too short to analyse."""

    def __init__(self, length: int, minimum: int):
        self.length = length
        self.minimum = minimum
        super().__init__(
            f"insufficient text: {length} characters extracted, at least {minimum} required"
        )


class ResponseParseError(HeliosError):
    """AI response could not be parsed as a JSON object."""

    pass


class AnalysisError(HeliosError):
    """Model fallback chain exhausted or hit a non-retryable error."""

    def __init__(
        self,
        message: str,
        *,
        attempts: Sequence[Any] = (),
        retryable: bool = False,
    ):
        self.attempts = tuple(attempts)
        self.retryable = retryable
        super().__init__(message)


__all__ = [
    "AnalysisError",
    "ExtractionError",
    "FormatMismatchError",
    "HeliosError",
    "InsufficientTextError",
    "ResponseParseError",
]
