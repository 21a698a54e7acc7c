"""
Error taxonomy for the captioning pipeline.

Every error is terminal for the job that raised it. The only automatic
retry in the pipeline is the primary → fallback encode attempt, which
raises EncodeError only after both profiles fail.
"""

from typing import Optional


class CaptionError(Exception):
    """Base class for all pipeline errors.

    Attributes:
        reason: Short machine-readable cause, e.g. "timeout" or "status".
    """

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason


class InvalidSegment(CaptionError, ValueError):
    """A raw segment has malformed timing."""


class AudioExtractionError(CaptionError):
    """FFmpeg could not extract audio from the source media."""


class RecognitionError(CaptionError):
    """The recognition backend failed or returned no segments."""

    STATUS = "status"
    TRANSPORT = "transport"
    TIMEOUT = "timeout"
    EMPTY = "empty"


class EncodeError(CaptionError):
    """Both the primary and the fallback burn-in attempts failed."""

    def __init__(self, message: str, attempts=None, reason: Optional[str] = None):
        super().__init__(message, reason=reason)
        self.attempts = list(attempts or [])
