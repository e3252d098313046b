"""
Exception hierarchy for the subfix pipeline.
"""


class SubfixError(Exception):
    """Base error for the subfix app."""


class ValidationError(SubfixError, ValueError):
    """Raised when an upload or request is rejected before touching a job."""


class ExtractionError(SubfixError):
    """Raised when audio cannot be extracted from a media file."""


class ModelError(SubfixError):
    """Raised when a call to the external model fails or returns non-JSON."""


class TranscriptionError(SubfixError):
    """Raised when transcription fails or returns a malformed payload."""


class AnalysisBatchError(SubfixError):
    """Raised when one anomaly-review batch fails. Never fatal to a job."""

    def __init__(self, start_index: int, message: str):
        super().__init__(f"Batch starting at index {start_index} failed: {message}")
        self.start_index = start_index


class NotFoundError(SubfixError, LookupError):
    """Raised when a job, anomaly or segment id is unknown."""
