"""
Domain objects and helpers for the subfix app.
"""
from subfix_app.core.errors import (
    AnalysisBatchError,
    ExtractionError,
    ModelError,
    NotFoundError,
    SubfixError,
    TranscriptionError,
    ValidationError,
)
from subfix_app.core.models import Anomaly, Job, Segment
from subfix_app.core.formatting import segments_to_srt

__all__ = [
    "AnalysisBatchError",
    "Anomaly",
    "ExtractionError",
    "Job",
    "ModelError",
    "NotFoundError",
    "Segment",
    "SubfixError",
    "TranscriptionError",
    "ValidationError",
    "segments_to_srt",
]
