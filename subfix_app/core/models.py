"""
Pydantic models for the subfix app.

This module contains the records the job store holds (Job, Segment, Anomaly)
and the shapes the external model is asked to return.
"""
import re
import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator
from pydantic.alias_generators import to_camel

from subfix_app.config import AnomalyType, Status

SRT_TIME_RE = re.compile(r"^(\d{2}):(\d{2}):(\d{2})[,.](\d{3})$")

# camelCase on the wire, snake_case in Python; both accepted when parsing
_WIRE = ConfigDict(
    extra='ignore',
    alias_generator=to_camel,
    populate_by_name=True,
    validate_assignment=True,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Segment(BaseModel):
    """One subtitle cue.

    Attributes:
        id: Cue number assigned by the transcription call
        start_time: Start timestamp, HH:MM:SS,mmm
        end_time: End timestamp, HH:MM:SS,mmm
        text: Current (possibly corrected) text
        original_text: Text as first transcribed, kept for diffing
    """
    id: int
    start_time: str
    end_time: str
    text: str
    original_text: str | None = None
    model_config = _WIRE

    @field_validator("start_time", "end_time")
    @classmethod
    def _check_timestamp(cls, v: str) -> str:
        m = SRT_TIME_RE.match(v.strip())
        if not m:
            raise ValueError(f"not an SRT timestamp: {v!r}")
        # models occasionally use a dot before the milliseconds
        return "{}:{}:{},{}".format(*m.groups())


class Anomaly(BaseModel):
    """One flagged text issue tied to a segment.

    Attributes:
        id: Unique anomaly id
        segment_id: Id of the owning segment
        type: Category, one of AnomalyType.ALL
        flagged_text: Exact substring that was flagged
        suggestion: Proposed replacement
        confidence: Score in [0, 1]
        context: Reason for the flag, or a note about how it was resolved
        resolved: True once a correction has been applied
        user_correction: The text that replaced flagged_text
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    segment_id: int
    type: str = AnomalyType.GRAMMAR_ISSUE
    flagged_text: str
    suggestion: str
    confidence: float = Field(ge=0.0, le=1.0)
    context: str | None = None
    resolved: bool = False
    user_correction: str | None = None
    model_config = _WIRE

    @field_validator("type")
    @classmethod
    def _check_type(cls, v: str) -> str:
        if v not in AnomalyType.ALL:
            raise ValueError(f"unknown anomaly type: {v!r}")
        return v


class ReviewFinding(BaseModel):
    """A single item of the anomaly-review response."""
    segment_id: int
    flagged_text: str
    suggestion: str
    reason: str | None = None
    confidence: float | None = None
    auto_fix: bool = False
    type: str | None = None
    model_config = _WIRE


class Job(BaseModel):
    """One end-to-end subtitle request for a single uploaded file.

    ``segments`` and ``anomalies`` stay ``None`` until analysis finishes.
    The path of the uploaded file lives in a private attribute and never
    appears in ``model_dump()`` or ``public_dict()``.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    file_name: str
    file_size: int
    file_type: str
    user_context: str | None = None
    status: str = Status.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    status_message: str | None = None
    error_message: str | None = None
    created_at: datetime = Field(default_factory=_now)
    completed_at: datetime | None = None
    segments: list[Segment] | None = None
    anomalies: list[Anomaly] | None = None
    model_config = _WIRE

    _file_path: str | None = PrivateAttr(default=None)

    @property
    def file_path(self) -> str | None:
        return self._file_path

    @property
    def media_url(self) -> str:
        return f"/api/jobs/{self.id}/media"

    def segment(self, segment_id: int) -> Segment | None:
        for seg in self.segments or []:
            if seg.id == segment_id:
                return seg
        return None

    def anomaly(self, anomaly_id: str) -> Anomaly | None:
        for anom in self.anomalies or []:
            if anom.id == anomaly_id:
                return anom
        return None

    def public_dict(self) -> dict:
        """Client-facing serialization (camelCase, JSON-safe, no file path)."""
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        data["mediaUrl"] = self.media_url
        return data
