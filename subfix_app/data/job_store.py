"""
In-memory job store for the subfix app.

The store is the single writer of record for jobs. Every public method takes
the store lock for its whole duration, so a reader never sees a half-written
status/progress pair and two corrections against the same job never clobber
each other's segment edits. Reads hand back deep copies.
"""
import logging
import threading
import typing as t
from datetime import datetime, timezone

from subfix_app.config import Status
from subfix_app.core.formatting import replace_first
from subfix_app.core.models import Anomaly, Job, Segment

logger = logging.getLogger(__name__)


class JobStore:
    """Volatile job store keyed by job id."""

    def __init__(self):
        self._lock = threading.RLock()
        self._jobs: t.Dict[str, Job] = {}

    def create(
        self,
        file_name: str,
        file_size: int,
        file_type: str,
        user_context: t.Optional[str] = None,
        file_path: t.Optional[str] = None,
    ) -> Job:
        """Create a pending job.

        Args:
            file_name: Original file name as uploaded
            file_size: Size in bytes
            file_type: MIME type of the upload
            user_context: Optional context to help the model with terminology
            file_path: Where the uploaded file lives on disk (kept private)

        Returns:
            A copy of the new job record
        """
        job = Job(
            file_name=file_name,
            file_size=file_size,
            file_type=file_type or "audio/mpeg",
            user_context=user_context,
        )
        job._file_path = str(file_path) if file_path else None
        with self._lock:
            self._jobs[job.id] = job
            logger.info("Created job %s for %s", job.id, file_name)
            return job.model_copy(deep=True)

    def get(self, job_id: str) -> t.Optional[Job]:
        """Return a snapshot of the job, or None if unknown."""
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job else None

    def set_status(
        self,
        job_id: str,
        status: str,
        progress: t.Optional[int] = None,
        message: t.Optional[str] = None,
    ) -> bool:
        """Move a job forward in the pipeline.

        A stale status message is cleared when no new one is supplied.
        Completing a job stamps its completion time. Terminal jobs and
        backward moves are refused.

        Args:
            job_id: Job ID
            status: New status, any of Status.FLOW
            progress: Optional progress percentage (0-100)
            message: Optional human-readable status message

        Returns:
            True if the job was updated
        """
        if status == Status.FAILED:
            raise ValueError("use set_error() to fail a job")
        if status not in Status.FLOW:
            raise ValueError(f"unknown status: {status!r}")

        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return False
            if job.status in Status.TERMINAL:
                logger.warning("Job %s is %s, ignoring move to %s", job_id, job.status, status)
                return False
            if Status.FLOW.index(status) < Status.FLOW.index(job.status):
                logger.warning("Job %s refusing backward move %s -> %s", job_id, job.status, status)
                return False

            job.status = status
            if progress is not None:
                job.progress = max(0, min(100, int(progress)))
            # failed is excluded above, so a missing message always clears
            job.status_message = message
            if status == Status.COMPLETED:
                job.completed_at = datetime.now(timezone.utc)
            return True

    def set_error(self, job_id: str, message: str) -> bool:
        """Fail a job with an error message, whatever its current state."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return False
            job.status = Status.FAILED
            job.error_message = message or "Transcription failed"
            logger.error("Job %s failed: %s", job_id, job.error_message)
            return True

    def set_segments(self, job_id: str, segments: t.List[Segment]) -> bool:
        """Attach the transcribed segments. Only the first call takes effect."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return False
            if job.segments is not None:
                logger.warning("Job %s already has segments, ignoring", job_id)
                return False
            job.segments = [s.model_copy() for s in segments]
            return True

    def set_anomalies(self, job_id: str, anomalies: t.List[Anomaly]) -> bool:
        """Attach the detected anomalies. Only the first call takes effect."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return False
            if job.anomalies is not None:
                logger.warning("Job %s already has anomalies, ignoring", job_id)
                return False
            job.anomalies = [a.model_copy() for a in anomalies]
            return True

    def _resolve(self, job: Job, anomaly: Anomaly, correction: str) -> None:
        anomaly.resolved = True
        anomaly.user_correction = correction
        anomaly.context = f'Replaced "{anomaly.flagged_text}" with "{correction}"'
        segment = job.segment(anomaly.segment_id)
        if segment is not None:
            segment.text = replace_first(segment.text, anomaly.flagged_text, correction)

    def apply_correction(self, job_id: str, anomaly_id: str, correction: str) -> bool:
        """Resolve one anomaly and patch its segment.

        Returns:
            False (and changes nothing) if the job, its results or the
            anomaly are missing, or the anomaly is already resolved
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.segments is None or job.anomalies is None:
                return False
            anomaly = job.anomaly(anomaly_id)
            if anomaly is None or anomaly.resolved:
                return False
            self._resolve(job, anomaly, correction)
            return True

    def apply_to_similar(self, job_id: str, flagged_text: str, correction: str) -> int:
        """Resolve every unresolved anomaly whose flagged text matches.

        Matching is case-insensitive. Already-resolved anomalies are left
        alone even when their text matches.

        Returns:
            Number of anomalies resolved
        """
        needle = flagged_text.lower()
        count = 0
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.segments is None or job.anomalies is None:
                return 0
            for anomaly in job.anomalies:
                if not anomaly.resolved and anomaly.flagged_text.lower() == needle:
                    self._resolve(job, anomaly, correction)
                    count += 1
        return count

    def find_similar(self, job_id: str, anomaly_id: str) -> t.List[Anomaly]:
        """Other unresolved anomalies sharing this anomaly's flagged text."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return []
            original = job.anomaly(anomaly_id)
            if original is None:
                return []
            needle = original.flagged_text.lower()
            return [
                a.model_copy()
                for a in job.anomalies
                if a.id != anomaly_id and not a.resolved and a.flagged_text.lower() == needle
            ]

    def update_segment_text(self, job_id: str, segment_id: int, text: str) -> bool:
        """Overwrite a segment's text. Anomalies are not touched."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return False
            segment = job.segment(segment_id)
            if segment is None:
                return False
            segment.text = text
            return True
