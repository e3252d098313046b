"""
Editor controller for the subfix app.

This module handles what a user does with a finished transcript: accepting
corrections, editing segment text by hand, exporting and releasing the
uploaded file.
"""
import logging
import typing as t
from pathlib import Path

from subfix_app.core import corrections
from subfix_app.core.cleanup import cleanup_job
from subfix_app.core.corrections import CorrectionResult
from subfix_app.core.errors import NotFoundError, ValidationError
from subfix_app.core.formatting import segments_to_srt, srt_filename
from subfix_app.core.models import Anomaly
from subfix_app.data.job_store import JobStore

logger = logging.getLogger(__name__)


class EditorController:
    """Controller for transcript review operations."""

    def __init__(self, store: JobStore):
        """Initialize the controller.

        Args:
            store: Job store
        """
        self.store = store

    def correct(self, job_id: str, anomaly_id: str, correction: str,
                apply_to_similar: bool = False) -> CorrectionResult:
        """Apply a user correction to one anomaly or to all similar ones."""
        return corrections.apply_user_correction(
            self.store, job_id, anomaly_id, correction, apply_to_similar
        )

    def apply_corrections(self, job_id: str, pairs: t.Iterable[t.Tuple[str, str]]) -> int:
        """Apply several ``(anomaly_id, correction)`` pairs; returns how many took effect."""
        return corrections.apply_many(self.store, job_id, pairs)

    def similar(self, job_id: str, anomaly_id: str) -> t.List[Anomaly]:
        """Unresolved anomalies an "apply to similar" on ``anomaly_id`` would touch."""
        job = self.store.get(job_id)
        if job is None:
            raise NotFoundError("Job not found")
        if job.anomaly(anomaly_id) is None:
            raise NotFoundError("Anomaly not found")
        return self.store.find_similar(job_id, anomaly_id)

    def update_segment(self, job_id: str, segment_id: int, text: str) -> None:
        """Overwrite one segment's text. Anomaly highlights are left as they are.

        Raises:
            NotFoundError: If the job or segment does not exist
        """
        if self.store.get(job_id) is None:
            raise NotFoundError("Job not found")
        if not self.store.update_segment_text(job_id, segment_id, text):
            raise NotFoundError("Segment not found")
        logger.debug("update_segment: job=%s segment=%d", job_id, segment_id)

    def export_srt(self, job_id: str) -> t.Tuple[str, str]:
        """Render the current transcript.

        Returns:
            (download file name, SRT text)

        Raises:
            NotFoundError: If the job does not exist
            ValidationError: If the job has no transcript yet
        """
        job = self.store.get(job_id)
        if job is None:
            raise NotFoundError("Job not found")
        if job.segments is None:
            raise ValidationError("No transcript available")
        return srt_filename(job.file_name), segments_to_srt(job.segments)

    def write_srt(self, job_id: str, dest_path: Path) -> Path:
        """Export the transcript to ``dest_path``."""
        _, content = self.export_srt(job_id)
        dest_path = Path(dest_path)
        dest_path.write_text(content, encoding="utf-8")
        logger.info("Exported subtitles to %s", dest_path)
        return dest_path

    def media_path(self, job_id: str) -> Path:
        """Path of the uploaded file for playback.

        Raises:
            NotFoundError: If the job is unknown or its file is gone
        """
        job = self.store.get(job_id)
        if job is None or not job.file_path:
            raise NotFoundError("Media not found")
        path = Path(job.file_path)
        if not path.exists():
            raise NotFoundError("File no longer exists")
        return path

    def cleanup(self, job_id: str) -> bool:
        """Delete the job's uploaded file; the job itself is kept."""
        return cleanup_job(self.store, job_id)
