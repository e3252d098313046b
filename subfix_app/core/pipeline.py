"""
Pipeline orchestration for the subfix app.
"""
import dataclasses
import logging
import typing as t
from pathlib import Path

from subfix_app.background import run_sync
from subfix_app.config import ANALYSIS_BATCH_SIZE, Status
from subfix_app.core import media
from subfix_app.core.analyze import analyze
from subfix_app.core.errors import SubfixError
from subfix_app.core.transcribe import transcribe
from subfix_app.data.job_store import JobStore

# Set up logging
logger = logging.getLogger(__name__)


@dataclasses.dataclass
class JobSettings:
    """Settings for a pipeline run."""
    batch_size: int = ANALYSIS_BATCH_SIZE


class PipelineError(SubfixError):
    """Exception raised when a job cannot be run at all."""
    pass


async def process_job(
    job_id: str,
    store: JobStore,
    client,
    settings: t.Optional[JobSettings] = None,
    progress_cb: t.Optional[t.Callable[[str, int], None]] = None,
) -> bool:
    """Run one job through extraction, transcription and analysis.

    Every failure is caught here, once, and recorded with
    ``store.set_error``; nothing propagates to the caller.

    Args:
        job_id: Job ID
        store: Job store
        client: Model client (see ModelClient)
        settings: Job settings
        progress_cb: Called with (status, progress) at each checkpoint

    Returns:
        True if the job completed
    """
    settings = settings or JobSettings()

    def report(status: str, progress: int) -> None:
        store.set_status(job_id, status, progress)
        if progress_cb:
            progress_cb(status, progress)

    # Track the extracted audio so it is removed whatever happens
    temp_audio: t.Optional[Path] = None

    try:
        job = store.get(job_id)
        if job is None:
            raise PipelineError(f"Unknown job {job_id}")
        if not job.file_path:
            raise PipelineError("Job has no media file")
        logger.info(f"Starting job {job_id} for {job.file_name}")

        report(Status.PROCESSING, 10)
        audio_path, mime_type = Path(job.file_path), job.file_type
        if media.needs_extraction(mime_type):
            temp_audio = await run_sync(media.extract_audio, audio_path)
            audio_path, mime_type = temp_audio, media.EXTRACTED_MIME_TYPE
        report(Status.PROCESSING, 20)

        audio = await run_sync(audio_path.read_bytes)

        report(Status.TRANSCRIBING, 30)
        try:
            segments = await transcribe(audio, mime_type, job.user_context, client)
        finally:
            media.remove_quietly(temp_audio)
            temp_audio = None
        report(Status.TRANSCRIBING, 70)

        report(Status.ANALYZING, 85)
        anomalies = await analyze(segments, job.user_context, client, settings.batch_size)

        store.set_segments(job_id, segments)
        store.set_anomalies(job_id, anomalies)
        report(Status.COMPLETED, 100)

        logger.info(f"Job {job_id} completed successfully")
        return True

    except Exception as e:
        logger.error(f"Error processing job {job_id}: {e}")
        store.set_error(job_id, str(e) or "Transcription failed")
        return False

    finally:
        media.remove_quietly(temp_audio)
