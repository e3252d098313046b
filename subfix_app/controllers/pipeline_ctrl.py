"""
Pipeline controller for the subfix app.

This module is the seam the upload/polling routes drive: it validates an
upload, creates the job and schedules its pipeline run in the background.
"""
import asyncio
import logging
import typing as t
from pathlib import Path

from subfix_app import background
from subfix_app.config import (
    ALLOWED_EXTENSIONS,
    ALLOWED_MIME_TYPES,
    MAX_CONTEXT_WORDS,
    MAX_FILE_SIZE,
    Status,
)
from subfix_app.core.errors import NotFoundError, ValidationError
from subfix_app.core.media import remove_quietly
from subfix_app.core.models import Job
from subfix_app.core.pipeline import JobSettings, process_job
from subfix_app.data.job_store import JobStore

logger = logging.getLogger(__name__)

_EXTENSION_MIME_TYPES = {".mp3": "audio/mpeg", ".mp4": "video/mp4"}


class JobProgress(t.NamedTuple):
    status: str
    progress: int
    status_message: t.Optional[str]
    error_message: t.Optional[str]


def validate_upload(file_name: str, file_size: int, mime_type: str,
                    context: t.Optional[str] = None) -> t.Optional[str]:
    """Check an upload before a job exists.

    Returns:
        The normalised context (stripped, or None when empty)

    Raises:
        ValidationError: On an empty/oversized file, an unsupported type or
            a context longer than MAX_CONTEXT_WORDS words
    """
    if file_size <= 0:
        raise ValidationError("No file uploaded")
    if file_size > MAX_FILE_SIZE:
        raise ValidationError(f"File exceeds {MAX_FILE_SIZE // (1024 * 1024)}MB limit")

    ext = Path(file_name).suffix.lower()
    if mime_type not in ALLOWED_MIME_TYPES and ext not in ALLOWED_EXTENSIONS:
        raise ValidationError("Invalid file type. Only MP3 and MP4 files are allowed.")

    context = context.strip() if isinstance(context, str) else None
    if not context:
        return None
    if len(context.split()) > MAX_CONTEXT_WORDS:
        raise ValidationError(f"Context must be {MAX_CONTEXT_WORDS} words or less")
    return context


def normalise_mime_type(file_name: str, mime_type: str) -> str:
    """Trust the reported type when allowed, else infer it from the extension."""
    if mime_type in ALLOWED_MIME_TYPES:
        return mime_type
    return _EXTENSION_MIME_TYPES.get(Path(file_name).suffix.lower(), mime_type)


class PipelineController:
    """Controller for transcription pipeline operations.

    Owns one background task per job; jobs run independently of each other.
    """

    def __init__(self, store: JobStore, client, settings: t.Optional[JobSettings] = None):
        """Initialize the controller.

        Args:
            store: Job store
            client: Model client handed to every pipeline run
            settings: Optional job settings, uses defaults if not provided
        """
        self.store = store
        self.client = client
        self.settings = settings or JobSettings()
        self._tasks: t.Dict[str, asyncio.Task] = {}

    def create_job(
        self,
        file_name: str,
        file_size: int,
        mime_type: str,
        file_path: t.Union[str, Path],
        context: t.Optional[str] = None,
        owns_file: bool = True,
        progress_cb: t.Optional[t.Callable[[str, int], None]] = None,
    ) -> Job:
        """Validate an upload, create its job and start the pipeline.

        Must be called from inside the running event loop. Returns as soon
        as the job exists and its run is scheduled.

        Args:
            file_name: Original file name
            file_size: Size in bytes
            mime_type: MIME type reported for the upload
            file_path: Where the upload was stored
            context: Optional user context (at most MAX_CONTEXT_WORDS words)
            owns_file: Delete ``file_path`` if the upload is rejected
            progress_cb: Forwarded to the pipeline run

        Returns:
            Snapshot of the job, already marked uploading

        Raises:
            ValidationError: If the upload is rejected (no job is created)
            RuntimeError: If no event loop is running (no job is created)
        """
        try:
            context = validate_upload(file_name, file_size, mime_type, context)
        except ValidationError:
            if owns_file:
                remove_quietly(file_path)
            raise

        # the run is scheduled on this loop, so it must exist before the record does
        asyncio.get_running_loop()

        mime_type = normalise_mime_type(file_name, mime_type)
        job = self.store.create(file_name, file_size, mime_type, context, str(file_path))
        self._tasks[job.id] = background.spawn(
            process_job(job.id, self.store, self.client, self.settings, progress_cb),
            name=f"job-{job.id}",
            on_error=lambda exc, job_id=job.id: self.store.set_error(job_id, str(exc) or "Transcription failed"),
        )
        self._tasks[job.id].add_done_callback(lambda _t, job_id=job.id: self._tasks.pop(job_id, None))
        self.store.set_status(job.id, Status.UPLOADING, 5)

        logger.info("Enqueued %s as job %s", file_name, job.id)
        return self.store.get(job.id)

    def get_job(self, job_id: str) -> t.Optional[Job]:
        return self.store.get(job_id)

    def progress(self, job_id: str) -> JobProgress:
        """Status snapshot for polling.

        Raises:
            NotFoundError: If the job does not exist
        """
        job = self.store.get(job_id)
        if job is None:
            raise NotFoundError("Job not found")
        return JobProgress(job.status, job.progress, job.status_message, job.error_message)

    async def wait(self, job_id: str) -> Job:
        """Wait for a job scheduled here to finish and return its final state.

        Raises:
            NotFoundError: If the job does not exist
        """
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.shield(task)
        job = self.store.get(job_id)
        if job is None:
            raise NotFoundError("Job not found")
        return job
