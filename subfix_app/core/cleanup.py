"""
Disk cleanup for uploaded media.

Removing a file never touches the job record and never stops a pipeline that
is still running; it only reclaims disk.
"""
import logging
import time
import typing as t
from pathlib import Path

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from subfix_app.config import CLEANUP_INTERVAL_SEC, CLEANUP_MAX_AGE_SEC, UPLOAD_DIR
from subfix_app.data.job_store import JobStore

logger = logging.getLogger(__name__)


def cleanup_job(store: JobStore, job_id: str) -> bool:
    """Delete a job's uploaded file. Returns True if a file was removed."""
    job = store.get(job_id)
    path = Path(job.file_path) if job and job.file_path else None
    if path is None or not path.exists():
        return False
    try:
        path.unlink()
    except OSError as e:
        logger.error(f"[Cleanup] Failed to cleanup job {job_id}: {e}")
        return False
    logger.info(f"[Cleanup] Deleted file for job {job_id}")
    return True


def sweep_uploads(
    upload_dir: t.Union[str, Path] = UPLOAD_DIR,
    max_age_sec: float = CLEANUP_MAX_AGE_SEC,
    now: t.Optional[float] = None,
) -> t.List[Path]:
    """Remove files in ``upload_dir`` not modified for ``max_age_sec``.

    Returns:
        The paths that were removed
    """
    upload_dir = Path(upload_dir)
    if not upload_dir.is_dir():
        return []
    now = time.time() if now is None else now

    removed = []
    for path in upload_dir.iterdir():
        try:
            if path.is_file() and now - path.stat().st_mtime > max_age_sec:
                path.unlink()
                removed.append(path)
                logger.info(f"[Cleanup] Removed old file: {path.name}")
        except OSError as e:
            logger.warning(f"[Cleanup] Could not remove {path}: {e}")
    return removed


scheduler: t.Optional[AsyncIOScheduler] = None


def start_cleanup_scheduler(
    upload_dir: t.Union[str, Path] = UPLOAD_DIR,
    interval_sec: float = CLEANUP_INTERVAL_SEC,
    max_age_sec: float = CLEANUP_MAX_AGE_SEC,
) -> AsyncIOScheduler:
    """Sweep ``upload_dir`` every ``interval_sec`` on the running event loop.

    Only one scheduler runs per process; a second call returns it unchanged.
    """
    global scheduler
    if scheduler:
        return scheduler
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        sweep_uploads,
        IntervalTrigger(seconds=interval_sec),
        args=[upload_dir, max_age_sec],
        id="sweep_uploads",
        name="Upload sweep",
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info(f"[Cleanup] Schedule started (every {interval_sec:.0f}s)")
    return scheduler


def stop_cleanup_scheduler() -> None:
    global scheduler
    if scheduler:
        scheduler.shutdown(wait=False)
        scheduler = None
        logger.info("[Cleanup] Schedule stopped")
