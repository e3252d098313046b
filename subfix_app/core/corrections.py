"""
Decision layer for user-submitted corrections.

The job store does the actual mutation; this module decides whether a
correction targets one anomaly or every unresolved anomaly sharing its
flagged text, and reports what happened.
"""
import dataclasses
import logging
import typing as t

from subfix_app.core.errors import NotFoundError
from subfix_app.data.job_store import JobStore

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class CorrectionResult:
    """Outcome of one correction request."""
    applied: int
    message: str


def apply_user_correction(
    store: JobStore,
    job_id: str,
    anomaly_id: str,
    correction: str,
    apply_to_similar: bool = False,
) -> CorrectionResult:
    """Apply a correction to one anomaly, or to all similar unresolved ones.

    Args:
        store: Job store holding the job
        job_id: Job ID
        anomaly_id: Anomaly the user acted on
        correction: Replacement text
        apply_to_similar: Propagate to every unresolved anomaly with the same
            flagged text (case-insensitive)

    Returns:
        CorrectionResult with the number of anomalies resolved

    Raises:
        NotFoundError: If the job or the anomaly does not exist
    """
    job = store.get(job_id)
    if job is None:
        raise NotFoundError("Job not found")
    anomaly = job.anomaly(anomaly_id)
    if anomaly is None:
        raise NotFoundError("Anomaly not found")

    if apply_to_similar:
        count = store.apply_to_similar(job_id, anomaly.flagged_text, correction)
        logger.info("Job %s: %r -> %r applied to %d anomalies", job_id, anomaly.flagged_text, correction, count)
        return CorrectionResult(count, f"Applied correction to {count} occurrence(s)")

    if store.apply_correction(job_id, anomaly_id, correction):
        logger.info("Job %s: anomaly %s corrected to %r", job_id, anomaly_id, correction)
        return CorrectionResult(1, "Correction applied")
    return CorrectionResult(0, "Anomaly already resolved")


def apply_many(
    store: JobStore,
    job_id: str,
    corrections: t.Iterable[t.Tuple[str, str]],
) -> int:
    """Apply ``(anomaly_id, correction)`` pairs in order; unknown ids are skipped.

    Raises:
        NotFoundError: If the job does not exist
    """
    if store.get(job_id) is None:
        raise NotFoundError("Job not found")
    return sum(1 for anomaly_id, text in corrections if store.apply_correction(job_id, anomaly_id, text))
