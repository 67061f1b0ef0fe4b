"""Job status state machine: pending -> processing -> completed | failed.

A failed attempt may instead go back to pending while attempts remain.

Each function returns an updated copy and never mutates its argument.
Terminal jobs never move again and an artifact is written exactly once.
"""

from datetime import datetime

from registry_exports.jobs.errors import Conflict
from registry_exports.jobs.models import ExportJob, ExportJobStatus

MAX_ATTEMPTS = 3


def _not_before(now: datetime, previous: datetime | None) -> datetime:
    if previous is not None and now < previous:
        return previous
    return now


def start_processing(job: ExportJob, now: datetime) -> ExportJob:
    if job.status != ExportJobStatus.PENDING:
        raise Conflict(f"Cannot start job in status '{job.status.value}'")
    return job.model_copy(
        update={
            "status": ExportJobStatus.PROCESSING,
            "attempts": job.attempts + 1,
            "started_at": _not_before(now, job.queued_at),
        }
    )


def complete(job: ExportJob, artifact: str, now: datetime) -> ExportJob:
    if job.status.is_terminal:
        raise Conflict(f"Job already {job.status.value}")
    if job.artifact is not None:
        raise Conflict("Artifact already written")
    return job.model_copy(
        update={
            "status": ExportJobStatus.COMPLETED,
            "artifact": artifact,
            "completed_at": _not_before(now, job.started_at or job.queued_at),
            "last_error": None,
        }
    )


def fail(job: ExportJob, error: str, now: datetime) -> ExportJob:
    if job.status.is_terminal:
        raise Conflict(f"Job already {job.status.value}")
    return job.model_copy(
        update={
            "status": ExportJobStatus.FAILED,
            "completed_at": _not_before(now, job.started_at or job.queued_at),
            "last_error": (error or "").strip()[:2000] or "failed",
        }
    )


def release_for_retry(
    job: ExportJob, error: str, now: datetime, max_attempts: int = MAX_ATTEMPTS
) -> ExportJob:
    """Record a failed attempt. The job goes back to pending for another pickup
    until it has used ``max_attempts``, after which it fails for good."""
    if job.status != ExportJobStatus.PROCESSING:
        raise Conflict(f"Cannot release job in status '{job.status.value}'")
    if job.attempts >= max_attempts:
        return fail(job, error, now)
    return job.model_copy(
        update={
            "status": ExportJobStatus.PENDING,
            "last_error": (error or "").strip()[:2000] or "failed",
        }
    )
