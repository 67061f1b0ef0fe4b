"""In-process job record store for local development and tests.

Keeps job records in a dict. No external dependencies (Supabase) needed.
"""

from datetime import datetime
from typing import Dict, List, Optional

from registry_exports.jobs import transitions
from registry_exports.jobs.errors import Conflict, NotFound
from registry_exports.jobs.models import NON_TERMINAL_STATUSES, ExportJob, ExportScope
from registry_exports.jobs.normalization import scope_key
from registry_exports.jobs.repository import ExportJobRepository


class InMemoryExportJobRepository(ExportJobRepository):
    """Dict-backed job store.

    enforce_unique_inflight: reject a second pending/processing job for the
        same (requested_by, scope) with ``Conflict``, the way a partial unique
        index would on a relational store.
    """

    def __init__(self, enforce_unique_inflight: bool = False):
        self._jobs: Dict[str, ExportJob] = {}
        self._enforce_unique_inflight = enforce_unique_inflight

    def __len__(self) -> int:
        return len(self._jobs)

    async def find_non_terminal_match(
        self,
        requested_by: str,
        scope: ExportScope,
        queued_since: datetime,
    ) -> Optional[ExportJob]:
        key = scope_key(scope)
        matches = [
            job for job in self._jobs.values()
            if job.requested_by == requested_by
            and job.status in NON_TERMINAL_STATUSES
            and job.queued_at >= queued_since
            and scope_key(job.scope) == key
        ]
        if not matches:
            return None
        return max(matches, key=lambda job: job.queued_at)

    async def insert(self, job: ExportJob) -> ExportJob:
        if job.id in self._jobs:
            raise Conflict("Export job id already exists")
        if self._enforce_unique_inflight and self._has_inflight(job):
            raise Conflict("An export with the same scope is already in flight")
        self._jobs[job.id] = job
        return job

    async def find_by_id(self, job_id: str) -> Optional[ExportJob]:
        return self._jobs.get(job_id)

    async def list_by_owner(self, requested_by: str, limit: int) -> List[ExportJob]:
        owned = [job for job in self._jobs.values() if job.requested_by == requested_by]
        owned.sort(key=lambda job: job.queued_at, reverse=True)
        return owned[:limit]

    async def mark_processing(self, job_id: str, now: datetime) -> ExportJob:
        return self._replace(transitions.start_processing(self._get(job_id), now))

    async def mark_completed(self, job_id: str, artifact: str, now: datetime) -> ExportJob:
        return self._replace(transitions.complete(self._get(job_id), artifact, now))

    async def mark_failed(self, job_id: str, error: str, now: datetime) -> ExportJob:
        return self._replace(transitions.fail(self._get(job_id), error, now))

    async def release_for_retry(
        self, job_id: str, error: str, now: datetime, max_attempts: int = transitions.MAX_ATTEMPTS
    ) -> ExportJob:
        job = transitions.release_for_retry(self._get(job_id), error, now, max_attempts)
        return self._replace(job)

    def _get(self, job_id: str) -> ExportJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise NotFound()
        return job

    def _replace(self, job: ExportJob) -> ExportJob:
        self._jobs[job.id] = job
        return job

    def _has_inflight(self, job: ExportJob) -> bool:
        key = scope_key(job.scope)
        return any(
            other.requested_by == job.requested_by
            and other.status in NON_TERMINAL_STATUSES
            and scope_key(other.scope) == key
            for other in self._jobs.values()
        )
