"""Export job service: enqueue with dedup, list recent jobs, download artifacts.

Handlers are stateless; the job store and the export policy are injected.
CSV generation itself happens out of process: a worker picks up pending
rows and fills in the artifact.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional

from registry_exports.jobs.errors import (
    Conflict,
    Forbidden,
    InvalidRequest,
    NotFound,
    NotReady,
    PersistenceFailure,
    Unauthenticated,
)
from registry_exports.jobs.models import ExportJob, ExportJobStatus, Principal, utcnow
from registry_exports.jobs.repository import ExportJobRepository
from registry_exports.services.dedup import find_duplicate, find_inflight
from registry_exports.services.variants import ExportVariant

logger = logging.getLogger(__name__)

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"


@dataclass
class EnqueueResult:
    job: ExportJob
    deduped: bool
    message: Optional[str] = None

    def to_response(self) -> Dict[str, Any]:
        body = {"queued": True, "deduped": self.deduped, "job": self.job.summary()}
        if self.message:
            body["message"] = self.message
        return body


@dataclass
class ExportArtifact:
    content: str
    filename: str
    media_type: str = CSV_MEDIA_TYPE
    headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self.headers = {
            "Content-Disposition": f'attachment; filename="{self.filename}"',
            "Cache-Control": "private, no-store",
            **self.headers,
        }


class ExportJobService:
    def __init__(
        self,
        repository: ExportJobRepository,
        variant: ExportVariant,
        dedupe_window: timedelta = timedelta(minutes=15),
        page_size: int = 10,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._repository = repository
        self._variant = variant
        self._dedupe_window = dedupe_window
        self._page_size = page_size
        self._clock = clock

    @property
    def kind(self):
        return self._variant.kind

    @property
    def repository(self) -> ExportJobRepository:
        return self._repository

    def _authorize(self, principal: Optional[Principal]) -> Principal:
        if principal is None or not principal.id:
            raise Unauthenticated()
        self._variant.authorize(principal)
        return principal

    async def enqueue(
        self, principal: Optional[Principal], payload: Optional[Mapping[str, Any]]
    ) -> EnqueueResult:
        """Queue an export for async processing, or return the identical
        in-flight export queued within the dedup window."""
        principal = self._authorize(principal)
        if not isinstance(payload, Mapping):
            payload = {}

        scope = self._variant.build_scope(principal, payload)
        recipient = self._variant.recipient_email(principal)
        now = self._clock()

        existing = await find_duplicate(
            self._repository, principal.id, scope, self._dedupe_window, now
        )
        if existing is not None:
            logger.info(
                "Export %s deduped onto job %s for %s", self.kind.value, existing.id, principal.id
            )
            return EnqueueResult(job=existing, deduped=True, message=self._variant.dedup_message)

        job = ExportJob(
            kind=self.kind,
            requested_by=principal.id,
            scope=scope,
            status=ExportJobStatus.PENDING,
            attempts=0,
            queued_at=now,
            recipient_email=recipient,
        )
        try:
            created = await self._repository.insert(job)
        except Conflict:
            # lost the race, or an older identical job is still in flight
            existing = await find_inflight(self._repository, principal.id, scope)
            if existing is None:
                logger.error(
                    "Export %s insert conflicted with no in-flight job for %s",
                    self.kind.value,
                    principal.id,
                )
                raise PersistenceFailure()
            return EnqueueResult(job=existing, deduped=True, message=self._variant.dedup_message)

        logger.info("Export %s queued as job %s for %s", self.kind.value, created.id, principal.id)
        return EnqueueResult(job=created, deduped=False, message=self._variant.queued_message)

    async def list_recent(self, principal: Optional[Principal]) -> List[ExportJob]:
        """The principal's own most recent jobs, newest first."""
        principal = self._authorize(principal)
        jobs = await self._repository.list_by_owner(principal.id, self._page_size)
        return [job for job in jobs if job.requested_by == principal.id][: self._page_size]

    async def download(self, principal: Optional[Principal], job_id: Optional[str]) -> ExportArtifact:
        principal = self._authorize(principal)
        if not job_id or not job_id.strip():
            raise InvalidRequest("Missing export id")

        job = await self._repository.find_by_id(job_id)
        if job is None or job.kind != self.kind:
            raise NotFound()

        if not self._variant.can_download(principal, job):
            logger.warning("Denied export download of job %s to %s", job.id, principal.id)
            raise Forbidden()

        if job.status != ExportJobStatus.COMPLETED or job.artifact is None:
            raise NotReady()

        logger.info("Serving export job %s to %s", job.id, principal.id)
        return ExportArtifact(content=job.artifact, filename=self._variant.filename(job))
