"""Job record store over the Supabase export job tables.

One table per export kind. Scope fields are flattened into columns:
``tab_id``/``date_range`` for analytics, ``vendor_id``/``filters`` (jsonb)
for vendor orders. The CSV payload lives in ``csv_content``.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar

from fastapi.concurrency import run_in_threadpool
from supabase import Client

from registry_exports.jobs import transitions
from registry_exports.jobs.errors import Conflict, ExportError, NotFound, PersistenceFailure
from registry_exports.jobs.models import (
    NON_TERMINAL_STATUSES,
    AnalyticsScope,
    ExportJob,
    ExportJobStatus,
    ExportKind,
    ExportScope,
    VendorOrderScope,
    utcnow,
)
from registry_exports.jobs.normalization import (
    normalize_date_range,
    normalize_tab,
    normalize_vendor_order_filters,
    scope_key,
)
from registry_exports.jobs.repository import ExportJobRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNIQUE_VIOLATION = "23505"

_COLUMNS = (
    "id, requested_by, recipient_email, status, attempts, queued_at, "
    "started_at, completed_at, csv_content, last_error"
)
_SCOPE_COLUMNS = {
    ExportKind.ANALYTICS: "tab_id, date_range",
    ExportKind.VENDOR_ORDERS: "vendor_id, filters",
}


def _parse_ts(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class SupabaseExportJobRepository(ExportJobRepository):
    def __init__(self, client: Client, table: str, kind: ExportKind, candidate_limit: int = 10):
        self._client = client
        self._table = table
        self._kind = kind
        self._candidate_limit = candidate_limit
        self._select = f"{_COLUMNS}, {_SCOPE_COLUMNS[kind]}"

    # -- row mapping ---------------------------------------------------------

    def _scope_from_row(self, row: Dict[str, Any]) -> ExportScope:
        if self._kind == ExportKind.VENDOR_ORDERS:
            return VendorOrderScope(
                vendor_id=str(row.get("vendor_id") or ""),
                filters=normalize_vendor_order_filters(row.get("filters")),
            )
        return AnalyticsScope(
            tab_id=normalize_tab(row.get("tab_id")),
            date_range=normalize_date_range(row.get("date_range")),
        )

    def _scope_columns(self, scope: ExportScope) -> Dict[str, Any]:
        if isinstance(scope, VendorOrderScope):
            return {"vendor_id": scope.vendor_id, "filters": scope.filters.as_dict()}
        return {"tab_id": scope.tab_id, "date_range": scope.date_range}

    def _to_job(self, row: Dict[str, Any]) -> ExportJob:
        return ExportJob(
            id=str(row["id"]),
            kind=self._kind,
            requested_by=str(row["requested_by"]),
            scope=self._scope_from_row(row),
            status=ExportJobStatus(row.get("status") or "pending"),
            attempts=int(row.get("attempts") or 0),
            queued_at=_parse_ts(row.get("queued_at")) or _parse_ts(row.get("created_at")) or utcnow(),
            started_at=_parse_ts(row.get("started_at")),
            completed_at=_parse_ts(row.get("completed_at")),
            artifact=row.get("csv_content"),
            last_error=row.get("last_error"),
            recipient_email=row.get("recipient_email"),
        )

    def _to_row(self, job: ExportJob) -> Dict[str, Any]:
        return {
            "id": job.id,
            "requested_by": job.requested_by,
            "recipient_email": job.recipient_email,
            "status": job.status.value,
            "attempts": job.attempts,
            "queued_at": _iso(job.queued_at),
            "started_at": _iso(job.started_at),
            "completed_at": _iso(job.completed_at),
            "csv_content": job.artifact,
            "last_error": job.last_error,
            "created_at": _iso(job.queued_at),
            "updated_at": _iso(job.queued_at),
            **self._scope_columns(job.scope),
        }

    # -- store access --------------------------------------------------------

    async def _run(self, operation: str, fn: Callable[[], T]) -> T:
        """Run a blocking PostgREST call off the event loop."""
        try:
            return await run_in_threadpool(fn)
        except ExportError:
            raise
        except Exception as exc:
            if getattr(exc, "code", None) == _UNIQUE_VIOLATION:
                raise Conflict("An export with the same scope is already in flight") from exc
            logger.exception("Export store %s failed (table=%s)", operation, self._table)
            raise PersistenceFailure() from exc

    async def find_non_terminal_match(
        self,
        requested_by: str,
        scope: ExportScope,
        queued_since: datetime,
    ) -> Optional[ExportJob]:
        def query():
            q = (
                self._client.table(self._table)
                .select(self._select)
                .eq("requested_by", requested_by)
                .in_("status", [s.value for s in NON_TERMINAL_STATUSES])
                .gte("queued_at", queued_since.isoformat())
            )
            if isinstance(scope, VendorOrderScope):
                # jsonb filters are compared after normalization, not in SQL
                q = q.eq("vendor_id", scope.vendor_id).limit(self._candidate_limit)
            else:
                q = q.eq("tab_id", scope.tab_id).eq("date_range", scope.date_range).limit(1)
            return q.order("queued_at", desc=True).execute()

        rows = (await self._run("dedup lookup", query)).data or []
        key = scope_key(scope)
        for row in rows:
            job = self._to_job(row)
            if scope_key(job.scope) == key:
                return job
        return None

    async def insert(self, job: ExportJob) -> ExportJob:
        response = await self._run(
            "insert",
            lambda: self._client.table(self._table).insert(self._to_row(job)).execute(),
        )
        rows = response.data or []
        if not rows:
            logger.error("Export store insert returned no row (table=%s)", self._table)
            raise PersistenceFailure()
        return self._to_job(rows[0])

    async def find_by_id(self, job_id: str) -> Optional[ExportJob]:
        response = await self._run(
            "lookup",
            lambda: self._client.table(self._table)
            .select(self._select)
            .eq("id", job_id)
            .limit(1)
            .execute(),
        )
        rows = response.data or []
        return self._to_job(rows[0]) if rows else None

    async def list_by_owner(self, requested_by: str, limit: int) -> List[ExportJob]:
        response = await self._run(
            "list",
            lambda: self._client.table(self._table)
            .select(self._select)
            .eq("requested_by", requested_by)
            .order("queued_at", desc=True)
            .limit(limit)
            .execute(),
        )
        return [self._to_job(row) for row in response.data or []]

    async def mark_processing(self, job_id: str, now: datetime) -> ExportJob:
        job = await self._require(job_id)
        return await self._update(job, transitions.start_processing(job, now), now)

    async def mark_completed(self, job_id: str, artifact: str, now: datetime) -> ExportJob:
        job = await self._require(job_id)
        return await self._update(job, transitions.complete(job, artifact, now), now)

    async def mark_failed(self, job_id: str, error: str, now: datetime) -> ExportJob:
        job = await self._require(job_id)
        return await self._update(job, transitions.fail(job, error, now), now)

    async def release_for_retry(
        self, job_id: str, error: str, now: datetime, max_attempts: int = transitions.MAX_ATTEMPTS
    ) -> ExportJob:
        job = await self._require(job_id)
        released = transitions.release_for_retry(job, error, now, max_attempts)
        return await self._update(job, released, now)

    async def _require(self, job_id: str) -> ExportJob:
        job = await self.find_by_id(job_id)
        if job is None:
            raise NotFound()
        return job

    async def _update(self, before: ExportJob, after: ExportJob, now: datetime) -> ExportJob:
        changes = {
            "status": after.status.value,
            "attempts": after.attempts,
            "started_at": _iso(after.started_at),
            "completed_at": _iso(after.completed_at),
            "csv_content": after.artifact,
            "last_error": after.last_error,
            "updated_at": now.isoformat(),
        }
        # conditional on the status we read, so a concurrent transition wins once
        response = await self._run(
            "update",
            lambda: self._client.table(self._table)
            .update(changes)
            .eq("id", before.id)
            .eq("status", before.status.value)
            .execute(),
        )
        if not response.data:
            raise Conflict("Export job changed concurrently")
        return after
