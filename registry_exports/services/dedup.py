"""Dedup guard: reuse an in-flight export instead of queueing an identical one."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from registry_exports.jobs.models import ExportJob, ExportScope
from registry_exports.jobs.repository import ExportJobRepository

EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


async def find_duplicate(
    repository: ExportJobRepository,
    requested_by: str,
    scope: ExportScope,
    window: timedelta,
    now: datetime,
) -> Optional[ExportJob]:
    """Latest pending/processing job for the same requester and normalized
    scope queued within ``window`` before ``now``. Read-only.

    This is a check-then-act guard: two concurrent callers can both miss and
    both insert. Stores that enforce uniqueness surface that as ``Conflict``
    on insert instead.
    """
    return await repository.find_non_terminal_match(
        requested_by=requested_by,
        scope=scope,
        queued_since=now - window,
    )


async def find_inflight(
    repository: ExportJobRepository,
    requested_by: str,
    scope: ExportScope,
) -> Optional[ExportJob]:
    """Latest pending/processing job for the same requester and scope, however
    long ago it was queued. A store uniqueness constraint covers every
    in-flight job, not just those inside the dedup window."""
    return await repository.find_non_terminal_match(
        requested_by=requested_by,
        scope=scope,
        queued_since=EARLIEST,
    )
