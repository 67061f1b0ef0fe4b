"""Export job record store interface."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from registry_exports.jobs.models import ExportJob, ExportScope


class ExportJobRepository(ABC):
    """Abstract job record store for one export kind (local or Supabase).

    Implementations raise ``PersistenceFailure`` when the underlying store
    fails and ``Conflict`` when a write violates a store-level constraint.
    """

    @abstractmethod
    async def find_non_terminal_match(
        self,
        requested_by: str,
        scope: ExportScope,
        queued_since: datetime,
    ) -> Optional[ExportJob]:
        """Most recently queued pending/processing job with the same owner and
        scope, queued at or after ``queued_since``."""
        ...

    @abstractmethod
    async def insert(self, job: ExportJob) -> ExportJob:
        ...

    @abstractmethod
    async def find_by_id(self, job_id: str) -> Optional[ExportJob]:
        ...

    @abstractmethod
    async def list_by_owner(self, requested_by: str, limit: int) -> List[ExportJob]:
        """Owner's jobs, newest ``queued_at`` first."""
        ...

    # Transitions below are driven by the out-of-process export worker.

    @abstractmethod
    async def mark_processing(self, job_id: str, now: datetime) -> ExportJob:
        ...

    @abstractmethod
    async def mark_completed(self, job_id: str, artifact: str, now: datetime) -> ExportJob:
        ...

    @abstractmethod
    async def mark_failed(self, job_id: str, error: str, now: datetime) -> ExportJob:
        ...

    @abstractmethod
    async def release_for_retry(
        self, job_id: str, error: str, now: datetime, max_attempts: int
    ) -> ExportJob:
        """Put a processing job back to pending with ``last_error``, or fail it
        once ``max_attempts`` are used."""
        ...
