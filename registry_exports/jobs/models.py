"""Export job record data model."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union
from pydantic import BaseModel, Field
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExportKind(str, Enum):
    ANALYTICS = "analytics"
    VENDOR_ORDERS = "vendor_orders"


class ExportJobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ExportJobStatus.COMPLETED, ExportJobStatus.FAILED)


NON_TERMINAL_STATUSES = (ExportJobStatus.PENDING, ExportJobStatus.PROCESSING)


class AnalyticsScope(BaseModel):
    """Which admin analytics tab is exported, over which canonical date range."""
    tab_id: str
    date_range: str


class VendorOrderFilters(BaseModel):
    status: str = "all"
    q: str = ""
    from_: str = Field(default="", alias="from")
    to: str = ""

    model_config = {"populate_by_name": True}

    def as_dict(self) -> Dict[str, str]:
        return self.model_dump(by_alias=True)


class VendorOrderScope(BaseModel):
    vendor_id: str
    filters: VendorOrderFilters = Field(default_factory=VendorOrderFilters)


ExportScope = Union[AnalyticsScope, VendorOrderScope]


class ExportJob(BaseModel):
    """Tracks the lifecycle of an asynchronous CSV export."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    kind: ExportKind
    requested_by: str
    scope: ExportScope
    status: ExportJobStatus = ExportJobStatus.PENDING
    attempts: int = 0
    queued_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    artifact: Optional[str] = None
    last_error: Optional[str] = None
    recipient_email: Optional[str] = None

    def scope_dict(self) -> Dict[str, Any]:
        if isinstance(self.scope, VendorOrderScope):
            return {
                "vendorId": self.scope.vendor_id,
                "filters": self.scope.filters.as_dict(),
            }
        return {"tabId": self.scope.tab_id, "dateRange": self.scope.date_range}

    def summary(self) -> Dict[str, Any]:
        """Client-facing shape returned by enqueue."""
        return {
            "id": self.id,
            "status": self.status.value,
            "scope": self.scope_dict(),
            "queuedAt": _iso(self.queued_at),
        }

    def status_view(self) -> Dict[str, Any]:
        """Client-facing shape returned by the recent-jobs listing."""
        return {
            **self.summary(),
            "startedAt": _iso(self.started_at),
            "completedAt": _iso(self.completed_at),
            "lastError": self.last_error,
        }


class Principal(BaseModel):
    """An authenticated requester resolved from the access token and profile row."""
    id: str
    role: Optional[str] = None
    email: Optional[str] = None
    vendor_id: Optional[str] = None


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
