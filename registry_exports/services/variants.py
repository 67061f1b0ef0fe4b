"""Per-export-kind policy: who may export, what the scope is, how files are named.

Analytics exports belong to admin dashboard staff; vendor order exports
belong to a vendor account and its current vendor record.
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping, Optional

from registry_exports.jobs.errors import Forbidden, InvalidRequest, NotFound
from registry_exports.jobs.formatting import (
    build_analytics_export_filename,
    build_vendor_orders_export_filename,
)
from registry_exports.jobs.models import (
    AnalyticsScope,
    ExportJob,
    ExportKind,
    ExportScope,
    Principal,
    VendorOrderScope,
)
from registry_exports.jobs.normalization import (
    normalize_date_range,
    normalize_tab,
    normalize_vendor_order_filters,
)

MISSING_EMAIL_MESSAGE = "Your account does not have an email address on file."


class ExportVariant(ABC):
    kind: ExportKind
    dedup_message: str
    queued_message: Optional[str] = None

    @abstractmethod
    def authorize(self, principal: Principal) -> None:
        """Raise unless the principal may use this export kind at all."""
        ...

    @abstractmethod
    def build_scope(self, principal: Principal, payload: Mapping[str, Any]) -> ExportScope:
        """Normalized scope for a raw request body."""
        ...

    @abstractmethod
    def can_download(self, principal: Principal, job: ExportJob) -> bool:
        ...

    @abstractmethod
    def filename(self, job: ExportJob) -> str:
        ...

    def recipient_email(self, principal: Principal) -> str:
        email = (principal.email or "").strip()
        if not email:
            raise InvalidRequest(MISSING_EMAIL_MESSAGE)
        return email


class AnalyticsExportVariant(ExportVariant):
    kind = ExportKind.ANALYTICS
    dedup_message = "An export for this tab and range is already queued."

    def __init__(self, admin_roles: Iterable[str], superuser_role: str):
        self._admin_roles = frozenset(admin_roles)
        self._superuser_role = superuser_role

    def authorize(self, principal: Principal) -> None:
        if not principal.role or principal.role not in self._admin_roles:
            raise Forbidden()

    def build_scope(self, principal: Principal, payload: Mapping[str, Any]) -> AnalyticsScope:
        return AnalyticsScope(
            tab_id=normalize_tab(payload.get("tabId") or payload.get("tab")),
            date_range=normalize_date_range(payload.get("dateRange") or payload.get("range")),
        )

    def can_download(self, principal: Principal, job: ExportJob) -> bool:
        return principal.role == self._superuser_role or job.requested_by == principal.id

    def filename(self, job: ExportJob) -> str:
        return build_analytics_export_filename(
            job.scope.tab_id, job.scope.date_range, job.queued_at
        )


class VendorOrderExportVariant(ExportVariant):
    kind = ExportKind.VENDOR_ORDERS
    dedup_message = (
        "An orders export with the same filters is already queued. "
        "You will receive it by email shortly."
    )
    queued_message = "Export queued successfully. We will email you a CSV download link shortly."

    def __init__(self, vendor_role: str):
        self._vendor_role = vendor_role

    def authorize(self, principal: Principal) -> None:
        if principal.role != self._vendor_role:
            raise Forbidden()
        if not principal.vendor_id:
            raise NotFound("Vendor profile not found.")

    def build_scope(self, principal: Principal, payload: Mapping[str, Any]) -> VendorOrderScope:
        return VendorOrderScope(
            vendor_id=principal.vendor_id,
            filters=normalize_vendor_order_filters(payload),
        )

    def can_download(self, principal: Principal, job: ExportJob) -> bool:
        return (
            job.requested_by == principal.id
            and isinstance(job.scope, VendorOrderScope)
            and job.scope.vendor_id == principal.vendor_id
        )

    def filename(self, job: ExportJob) -> str:
        return build_vendor_orders_export_filename(job.scope.filters.status, job.queued_at)
