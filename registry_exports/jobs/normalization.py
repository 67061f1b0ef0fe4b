"""Scope normalization for export requests.

Every function here is pure and idempotent: feeding a normalized value back in
returns it unchanged, and garbage input collapses to the documented default.
The dedup lookup and the stored job rows only ever see normalized values.
"""

import json
from typing import Any, Mapping, Optional

from registry_exports.jobs.models import VendorOrderFilters, VendorOrderScope

DEFAULT_DATE_RANGE = "last_30_days"
DEFAULT_TAB = "overview"
DEFAULT_ORDER_STATUS = "all"
MAX_QUERY_LENGTH = 160

VALID_DATE_RANGES = (
    "last_7_days",
    "last_30_days",
    "this_month",
    "this_year",
    "all_time",
)

VALID_TABS = (
    "overview",
    "financial",
    "vendor_product",
    "registry_user",
)

VENDOR_ORDER_STATUSES = (
    "all",
    "pending",
    "paid",
    "shipped",
    "delivered",
    "cancelled",
    "expired",
)


def _token(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def normalize_date_range(value: Any) -> str:
    token = _token(value)
    return token if token in VALID_DATE_RANGES else DEFAULT_DATE_RANGE


def normalize_tab(value: Any) -> str:
    token = _token(value)
    return token if token in VALID_TABS else DEFAULT_TAB


def normalize_order_status(value: Any) -> str:
    token = _token(value)
    return token if token in VENDOR_ORDER_STATUSES else DEFAULT_ORDER_STATUS


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_vendor_order_filters(raw: Any) -> VendorOrderFilters:
    """Normalize vendor order filters from a request body or a stored row.

    Stored rows may hold the filters as a JSON string; anything that is not a
    mapping after decoding yields the default filters.
    """
    if isinstance(raw, VendorOrderFilters):
        raw = raw.as_dict()
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            raw = {}
    if not isinstance(raw, Mapping):
        raw = {}

    return VendorOrderFilters(
        status=normalize_order_status(raw.get("status")),
        q=_text(_first(raw, "q", "query"))[:MAX_QUERY_LENGTH].strip(),
        from_=_text(_first(raw, "from", "dateFrom")),
        to=_text(_first(raw, "to", "dateTo")),
    )


def filters_fingerprint(filters: VendorOrderFilters) -> str:
    """Canonical string form used to compare two filter sets."""
    return json.dumps(filters.as_dict(), sort_keys=True, separators=(",", ":"))


def _first(raw: Mapping, *keys: str) -> Optional[Any]:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def scope_key(scope: Any) -> tuple:
    """Hashable identity of a normalized scope, used for dedup comparison."""
    if isinstance(scope, VendorOrderScope):
        return ("vendor_orders", scope.vendor_id, filters_fingerprint(scope.filters))
    return ("analytics", scope.tab_id, scope.date_range)
