"""Download filenames and CSV cell formatting for export artifacts."""

from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Union

from registry_exports.jobs.models import utcnow
from registry_exports.jobs.normalization import (
    DEFAULT_ORDER_STATUS,
    normalize_date_range,
    normalize_order_status,
    normalize_tab,
)

VENDOR_ORDER_CSV_HEADER = (
    "Order Code",
    "Product",
    "SKU",
    "Variation",
    "Customer",
    "Registry",
    "Quantity",
    "Amount",
    "Date",
    "Status",
)

# row key for each header column, in order
_VENDOR_ORDER_CSV_KEYS = (
    "orderCode",
    "productName",
    "productSku",
    "variation",
    "customerName",
    "registryTitle",
    "quantity",
    "amount",
    "date",
    "status",
)


def date_stamp(value: Union[datetime, date, str, None]) -> str:
    """YYYY-MM-DD for a timestamp; today (UTC) when missing or unparseable."""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            value = None
    if isinstance(value, (datetime, date)):
        return value.strftime("%Y-%m-%d")
    return utcnow().strftime("%Y-%m-%d")


def build_analytics_export_filename(
    tab_id: Any, date_range: Any, queued_at: Optional[datetime] = None
) -> str:
    tab = normalize_tab(tab_id)
    rng = normalize_date_range(date_range)
    return f"analytics_{tab}_{rng}-{date_stamp(queued_at)}.csv"


def build_vendor_orders_export_filename(
    status: Any, queued_at: Union[datetime, str, None] = None
) -> str:
    stamp = date_stamp(queued_at)
    normalized = normalize_order_status(status)
    if normalized != DEFAULT_ORDER_STATUS:
        return f"vendor-orders-{normalized}-{stamp}.csv"
    return f"vendor-orders-{stamp}.csv"


def escape_csv_cell(value: Any) -> str:
    raw = "" if value is None else str(value)
    return '"' + raw.replace('"', '""') + '"'


def build_vendor_orders_csv(rows: Iterable[Mapping[str, Any]]) -> str:
    lines = [",".join(escape_csv_cell(h) for h in VENDOR_ORDER_CSV_HEADER)]
    for row in rows:
        lines.append(",".join(escape_csv_cell(row.get(key)) for key in _VENDOR_ORDER_CSV_KEYS))
    return "\n".join(lines)
