"""Export job API: queue an export, list recent exports, download the CSV.

Two instances of the same routes are mounted, one per export kind:
  /admin/analytics/exports   — admin dashboard analytics tabs
  /vendor/orders/exports     — a vendor's order list
"""

import json
from typing import Any, Callable, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from registry_exports.auth.supabase_auth import (
    get_current_principal,
    get_current_vendor_principal,
)
from registry_exports.jobs.models import Principal
from registry_exports.services.export_jobs import ExportJobService


def get_analytics_exports(request: Request) -> ExportJobService:
    return request.app.state.analytics_exports


def get_vendor_order_exports(request: Request) -> ExportJobService:
    return request.app.state.vendor_order_exports


async def _read_payload(request: Request) -> Dict[str, Any]:
    """Request body as a dict; a missing or malformed body counts as empty."""
    body = await request.body()
    if not body:
        return {}
    try:
        payload = json.loads(body)
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def build_export_router(
    prefix: str,
    get_service: Callable[..., ExportJobService],
    get_principal: Callable[..., Any],
) -> APIRouter:
    router = APIRouter(prefix=prefix)

    @router.post("", status_code=202)
    async def queue_export(
        request: Request,
        principal: Principal = Depends(get_principal),
        service: ExportJobService = Depends(get_service),
    ):
        """Queue an export. Returns 202 whether a new job was created or an
        identical in-flight job was reused (``deduped``)."""
        result = await service.enqueue(principal, await _read_payload(request))
        return JSONResponse(status_code=202, content=result.to_response())

    @router.get("")
    async def list_exports(
        principal: Principal = Depends(get_principal),
        service: ExportJobService = Depends(get_service),
    ):
        jobs = await service.list_recent(principal)
        return {"jobs": [job.status_view() for job in jobs]}

    @router.get("/{job_id}")
    async def download_export(
        job_id: str,
        principal: Principal = Depends(get_principal),
        service: ExportJobService = Depends(get_service),
    ):
        artifact = await service.download(principal, job_id)
        return Response(
            content=artifact.content,
            media_type=artifact.media_type,
            headers=artifact.headers,
        )

    return router


analytics_router = build_export_router(
    "/admin/analytics/exports", get_analytics_exports, get_current_principal
)
vendor_orders_router = build_export_router(
    "/vendor/orders/exports", get_vendor_order_exports, get_current_vendor_principal
)
