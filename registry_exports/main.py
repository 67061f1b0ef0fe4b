"""Registry Exports - FastAPI application."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from registry_exports import __version__
from registry_exports.api.errors import register_exception_handlers
from registry_exports.api.v1.health import router as health_root_router
from registry_exports.api.v1.router import v1_router
from registry_exports.config import Settings, settings as default_settings
from registry_exports.jobs.in_memory_repository import InMemoryExportJobRepository
from registry_exports.jobs.models import ExportKind, utcnow
from registry_exports.jobs.repository import ExportJobRepository
from registry_exports.logging_setup import configure_logging
from registry_exports.services.export_jobs import ExportJobService
from registry_exports.services.variants import (
    AnalyticsExportVariant,
    VendorOrderExportVariant,
)

logger = logging.getLogger(__name__)


def build_repository(settings: Settings, kind: ExportKind) -> ExportJobRepository:
    """Job store for one export kind, per ``settings.repository_backend``."""
    if settings.repository_backend == "supabase":
        from registry_exports.db.supabase_client import get_supabase
        from registry_exports.db.supabase_repository import SupabaseExportJobRepository

        table = (
            settings.analytics_jobs_table
            if kind == ExportKind.ANALYTICS
            else settings.vendor_jobs_table
        )
        return SupabaseExportJobRepository(
            get_supabase(), table, kind, candidate_limit=settings.dedupe_candidate_limit
        )
    if settings.repository_backend == "memory":
        return InMemoryExportJobRepository(
            enforce_unique_inflight=settings.enforce_unique_inflight
        )
    raise ValueError(f"Unknown repository backend '{settings.repository_backend}'")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    cfg: Settings = app.state.settings
    logger.info("Starting Registry Exports %s on port %s", __version__, cfg.port)
    logger.info("Job store: %s", cfg.repository_backend)
    logger.info(
        "Dedup window: %s min, list cap: %s", cfg.dedupe_window_minutes, cfg.list_page_size
    )
    yield
    logger.info("Shutting down Registry Exports")


def create_app(
    settings: Optional[Settings] = None,
    analytics_repository: Optional[ExportJobRepository] = None,
    vendor_repository: Optional[ExportJobRepository] = None,
    clock: Callable[[], datetime] = utcnow,
) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Registry Exports Service",
        description="Asynchronous CSV exports for admin analytics and vendor orders",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.repository_backend = settings.repository_backend

    window = timedelta(minutes=settings.dedupe_window_minutes)
    app.state.analytics_exports = ExportJobService(
        analytics_repository
        if analytics_repository is not None
        else build_repository(settings, ExportKind.ANALYTICS),
        AnalyticsExportVariant(settings.analytics_admin_roles, settings.analytics_superuser_role),
        dedupe_window=window,
        page_size=settings.list_page_size,
        clock=clock,
    )
    app.state.vendor_order_exports = ExportJobService(
        vendor_repository
        if vendor_repository is not None
        else build_repository(settings, ExportKind.VENDOR_ORDERS),
        VendorOrderExportVariant(settings.vendor_role),
        dedupe_window=window,
        page_size=settings.list_page_size,
        clock=clock,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    # Mount routers
    app.include_router(health_root_router, tags=["health"])  # GET /health at root
    app.include_router(v1_router)  # All /api/v1/* endpoints
    return app


app = create_app()
