"""Aggregate all v1 API routers."""

from fastapi import APIRouter
from registry_exports.api.v1.health import router as health_router
from registry_exports.api.v1.exports import analytics_router, vendor_orders_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(analytics_router, tags=["analytics-exports"])
v1_router.include_router(vendor_orders_router, tags=["vendor-order-exports"])
