"""Health check endpoint."""

from fastapi import APIRouter, Request
import platform
import sys

from registry_exports import __version__

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Service health and configured job store."""
    return {
        "status": "healthy",
        "version": __version__,
        "repository_backend": getattr(request.app.state, "repository_backend", None),
        "python_version": sys.version,
        "platform": platform.platform(),
    }
