"""Exception handlers rendering export errors as ``{"error": message}``.

Specific errors keep their status code. Anything else is logged with the
request path and rendered as a generic 500 without internal detail.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from registry_exports.jobs.errors import ExportError, UnexpectedFailure

logger = logging.getLogger("registry_exports.api")


async def export_error_handler(request: Request, exc: ExportError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed: %s (%s)",
            request.method,
            request.url.path,
            type(exc).__name__,
            exc.__cause__ or exc.message,
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    failure = UnexpectedFailure()
    return JSONResponse(status_code=failure.status_code, content={"error": failure.message})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ExportError, export_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
