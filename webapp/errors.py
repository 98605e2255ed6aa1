"""
Error envelope handlers.

Every failure is answered with HTTP 200 and ``{"status": int, "msg": str}``.
Internal detail of engine, store and unexpected errors is logged, never returned.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from core.errors import (
    STATUS_MALFORMED_REQUEST,
    STATUS_UNKNOWN,
    UNKNOWN_MESSAGE,
    ServiceError,
)

from webapp.logging_config import DebugLogger

log = DebugLogger("errors")


def envelope(status: int, msg: str) -> JSONResponse:
    return JSONResponse(status_code=200, content={"status": status, "msg": msg})


async def service_error_handler(request: Request, exc: ServiceError):
    if exc.expose_detail:
        log.warning(f"{request.method} {request.url.path} -> {exc.status}: {exc.detail}")
    else:
        log.error(f"{request.method} {request.url.path} -> {exc.status}", exc)
    return envelope(exc.status, exc.msg)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}" for err in exc.errors()
    )
    log.warning(f"{request.method} {request.url.path} -> invalid request: {details}")
    return envelope(STATUS_MALFORMED_REQUEST, details or "Invalid request")


async def unhandled_error_handler(request: Request, exc: Exception):
    log.error(f"{request.method} {request.url.path} -> unhandled", exc)
    return envelope(STATUS_UNKNOWN, UNKNOWN_MESSAGE)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
