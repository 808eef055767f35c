from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.clock import utc_timestamp
from config.settings import Settings


logger = logging.getLogger("reax")

AVAILABLE_ENDPOINTS = ["/", "/health", "/okok", "/api/config", "/api/test"]


def error_status(exc: BaseException) -> int:
    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    return status if isinstance(status, int) else 500


def error_payload(settings: Settings, exc: BaseException) -> Dict[str, Any]:
    if settings.is_development:
        message = getattr(exc, "detail", None) or str(exc)
    else:
        message = "Something went wrong"
    return {
        "error": "Internal Server Error",
        "message": message,
        "timestamp": utc_timestamp(),
    }


def error_response(settings: Settings, exc: BaseException) -> JSONResponse:
    headers = getattr(exc, "headers", None)
    return JSONResponse(error_payload(settings, exc), status_code=error_status(exc), headers=headers)


def not_found_response(request: Request) -> JSONResponse:
    logger.info("404 Not Found: %s %s", request.method, request.url.path)
    return JSONResponse(
        {
            "error": "Not Found",
            "message": f"Cannot {request.method} {request.url.path}",
            "availableEndpoints": list(AVAILABLE_ENDPOINTS),
        },
        status_code=404,
    )


def install_error_handlers(app: FastAPI, settings: Settings) -> None:
    """Register the not-found tail and the catch-all error envelope.

    The router reports unmatched paths as 404 and known paths hit with the
    wrong method as 405; both end up at the not-found tail. Anything a
    handler raises is logged with its traceback and converted to the uniform
    error envelope, so the process keeps serving.
    """

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (404, 405):
            return not_found_response(request)
        return error_response(settings, exc)

    @app.middleware("http")
    async def error_tail(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            logger.error("Server Error: %s", exc, exc_info=exc)
            return error_response(settings, exc)
