from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI, Request
import logging

from app.clock import uptime, utc_timestamp
from app.cors import install_cors
from app.errors import install_error_handlers
from app.frontend import READ_METHODS, FrontendAssets, install_frontend
from config.settings import Settings, get_settings


logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s - %(message)s")
logger = logging.getLogger("reax")

LOCKDOWN_FLAGS = {
    "enableFullscreenLock": True,
    "blockEscapeKey": True,
    "blockF11Key": True,
    "blockAllKeyboardShortcuts": True,
    "reEnterFullscreenOnExit": True,
}


def create_app(settings: Settings) -> FastAPI:
    """Build the ASGI application around one immutable settings object.

    Order matters. The API routes are registered first, then the static
    file lookup and SPA wildcard, and the 404 tail only sees what the router
    could not place. Middleware runs outermost first: request log, origin
    guard, CORS headers, error tail.
    """
    app = FastAPI(title="Reax Backend", version="1.0.0")
    app.state.settings = settings

    install_error_handlers(app, settings)
    install_cors(app, settings)

    @app.middleware("http")
    async def log_request(request: Request, call_next):
        logger.info(
            "%s %s - Origin: %s",
            request.method,
            request.url.path,
            request.headers.get("origin") or "no-origin",
        )
        return await call_next(request)

    @app.api_route("/", methods=READ_METHODS)
    def index() -> Dict[str, Any]:
        return {
            "status": "OK",
            "message": "Backend server is running successfully",
            "timestamp": utc_timestamp(),
            "environment": settings.environment_name,
            "endpoints": {
                "health": "/health",
                "phoneNumber": "/okok",
                "config": "/api/config",
            },
        }

    @app.api_route("/health", methods=READ_METHODS)
    def health() -> Dict[str, Any]:
        return {
            "status": "OK",
            "message": "Server is healthy and running",
            "timestamp": utc_timestamp(),
            "uptime": uptime(),
            "environment": settings.environment_name,
        }

    @app.api_route("/okok", methods=READ_METHODS)
    def phone_number(request: Request) -> Dict[str, Any]:
        logger.info("Phone number requested from: %s", request.headers.get("origin") or "unknown")
        return {"tfn": settings.phone_number, "timestamp": utc_timestamp()}

    @app.api_route("/api/config", methods=READ_METHODS)
    def client_config() -> Dict[str, Any]:
        return {
            **LOCKDOWN_FLAGS,
            "phoneNumber": settings.phone_number,
            "timestamp": utc_timestamp(),
        }

    @app.api_route("/api/test", methods=READ_METHODS)
    def reachability(request: Request) -> Dict[str, Any]:
        return {
            "success": True,
            "message": "Backend is accessible",
            "receivedFrom": request.headers.get("origin") or "unknown",
            "timestamp": utc_timestamp(),
        }

    install_frontend(app, FrontendAssets(settings.static_dir))
    return app


app = create_app(get_settings())
