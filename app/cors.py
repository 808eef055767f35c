from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.errors import error_response
from config.settings import Settings


logger = logging.getLogger("reax")

ALLOWED_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
ALLOWED_HEADERS = ["Content-Type", "Authorization", "Accept"]


class OriginNotAllowed(Exception):
    """Raised for a browser origin outside the allowed set."""

    def __init__(self, origin: str) -> None:
        super().__init__("Not allowed by CORS")
        self.origin = origin


class OriginPolicy:
    """Decides whether a declared origin may receive a credentialed response."""

    def __init__(self, settings: Settings) -> None:
        self.allowed_origins: List[str] = settings.allowed_origins
        self.permissive = settings.is_development

    def evaluate(self, origin: Optional[str]) -> bool:
        # Non-browser and same-origin callers send no Origin header.
        if not origin:
            return True
        if origin in self.allowed_origins:
            return True
        if self.permissive:
            return True
        logger.warning("Blocked origin: %s", origin)
        return False

    def check(self, origin: Optional[str]) -> None:
        if not self.evaluate(origin):
            raise OriginNotAllowed(origin or "")


def install_cors(app: FastAPI, settings: Settings) -> OriginPolicy:
    policy = OriginPolicy(settings)

    # Development echoes any origin back with credentials; elsewhere the guard
    # below has already turned away everything outside the allowed list.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=policy.allowed_origins,
        allow_origin_regex=".*" if policy.permissive else None,
        allow_credentials=True,
        allow_methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
    )

    @app.middleware("http")
    async def origin_guard(request: Request, call_next):
        try:
            policy.check(request.headers.get("origin"))
        except OriginNotAllowed as exc:
            return error_response(settings, exc)
        return await call_next(request)

    return policy
