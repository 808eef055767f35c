"""Static assets of the pre-built single-page application.

Files under the build directory are served as-is. Any GET that neither an
API route nor an existing file answers receives ``index.html`` so the
client-side router can take over.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse, HTMLResponse, PlainTextResponse, Response


logger = logging.getLogger("reax")

ENTRY_DOCUMENT = "index.html"
# HEAD is answered wherever GET is.
READ_METHODS = ["GET", "HEAD"]


class FrontendAssets:
    def __init__(self, root: Path) -> None:
        self.root = Path(root).resolve()
        self.entry = self.root / ENTRY_DOCUMENT

    def resolve(self, url_path: str) -> Optional[Path]:
        """Map a URL path onto a file inside the build directory, if one exists."""
        parts = [part for part in url_path.split("/") if part]
        # Dot-files stay hidden, and ".." cannot climb out of the directory.
        if any(part.startswith(".") for part in parts):
            return None
        candidate = self.root.joinpath(*parts).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            return None
        if candidate.is_dir():
            candidate = candidate / ENTRY_DOCUMENT
        return candidate if candidate.is_file() else None

    async def entry_document(self) -> Response:
        try:
            body = await run_in_threadpool(self.entry.read_bytes)
        except OSError:
            logger.exception("Error sending %s from %s", ENTRY_DOCUMENT, self.root)
            return PlainTextResponse("Server Error", status_code=500)
        return HTMLResponse(body)

    async def respond(self, url_path: str) -> Response:
        asset = await run_in_threadpool(self.resolve, url_path)
        if asset is not None:
            return FileResponse(str(asset))
        return await self.entry_document()


def install_frontend(app: FastAPI, assets: FrontendAssets) -> None:
    # Must be registered after every API route: the wildcard matches any path.
    @app.api_route("/{full_path:path}", methods=READ_METHODS, include_in_schema=False)
    async def spa_fallback(request: Request, full_path: str):
        return await assets.respond(request.url.path)
