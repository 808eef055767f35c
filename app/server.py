"""Process entry point: runs the app under uvicorn and owns shutdown.

SIGINT and SIGTERM both start a graceful drain. The listener closes, in-flight
requests get ``shutdown_timeout`` seconds to finish, and the process exits 0
when they do or 1 when the deadline passes. Faults that escape every handler
are logged and end the process with status 1.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
import signal
import sys
from types import FrameType
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI

from app.errors import AVAILABLE_ENDPOINTS
from app.main import app as application
from config.settings import Settings, get_settings


logger = logging.getLogger("reax")


class LifecycleState(str, enum.Enum):
    STARTING = "starting"
    LISTENING = "listening"
    DRAINING = "draining"
    TERMINATED = "terminated"


def startup_banner(settings: Settings) -> str:
    width = 40

    def row(text: str = "") -> str:
        return "║   " + text.ljust(width - 3) + "║"

    def field(label: str, value: Any) -> str:
        return row(f"{label:<13}{value}")

    rule = "═" * width
    lines = [
        "╔" + rule + "╗",
        row("Server Started Successfully!"),
        "╠" + rule + "╣",
        field("Port:", settings.port),
        field("URL:", f"http://localhost:{settings.port}"),
        field("Environment:", settings.environment_name),
        field("Phone:", settings.phone_number),
        "╠" + rule + "╣",
        row("Available Endpoints:"),
        *(row(f"GET  {path}") for path in AVAILABLE_ENDPOINTS),
        "╚" + rule + "╝",
    ]
    return "\n".join(lines)


class _ManagedServer(uvicorn.Server):
    """uvicorn server whose startup and signals report to a ServerLifecycle."""

    def __init__(self, config: uvicorn.Config, lifecycle: "ServerLifecycle") -> None:
        super().__init__(config)
        self.lifecycle = lifecycle

    async def startup(self, sockets=None) -> None:
        await super().startup(sockets=sockets)
        if not self.should_exit:
            self.lifecycle.mark_listening()

    def handle_exit(self, sig: int, frame: Optional[FrameType]) -> None:
        self.lifecycle.start_draining(signal.Signals(sig).name)


class ServerLifecycle:
    def __init__(self, app: FastAPI, settings: Settings, drain_timeout: Optional[float] = None) -> None:
        self.settings = settings
        self.drain_timeout = settings.shutdown_timeout if drain_timeout is None else drain_timeout
        self.state = LifecycleState.STARTING
        self.exit_code: Optional[int] = None
        config = uvicorn.Config(
            app,
            host=settings.host,
            port=settings.port,
            log_config=None,
            access_log=False,
        )
        self.server = _ManagedServer(config, self)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._drain_requested: Optional[asyncio.Event] = None
        self._serving: Optional[asyncio.Task] = None
        self._fault = False
        self._aborted = False

    def mark_listening(self) -> None:
        if self.state is LifecycleState.STARTING:
            self.state = LifecycleState.LISTENING
            logger.info("\n%s", startup_banner(self.settings))

    def _request_stop(self) -> None:
        self.server.should_exit = True
        if self._loop is not None and self._drain_requested is not None:
            self._loop.call_soon_threadsafe(self._drain_requested.set)

    def start_draining(self, reason: str) -> None:
        """Stop accepting connections; safe to call repeatedly and from signal handlers."""
        if self.state in (LifecycleState.DRAINING, LifecycleState.TERMINATED):
            logger.info("%s received while shutting down; drain already in progress", reason)
            return
        logger.info("%s received: closing HTTP server gracefully", reason)
        self.state = LifecycleState.DRAINING
        self._request_stop()

    def abort(self) -> None:
        """Take the server down immediately, without waiting for in-flight requests."""
        self._fault = True
        self._aborted = True
        if self.state is not LifecycleState.TERMINATED:
            self.state = LifecycleState.DRAINING
        self.server.force_exit = True
        self._request_stop()

    async def await_drained(self, timeout: float) -> bool:
        """Wait for the server to finish; False when connections outlive ``timeout``."""
        if self._serving is None:
            raise RuntimeError("serve() has not started")
        try:
            await asyncio.wait_for(asyncio.shield(self._serving), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def _handle_loop_exception(self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        exc = context.get("exception")
        # Connection-level failures only affect one client.
        if exc is None or "transport" in context or "protocol" in context:
            loop.default_exception_handler(context)
            return
        if "future" in context:
            logger.critical(
                "UNHANDLED REJECTION! Shutting down... %s: %s",
                type(exc).__name__,
                exc,
                exc_info=exc,
            )
            self._fault = True
            self.start_draining("Unhandled rejection")
            return
        logger.critical(
            "UNCAUGHT EXCEPTION! Shutting down... %s: %s",
            type(exc).__name__,
            exc,
            exc_info=exc,
        )
        self.abort()

    async def _force_stop(self) -> None:
        self.server.force_exit = True
        self._serving.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._serving

    async def serve(self) -> int:
        self._loop = asyncio.get_running_loop()
        self._loop.set_exception_handler(self._handle_loop_exception)
        self._drain_requested = asyncio.Event()
        self._serving = asyncio.create_task(self.server.serve())
        waiter = asyncio.create_task(self._drain_requested.wait())

        done, _ = await asyncio.wait({self._serving, waiter}, return_when=asyncio.FIRST_COMPLETED)
        if self._serving in done:
            # Stopped without a drain request, e.g. the app failed to start.
            waiter.cancel()
            self._serving.result()
            exit_code = 0 if self.state is not LifecycleState.STARTING else 1
        elif not self._aborted and await self.await_drained(self.drain_timeout):
            logger.info("HTTP server closed")
            exit_code = 0
        else:
            if not self._aborted:
                logger.error("Could not close connections in time, forcefully shutting down")
            await self._force_stop()
            exit_code = 1

        if self._fault:
            exit_code = 1
        self.state = LifecycleState.TERMINATED
        self.exit_code = exit_code
        logger.info("Process terminated with exit code %s", exit_code)
        return exit_code

    def run(self) -> int:
        return asyncio.run(self.serve())


def _log_uncaught(exc_type, exc, tb) -> None:
    logger.critical(
        "UNCAUGHT EXCEPTION! Shutting down... %s: %s",
        exc_type.__name__,
        exc,
        exc_info=(exc_type, exc, tb),
    )


def install_fault_hooks() -> None:
    # Covers faults outside the event loop; the interpreter still exits with status 1.
    sys.excepthook = _log_uncaught


def main() -> None:
    install_fault_hooks()
    lifecycle = ServerLifecycle(application, get_settings())
    sys.exit(lifecycle.run())


if __name__ == "__main__":
    main()
