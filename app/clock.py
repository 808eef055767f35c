from __future__ import annotations

import time
from datetime import datetime, timezone


PROCESS_STARTED = time.monotonic()


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. ``2024-01-01T00:00:00.000Z``."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def uptime() -> float:
    return time.monotonic() - PROCESS_STARTED
