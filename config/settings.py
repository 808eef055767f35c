from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict


DEFAULT_PHONE_NUMBER = "855-550-2644"
DEFAULT_STATIC_DIR = Path(__file__).resolve().parent.parent / "build"

LOCAL_ORIGINS = ("http://localhost:3000", "http://localhost:5000")
# Browsers never send a trailing slash in Origin; allowed_origins strips it so
# this entry (and FRONTEND_URL) can match.
PRODUCTION_ORIGIN = "https://reaxapp.vercel.app/"


def _env(name: str) -> Optional[str]:
    # Empty values behave like unset ones.
    value = os.getenv(name)
    return value or None


class Settings(BaseModel):
    """Application settings loaded from environment variables.

    Built once at startup and handed to everything that needs it. The model
    is frozen, so nothing can change a value after the process has started.
    """

    model_config = ConfigDict(frozen=True)

    port: int = 5000
    host: str = "0.0.0.0"
    environment: Optional[str] = None
    frontend_url: Optional[str] = None
    phone_number: str = DEFAULT_PHONE_NUMBER
    static_dir: Path = DEFAULT_STATIC_DIR
    shutdown_timeout: float = 10.0

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        values = {
            "port": _env("PORT"),
            "host": _env("HOST"),
            "environment": _env("NODE_ENV"),
            "frontend_url": _env("FRONTEND_URL"),
            "phone_number": _env("PHONE_NUMBER"),
            "static_dir": _env("STATIC_DIR"),
            "shutdown_timeout": _env("SHUTDOWN_TIMEOUT"),
        }
        return cls(**{key: value for key, value in values.items() if value is not None})

    @property
    def environment_name(self) -> str:
        return self.environment or "development"

    @property
    def is_development(self) -> bool:
        # Only an explicit NODE_ENV=development relaxes CORS and error detail.
        return self.environment == "development"

    @property
    def allowed_origins(self) -> List[str]:
        origins: List[str] = []
        for origin in (*LOCAL_ORIGINS, self.frontend_url, PRODUCTION_ORIGIN):
            if not origin:
                continue
            origin = origin.strip().rstrip("/")
            if origin and origin not in origins:
                origins.append(origin)
        return origins


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
