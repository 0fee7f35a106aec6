"""Environment-driven settings shared by the API server and the CLI."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

_log = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///tripstats.db"
DEFAULT_CORS_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        _log.warning("Ignoring %s=%r (not a number), using %s", name, raw, default)
        return default
    if value <= 0:
        _log.warning("Ignoring %s=%r (must be positive), using %s", name, raw, default)
        return default
    return value


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    request_timeout: float = 10.0
    cache_max_age: int = 30
    cors_origins: tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("TRIPSTATS_CORS_ORIGINS")
        return cls(
            database_url=os.getenv("TRIPSTATS_DATABASE_URL", DEFAULT_DATABASE_URL),
            request_timeout=_float_env("TRIPSTATS_REQUEST_TIMEOUT", 10.0),
            cache_max_age=int(_float_env("TRIPSTATS_CACHE_MAX_AGE", 30)),
            cors_origins=(
                tuple(o.strip() for o in origins.split(",") if o.strip())
                if origins
                else DEFAULT_CORS_ORIGINS
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
