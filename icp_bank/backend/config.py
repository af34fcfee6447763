"""
Service configuration read from environment variables.
"""
import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

DEFAULT_CORS_ORIGINS = (
    "http://localhost:5173",
    "http://localhost:3000",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    csv_path: Path | None = None
    geography: str | None = None
    page_size: int = 1000
    top_roles: int = 20
    pareto_limit: int = 20
    cors_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS
    log_level: str = "INFO"


def _get_int_env(name: str, default: int) -> int:
    """Read a positive integer, falling back to the default on bad input."""
    raw_value = os.getenv(name)
    if raw_value is None or not raw_value.strip():
        return default
    try:
        value = int(raw_value.strip())
    except ValueError:
        return default
    return value if value > 0 else default


def _get_str_env(name: str) -> str | None:
    raw_value = os.getenv(name)
    if raw_value is None or not raw_value.strip():
        return None
    return raw_value.strip()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    csv_path = _get_str_env("ICP_CSV_PATH")
    origins = _get_str_env("ICP_CORS_ORIGINS")
    geography = _get_str_env("ICP_GEOGRAPHY")
    return Settings(
        csv_path=Path(csv_path) if csv_path else None,
        geography=geography.upper() if geography else None,
        page_size=_get_int_env("ICP_PAGE_SIZE", 1000),
        top_roles=_get_int_env("ICP_TOP_ROLES", 20),
        pareto_limit=_get_int_env("ICP_PARETO_LIMIT", 20),
        cors_origins=(
            tuple(o.strip() for o in origins.split(",") if o.strip())
            if origins else DEFAULT_CORS_ORIGINS
        ),
        log_level=(_get_str_env("ICP_LOG_LEVEL") or "INFO").upper(),
    )


def configure_logging(level: str | None = None) -> None:
    """Install a basic root handler. Safe to call more than once."""
    level_name = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
    )
