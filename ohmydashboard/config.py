"""OhMyDashboard backend configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default

# Project root (one level up from ohmydashboard/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Prebuilt front-end bundle served for non-API paths
DIST_DIR = Path(os.getenv("OMD_DIST_DIR", str(PROJECT_ROOT / "dist")))

# Reader tuning
CACHE_TTL_SECONDS = _env_float("OMD_CACHE_TTL_SECONDS", 30.0)
ACTIVE_WINDOW_SECONDS = _env_int("OMD_ACTIVE_WINDOW_SECONDS", 300)

# SQLite query paths
SQLITE_BIN = os.getenv("OMD_SQLITE_BIN", "sqlite3")
DRIVER_MAX_FAILURES = _env_int("OMD_DRIVER_MAX_FAILURES", 3)

# Observability
LOG_LEVEL = os.getenv("OMD_LOG_LEVEL", "INFO").strip().upper() or "INFO"
OTEL_ENABLED = _env_bool("OMD_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("OMD_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("OMD_OTEL_SERVICE_NAME", "ohmydashboard")
PROM_PORT = _env_int("OMD_PROM_PORT", 0)

# Server settings
HOST = os.getenv("OMD_HOST", "127.0.0.1")
PORT = _env_int("OMD_PORT", 51234)
